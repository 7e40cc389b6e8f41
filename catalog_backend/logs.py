"""
Audit trail of catalog writes.

Every write route opens an OperationLogContext, lets the service attach the
entity and its before/after snapshots, then persists one operation_log row
with the outcome. Series-scoped rows can be read back as a per-series history.
"""
import datetime as dt
import json
import time
import uuid
from typing import Any, Dict, List, Optional, Tuple

from .db import get_conn

ENTITY_SERIES = "SERIES"

DDL = """
CREATE TABLE IF NOT EXISTS operation_log (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  ts TEXT NOT NULL,
  user TEXT NOT NULL,
  action TEXT NOT NULL,
  entity_type TEXT,
  entity_id TEXT,
  request_id TEXT,
  before_json TEXT,
  after_json TEXT,
  payload_json TEXT,
  result TEXT,
  err_msg TEXT,
  latency_ms INTEGER
);
CREATE INDEX IF NOT EXISTS idx_log_ts ON operation_log(ts);
CREATE INDEX IF NOT EXISTS idx_log_action ON operation_log(action);
CREATE INDEX IF NOT EXISTS idx_log_entity ON operation_log(entity_type, entity_id);
"""

_JSON_COLUMNS = {"before_json": "before", "after_json": "after", "payload_json": "payload"}


def ensure_log_schema():
    with get_conn() as conn:
        conn.executescript(DDL)
        conn.commit()


def _dump(obj) -> Optional[str]:
    if obj is None:
        return None
    return json.dumps(obj, ensure_ascii=False, default=str)


def _decode(row) -> Dict[str, Any]:
    rec = dict(row)
    for col, key in _JSON_COLUMNS.items():
        raw = rec.pop(col, None)
        rec[key] = json.loads(raw) if raw else None
    return rec


class OperationLogContext:
    """
    One write request's audit record. ``series_id`` scopes the record to a
    series up front, so failed writes against it show up in its history too.
    """

    def __init__(self, action: str, user: str = "admin", series_id: Optional[int] = None):
        self.action = action
        self.user = user
        self.request_id = str(uuid.uuid4())
        self.started = time.perf_counter()
        self.before = None
        self.after = None
        self.payload = None
        self.entity_type = None
        self.entity_id = None
        if series_id is not None:
            self.set_entity(ENTITY_SERIES, str(series_id))

    def set_entity(self, etype: str, eid: str):
        self.entity_type = etype
        self.entity_id = eid

    def set_before(self, obj): self.before = obj
    def set_after(self, obj): self.after = obj
    def set_payload(self, obj): self.payload = obj

    def write(self, result: str = "OK", err: Optional[str] = None):
        row = (
            dt.datetime.now(dt.timezone.utc).isoformat(),
            self.user,
            self.action,
            self.entity_type,
            self.entity_id,
            self.request_id,
            _dump(self.before),
            _dump(self.after),
            _dump(self.payload),
            result,
            err,
            int((time.perf_counter() - self.started) * 1000),
        )
        with get_conn() as conn:
            conn.execute(
                "INSERT INTO operation_log(ts, user, action, entity_type, entity_id, request_id, "
                "before_json, after_json, payload_json, result, err_msg, latency_ms) "
                "VALUES(?,?,?,?,?,?,?,?,?,?,?,?)",
                row,
            )
            conn.commit()


def search_operation_logs(
    q: Optional[str] = None,
    action: Optional[str] = None,
    ts_from: Optional[str] = None,
    ts_to: Optional[str] = None,
    page: int = 1,
    size: int = 20,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
) -> Tuple[int, List[Dict[str, Any]]]:
    """Newest first. ``q`` matches inside the payload and the before/after snapshots."""
    where: List[str] = []
    params: List[Any] = []
    if q:
        where.append("(payload_json LIKE ? OR before_json LIKE ? OR after_json LIKE ?)")
        params.extend([f"%{q}%"] * 3)
    if action:
        where.append("action = ?")
        params.append(action)
    if entity_type:
        where.append("entity_type = ?")
        params.append(entity_type)
    if entity_id is not None:
        where.append("entity_id = ?")
        params.append(str(entity_id))
    if ts_from:
        where.append("ts >= ?")
        params.append(ts_from)
    if ts_to:
        where.append("ts <= ?")
        params.append(ts_to)
    wh = " WHERE " + " AND ".join(where) if where else ""
    with get_conn() as conn:
        total = conn.execute(f"SELECT COUNT(1) AS cnt FROM operation_log{wh}", params).fetchone()["cnt"]
        rows = conn.execute(
            f"SELECT * FROM operation_log{wh} ORDER BY id DESC LIMIT ? OFFSET ?",
            [*params, size, (page - 1) * size],
        ).fetchall()
    return total, [_decode(r) for r in rows]


def series_history(series_id: int, limit: int = 50) -> List[Dict[str, Any]]:
    """Audit entries for one series, oldest first."""
    with get_conn() as conn:
        rows = conn.execute(
            "SELECT * FROM operation_log WHERE entity_type = ? AND entity_id = ? ORDER BY id ASC LIMIT ?",
            (ENTITY_SERIES, str(series_id), limit),
        ).fetchall()
    return [_decode(r) for r in rows]
