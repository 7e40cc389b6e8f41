from __future__ import annotations

# catalog_backend/db.py
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator, Sequence
import os
import yaml

# DB path resolution order:
# 1) env CATALOG_DB_PATH (highest priority)
# 2) config.yaml test_db_path (when running under tests)
# 3) config.yaml db_path
# 4) fallback: catalog.db at the project root
_PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
_ROOT_DB = os.path.join(_PROJECT_ROOT, "catalog.db")
SCHEMA_PATH = os.path.join(_PROJECT_ROOT, "schema.sql")


class DatabaseError(Exception):
    """Opaque driver-level failure. Callers must not rely on its subtype or message."""


# the driver raises OverflowError for ints outside SQLite INTEGER range
DRIVER_ERRORS = (sqlite3.Error, OverflowError)


def _read_config_yaml() -> dict:
    cfg_path = os.path.join(_PROJECT_ROOT, "config.yaml")
    if not os.path.exists(cfg_path):
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    out = {}
    for k in ("db_path", "test_db_path"):
        v = cfg.get(k)
        if isinstance(v, str) and v.strip():
            out[k] = v.strip()
    return out


def get_db_path() -> str:
    env_path = os.environ.get("CATALOG_DB_PATH")
    cfg = _read_config_yaml()
    is_test = (os.environ.get("APP_ENV") == "test") or (os.environ.get("PYTEST_CURRENT_TEST") is not None)

    if env_path:
        path = env_path
    elif is_test and cfg.get("test_db_path"):
        path = cfg["test_db_path"]
    elif cfg.get("db_path"):
        path = cfg["db_path"]
    else:
        path = _ROOT_DB

    dirn = os.path.dirname(path) or "."
    os.makedirs(dirn, exist_ok=True)
    return path


@contextmanager
def get_conn(db_path: str | None = None) -> Iterator[sqlite3.Connection]:
    """
    Open a SQLite connection (explicit db_path wins over get_db_path()).
    Foreign keys on, rows as sqlite3.Row. Any driver error leaving the
    block is re-raised as DatabaseError.
    """
    path = db_path or get_db_path()
    try:
        conn = sqlite3.connect(path, check_same_thread=False, isolation_level=None)
    except sqlite3.Error as e:
        raise DatabaseError(str(e)) from e
    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.row_factory = sqlite3.Row
        yield conn
    except DRIVER_ERRORS as e:
        raise DatabaseError(str(e)) from e
    finally:
        conn.close()


def execute(conn: sqlite3.Connection, sql: str, params: Sequence[Any] = ()) -> list[dict]:
    """Run one statement with positional parameters and return rows as dicts."""
    try:
        rows = conn.execute(sql, tuple(params)).fetchall()
    except DRIVER_ERRORS as e:
        raise DatabaseError(str(e)) from e
    return [dict(r) for r in rows]


def ensure_schema(db_path: str | None = None, schema_path: str = SCHEMA_PATH):
    with open(schema_path, "r", encoding="utf-8") as f:
        ddl = f.read()
    with get_conn(db_path) as conn:
        conn.executescript(ddl)
        conn.commit()
