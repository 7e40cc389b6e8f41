# catalog_backend/services/config_svc.py
from ..db import get_conn
from ..domain.filter_query import FilterQueryConfig
from ..logs import OperationLogContext

DEFAULTS = {
    # view the production filter reads from and the column it sorts by
    "production_view": "view_all_info_produtions",
    "ranking_column": "production_ranking_number",
    "max_limit": "10000",
    "default_limit": "10000",
    # upper bound for GET /api/series/list page size
    "list_max_limit": "100",
}

def ensure_default_config():
    """Insert missing config keys (existing values are kept)."""
    with get_conn() as conn:
        for k, v in DEFAULTS.items():
            conn.execute(
                "INSERT INTO config(key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO NOTHING",
                (k, v),
            )
        conn.commit()

def _typed(cfg: dict) -> dict:
    return {
        "production_view": cfg.get("production_view", DEFAULTS["production_view"]),
        "ranking_column": cfg.get("ranking_column", DEFAULTS["ranking_column"]),
        "max_limit": int(cfg.get("max_limit", DEFAULTS["max_limit"])),
        "default_limit": int(cfg.get("default_limit", DEFAULTS["default_limit"])),
        "list_max_limit": int(cfg.get("list_max_limit", DEFAULTS["list_max_limit"])),
    }

def get_config() -> dict:
    with get_conn() as conn:
        rows = conn.execute("SELECT key, value FROM config").fetchall()
    return _typed({r["key"]: r["value"] for r in rows})

def to_query_config(cfg: dict) -> FilterQueryConfig:
    return FilterQueryConfig(
        source_view=cfg["production_view"],
        ranking_column=cfg["ranking_column"],
        max_limit=cfg["max_limit"],
        default_limit=cfg["default_limit"],
    )

def get_query_config() -> FilterQueryConfig:
    return to_query_config(get_config())

def update_config(upd: dict, log: OperationLogContext) -> list[str]:
    unknown = [k for k in upd if k not in DEFAULTS]
    if unknown:
        raise ValueError(f"unknown_config_key: {', '.join(sorted(unknown))}")

    with get_conn() as conn:
        before = {r["key"]: r["value"] for r in conn.execute("SELECT key,value FROM config")}
        merged = {**before, **{k: str(v) for k, v in upd.items()}}
        # reject values the query builder would refuse before anything is written
        try:
            typed = _typed(merged)
        except ValueError:
            raise ValueError("config_value_not_integer") from None
        to_query_config(typed)
        if typed["list_max_limit"] < 1:
            raise ValueError("list_max_limit must be a positive integer")

        updated = []
        for k, v in upd.items():
            conn.execute(
                "INSERT INTO config(key,value) VALUES(?,?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                (k, str(v))
            )
            updated.append(k)
        conn.commit()
        after = {r["key"]: r["value"] for r in conn.execute("SELECT key,value FROM config")}
    log.set_before(before); log.set_after(after)
    return updated
