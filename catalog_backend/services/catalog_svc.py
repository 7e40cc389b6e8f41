from __future__ import annotations

from ..db import get_conn
from ..repository import genre_repo, demographic_repo, production_view_repo


# ===== Reference catalogs for the UI filters =====
def list_genres() -> list[dict]:
    with get_conn() as conn:
        return [dict(r) for r in genre_repo.list_all(conn)]


def list_demographics() -> list[dict]:
    with get_conn() as conn:
        return [dict(r) for r in demographic_repo.list_all(conn)]


def list_production_years() -> list[int]:
    with get_conn() as conn:
        return production_view_repo.list_years(conn)
