"""Read access to the flattened production views."""
from __future__ import annotations

from sqlite3 import Connection

from ..db import execute
from ..domain.filter_query import BuiltQuery


def run_query(conn: Connection, query: BuiltQuery) -> list[dict]:
    return execute(conn, query.sql_text, query.parameters)


def list_years(conn: Connection) -> list[int]:
    return [r["year"] for r in execute(conn, "SELECT year FROM view_all_years_productions")]
