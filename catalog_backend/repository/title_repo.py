from __future__ import annotations

from sqlite3 import Connection
from typing import Iterable


def list_for_series(conn: Connection, series_id: int):
    return conn.execute(
        "SELECT id, production_id, name FROM titles WHERE production_id = ? ORDER BY id",
        (series_id,),
    ).fetchall()


def add_many(conn: Connection, series_id: int, names: Iterable[str]) -> int:
    rows = [(series_id, n) for n in names]
    conn.executemany("INSERT INTO titles(production_id, name) VALUES(?, ?)", rows)
    return len(rows)


def remove_for_series(conn: Connection, series_id: int, title_ids: Iterable[int]) -> int:
    ids = list(title_ids)
    if not ids:
        return 0
    q = "DELETE FROM titles WHERE production_id = ? AND id IN ({})".format(",".join(["?"] * len(ids)))
    return conn.execute(q, [series_id, *ids]).rowcount
