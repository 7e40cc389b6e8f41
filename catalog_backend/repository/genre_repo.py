from __future__ import annotations

from sqlite3 import Connection
from typing import Iterable, Set


def list_all(conn: Connection):
    return conn.execute("SELECT id, name, slug FROM genres ORDER BY name ASC").fetchall()


def list_for_series(conn: Connection, series_id: int):
    return conn.execute(
        "SELECT g.id, g.name, g.slug FROM genres g "
        "JOIN productions_genres pg ON pg.genre_id = g.id "
        "WHERE pg.production_id = ? ORDER BY g.name ASC",
        (series_id,),
    ).fetchall()


def existing_ids(conn: Connection, genre_ids: Iterable[int]) -> Set[int]:
    ids = list(genre_ids)
    if not ids:
        return set()
    q = "SELECT id FROM genres WHERE id IN ({})".format(",".join(["?"] * len(ids)))
    return {r["id"] for r in conn.execute(q, ids).fetchall()}


def replace_for_series(conn: Connection, series_id: int, genre_ids: Iterable[int]):
    conn.execute("DELETE FROM productions_genres WHERE production_id = ?", (series_id,))
    conn.executemany(
        "INSERT OR IGNORE INTO productions_genres(production_id, genre_id) VALUES(?, ?)",
        [(series_id, gid) for gid in genre_ids],
    )


def remove_for_series(conn: Connection, series_id: int, genre_ids: Iterable[int]) -> int:
    ids = list(genre_ids)
    if not ids:
        return 0
    q = "DELETE FROM productions_genres WHERE production_id = ? AND genre_id IN ({})".format(
        ",".join(["?"] * len(ids))
    )
    return conn.execute(q, [series_id, *ids]).rowcount


def upsert(conn: Connection, name: str, slug: str | None = None):
    conn.execute("INSERT OR IGNORE INTO genres(name, slug) VALUES(?, ?)", (name, slug))
