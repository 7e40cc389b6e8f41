from __future__ import annotations

from sqlite3 import Connection


def list_all(conn: Connection):
    return conn.execute("SELECT id, name, slug FROM demographics ORDER BY name ASC").fetchall()


def exists(conn: Connection, demography_id: int) -> bool:
    row = conn.execute("SELECT 1 FROM demographics WHERE id=?", (demography_id,)).fetchone()
    return row is not None


def upsert(conn: Connection, name: str, slug: str | None = None):
    conn.execute("INSERT OR IGNORE INTO demographics(name, slug) VALUES(?, ?)", (name, slug))
