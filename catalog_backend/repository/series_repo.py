from __future__ import annotations

from sqlite3 import Connection
from typing import Any

# API field -> productions column
FIELD_COLUMNS = {
    "name": "name",
    "chapter_number": "chapter_numer",
    "year": "year",
    "description": "description",
    "description_en": "description_en",
    "qualification": "qualification",
    "demography_id": "demography_id",
    "visible": "visible",
}

_SELECT = """
    SELECT p.id, p.name, p.chapter_numer, p.year, p.description, p.description_en,
           p.qualification, p.demography_id, d.name AS demographic_name,
           p.visible, p.image, p.rank
    FROM productions p
    LEFT JOIN demographics d ON d.id = p.demography_id
"""


def to_item(row) -> dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "chapter_number": row["chapter_numer"],
        "year": row["year"],
        "description": row["description"],
        "description_en": row["description_en"],
        "qualification": row["qualification"],
        "demography_id": row["demography_id"],
        "demographic_name": row["demographic_name"],
        "visible": bool(row["visible"]),
        "image": row["image"] or None,
        "rank": row["rank"],
    }


def get_one(conn: Connection, series_id: int):
    return conn.execute(_SELECT + " WHERE p.id = ?", (series_id,)).fetchone()


def find_by_name_and_year(conn: Connection, name: str, year: int):
    return conn.execute(
        "SELECT id, name, year FROM productions "
        "WHERE LOWER(TRIM(name)) = LOWER(TRIM(?)) AND year = ? LIMIT 1",
        (name, year),
    ).fetchone()


def list_visible(conn: Connection, limit: int, offset: int):
    sql = _SELECT + " WHERE p.visible = 1 ORDER BY p.rank ASC, p.qualification DESC, p.id ASC LIMIT ? OFFSET ?"
    return conn.execute(sql, (limit, offset)).fetchall()


def count_visible(conn: Connection) -> int:
    return conn.execute("SELECT COUNT(1) AS cnt FROM productions WHERE visible = 1").fetchone()["cnt"]


def insert(conn: Connection, fields: dict[str, Any]) -> int:
    cols = [FIELD_COLUMNS[k] for k in fields]
    sql = "INSERT INTO productions({}) VALUES({})".format(", ".join(cols), ", ".join(["?"] * len(cols)))
    cur = conn.execute(sql, tuple(fields.values()))
    return cur.lastrowid


def update_fields(conn: Connection, series_id: int, fields: dict[str, Any]) -> int:
    if not fields:
        return 0
    sets = ", ".join(f"{FIELD_COLUMNS[k]} = ?" for k in fields)
    params: list[object] = list(fields.values())
    params.append(series_id)
    cur = conn.execute(
        f"UPDATE productions SET {sets}, updated_at = datetime('now') WHERE id = ?",
        params,
    )
    return cur.rowcount


def delete(conn: Connection, series_id: int) -> bool:
    cur = conn.execute("DELETE FROM productions WHERE id = ?", (series_id,))
    return cur.rowcount > 0


def update_rank(conn: Connection):
    # rank = 1-based position by qualification desc, id asc
    conn.execute(
        """
        UPDATE productions SET rank = (
            SELECT COUNT(1) FROM productions p2
            WHERE p2.qualification > productions.qualification
               OR (p2.qualification = productions.qualification AND p2.id <= productions.id)
        )
        """
    )
