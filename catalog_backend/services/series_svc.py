from __future__ import annotations

import datetime as dt
import logging
from typing import Any

from ..db import get_conn
from ..logs import ENTITY_SERIES, OperationLogContext
from ..repository import series_repo, genre_repo, title_repo, demographic_repo

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
NAME_MIN_LEN = 2
NAME_MAX_LEN = 200
MIN_YEAR = 1900
MAX_QUALIFICATION = 10.0


class DuplicateSeriesError(ValueError):
    pass


def _max_year() -> int:
    return dt.date.today().year + 5


def _validate_fields(data: dict[str, Any], *, partial: bool) -> dict[str, Any]:
    """
    Check and normalize series fields. With partial=False the create
    requirements apply (name, year, demography_id must be present).
    Returns only the fields that were provided.
    """
    out: dict[str, Any] = {}

    if "name" in data and data["name"] is not None:
        name = str(data["name"]).strip()
        if not (NAME_MIN_LEN <= len(name) <= NAME_MAX_LEN):
            raise ValueError(f"name must be between {NAME_MIN_LEN} and {NAME_MAX_LEN} characters")
        out["name"] = name
    elif not partial:
        raise ValueError("name is required")

    if data.get("year") is not None:
        year = int(data["year"])
        if not (MIN_YEAR <= year <= _max_year()):
            raise ValueError(f"year must be between {MIN_YEAR} and {_max_year()}")
        out["year"] = year
    elif not partial:
        raise ValueError("year is required")

    if data.get("chapter_number") is not None:
        chapters = int(data["chapter_number"])
        if chapters < 0:
            raise ValueError("chapter_number must not be negative")
        out["chapter_number"] = chapters

    if data.get("qualification") is not None:
        q = float(data["qualification"])
        if not (0.0 <= q <= MAX_QUALIFICATION):
            raise ValueError("qualification must be between 0 and 10")
        out["qualification"] = q

    if data.get("demography_id") is not None:
        did = int(data["demography_id"])
        if did <= 0:
            raise ValueError("valid demography_id is required")
        out["demography_id"] = did
    elif not partial:
        raise ValueError("valid demography_id is required")

    for key in ("description", "description_en"):
        if data.get(key) is not None:
            out[key] = str(data[key]).strip()

    if data.get("visible") is not None:
        out["visible"] = 1 if data["visible"] else 0

    return out


def _unique_positive_ids(ids) -> list[int]:
    seen: list[int] = []
    for i in ids or []:
        i = int(i)
        if i > 0 and i not in seen:
            seen.append(i)
    return seen


def _clean_titles(titles) -> list[str]:
    out: list[str] = []
    for t in titles or []:
        t = str(t).strip()
        if t and t not in out:
            out.append(t)
    return out


def _check_genres(conn, genre_ids: list[int]):
    missing = set(genre_ids) - genre_repo.existing_ids(conn, genre_ids)
    if missing:
        raise ValueError(f"genre_not_found: {sorted(missing)}")


def _detail(conn, series_id: int) -> dict[str, Any] | None:
    row = series_repo.get_one(conn, series_id)
    if row is None:
        return None
    item = series_repo.to_item(row)
    item["genres"] = [dict(r) for r in genre_repo.list_for_series(conn, series_id)]
    item["titles"] = [dict(r) for r in title_repo.list_for_series(conn, series_id)]
    return item


# ===== Queries =====

def get_series(series_id: int) -> dict[str, Any] | None:
    with get_conn() as conn:
        return _detail(conn, series_id)


def list_series(limit: int = DEFAULT_PAGE_SIZE, offset: int = 0, max_limit: int = 100) -> dict[str, Any]:
    """Paged listing of visible series ordered by rank. Out-of-range paging values are normalized."""
    if limit <= 0:
        limit = DEFAULT_PAGE_SIZE
    limit = min(limit, max_limit)
    offset = max(offset, 0)
    with get_conn() as conn:
        rows = series_repo.list_visible(conn, limit, offset)
        total = series_repo.count_visible(conn)
    return {
        "items": [series_repo.to_item(r) for r in rows],
        "pagination": {"limit": limit, "offset": offset, "total": total},
    }


# ===== Commands =====

def create_series(data: dict[str, Any], log: OperationLogContext) -> int:
    fields = _validate_fields(data, partial=False)
    fields.setdefault("visible", 1)
    genre_ids = _unique_positive_ids(data.get("genres"))
    titles = _clean_titles(data.get("titles"))

    with get_conn() as conn:
        if not demographic_repo.exists(conn, fields["demography_id"]):
            raise ValueError("demographic_not_found")
        _check_genres(conn, genre_ids)

        # write lock first so the duplicate check and the insert cannot interleave
        conn.execute("BEGIN IMMEDIATE")
        dup = series_repo.find_by_name_and_year(conn, fields["name"], fields["year"])
        if dup is not None:
            raise DuplicateSeriesError(f"series_already_exists: id={dup['id']}")
        new_id = series_repo.insert(conn, fields)
        if genre_ids:
            genre_repo.replace_for_series(conn, new_id, genre_ids)
        if titles:
            title_repo.add_many(conn, new_id, titles)
        series_repo.update_rank(conn)
        conn.execute("COMMIT")
        after = _detail(conn, new_id)

    logger.info("series created id=%s name=%s", new_id, fields["name"])
    log.set_entity(ENTITY_SERIES, str(new_id))
    log.set_after(after)
    return new_id


def update_series(series_id: int, changes: dict[str, Any], log: OperationLogContext) -> dict[str, Any]:
    fields = _validate_fields(changes, partial=True)
    if not fields:
        raise ValueError("no_fields_to_update")

    with get_conn() as conn:
        before = _detail(conn, series_id)
        if before is None:
            raise LookupError("series_not_found")
        if "demography_id" in fields and not demographic_repo.exists(conn, fields["demography_id"]):
            raise ValueError("demographic_not_found")

        conn.execute("BEGIN IMMEDIATE")
        if "name" in fields or "year" in fields:
            dup = series_repo.find_by_name_and_year(
                conn, fields.get("name", before["name"]), fields.get("year", before["year"])
            )
            if dup is not None and dup["id"] != series_id:
                raise DuplicateSeriesError(f"series_already_exists: id={dup['id']}")
        series_repo.update_fields(conn, series_id, fields)
        if "qualification" in fields:
            series_repo.update_rank(conn)
        conn.execute("COMMIT")
        after = _detail(conn, series_id)

    log.set_entity(ENTITY_SERIES, str(series_id))
    log.set_before(before)
    log.set_after(after)
    return after


def delete_series(series_id: int, log: OperationLogContext):
    with get_conn() as conn:
        before = _detail(conn, series_id)
        if before is None:
            raise LookupError("series_not_found")
        conn.execute("BEGIN")
        series_repo.delete(conn, series_id)
        series_repo.update_rank(conn)
        conn.execute("COMMIT")
    logger.info("series deleted id=%s", series_id)
    log.set_entity(ENTITY_SERIES, str(series_id))
    log.set_before(before)


def assign_genres(series_id: int, genre_ids: list[int], log: OperationLogContext) -> list[dict]:
    """Replace the full genre assignment of a series."""
    ids = _unique_positive_ids(genre_ids)
    with get_conn() as conn:
        if series_repo.get_one(conn, series_id) is None:
            raise LookupError("series_not_found")
        _check_genres(conn, ids)
        before = [dict(r) for r in genre_repo.list_for_series(conn, series_id)]
        conn.execute("BEGIN")
        genre_repo.replace_for_series(conn, series_id, ids)
        conn.execute("COMMIT")
        after = [dict(r) for r in genre_repo.list_for_series(conn, series_id)]
    log.set_entity(ENTITY_SERIES, str(series_id))
    log.set_before(before)
    log.set_after(after)
    return after


def remove_genres(series_id: int, genre_ids: list[int], log: OperationLogContext) -> int:
    ids = _unique_positive_ids(genre_ids)
    with get_conn() as conn:
        if series_repo.get_one(conn, series_id) is None:
            raise LookupError("series_not_found")
        removed = genre_repo.remove_for_series(conn, series_id, ids)
        conn.commit()
    log.set_entity(ENTITY_SERIES, str(series_id))
    log.set_after({"removed_genre_ids": ids, "removed": removed})
    return removed


def add_titles(series_id: int, titles: list[str], log: OperationLogContext) -> list[dict]:
    names = _clean_titles(titles)
    if not names:
        raise ValueError("no_titles_to_add")
    with get_conn() as conn:
        if series_repo.get_one(conn, series_id) is None:
            raise LookupError("series_not_found")
        title_repo.add_many(conn, series_id, names)
        conn.commit()
        after = [dict(r) for r in title_repo.list_for_series(conn, series_id)]
    log.set_entity(ENTITY_SERIES, str(series_id))
    log.set_after(after)
    return after


def remove_titles(series_id: int, title_ids: list[int], log: OperationLogContext) -> int:
    ids = _unique_positive_ids(title_ids)
    with get_conn() as conn:
        if series_repo.get_one(conn, series_id) is None:
            raise LookupError("series_not_found")
        removed = title_repo.remove_for_series(conn, series_id, ids)
        conn.commit()
    log.set_entity(ENTITY_SERIES, str(series_id))
    log.set_after({"removed_title_ids": ids, "removed": removed})
    return removed
