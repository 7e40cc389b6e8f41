from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Query, Body
from pydantic import BaseModel, Field

from ..domain.filter_query import FilterValidationError
from ..logs import OperationLogContext, series_history
from ..services.config_svc import get_config
from ..services.production_svc import get_productions
from ..services.catalog_svc import list_genres, list_demographics, list_production_years
from ..services.series_svc import (
    DuplicateSeriesError,
    get_series,
    list_series,
    create_series,
    update_series,
    delete_series,
    assign_genres,
    remove_genres,
    add_titles,
    remove_titles,
)

router = APIRouter(prefix="/api/series")


class SeriesCreate(BaseModel):
    name: str
    year: int
    demography_id: int
    chapter_number: int = 0
    description: str = ""
    description_en: str = ""
    qualification: float = 0.0
    visible: bool = True
    genres: list[int] = Field(default_factory=list)
    titles: list[str] = Field(default_factory=list)


class SeriesUpdate(BaseModel):
    name: str | None = None
    year: int | None = None
    demography_id: int | None = None
    chapter_number: int | None = None
    description: str | None = None
    description_en: str | None = None
    qualification: float | None = None
    visible: bool | None = None


class GenreIds(BaseModel):
    genre_ids: list[int]


class TitleNames(BaseModel):
    titles: list[str]


class TitleIds(BaseModel):
    title_ids: list[int]


def _run_write(log: OperationLogContext, fn, *args):
    """Execute a series write, record the outcome and map errors to HTTP status codes."""
    try:
        result = fn(*args, log)
        log.write("OK")
        return result
    except LookupError as le:
        log.write("ERROR", str(le))
        raise HTTPException(status_code=404, detail=str(le))
    except DuplicateSeriesError as de:
        log.write("ERROR", str(de))
        raise HTTPException(status_code=409, detail=str(de))
    except ValueError as ve:
        log.write("ERROR", str(ve))
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        log.write("ERROR", str(e))
        raise HTTPException(status_code=500, detail=str(e))


def _productions(filters: dict[str, Any]):
    try:
        items = get_productions(filters)
    except FilterValidationError as ve:
        raise HTTPException(status_code=400, detail=str(ve))
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"items": items, "count": len(items)}


@router.post("")
def api_series_productions(filters: dict[str, Any] = Body(default={})):
    """Filtered catalog rows from the production view (see FilterRequest fields)."""
    return _productions(filters)


@router.post("/search")
def api_series_search(filters: dict[str, Any] = Body(default={})):
    return _productions(filters)


@router.get("/list")
def api_series_list(limit: int = Query(50), offset: int = Query(0)):
    try:
        return list_series(limit, offset, max_limit=get_config()["list_max_limit"])
    except Exception as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.get("/years")
def api_series_years():
    return {"items": list_production_years()}


@router.get("/genres")
def api_series_genres():
    return {"items": list_genres()}


@router.get("/demographics")
def api_series_demographics():
    return {"items": list_demographics()}


@router.get("/{series_id}")
def api_series_get(series_id: int):
    item = get_series(series_id)
    if item is None:
        raise HTTPException(status_code=404, detail="series_not_found")
    return item


@router.get("/{series_id}/history")
def api_series_history(series_id: int, limit: int = Query(50, ge=1, le=500)):
    """Audit trail of writes against one series, oldest first. Survives deletion of the series."""
    items = series_history(series_id, limit)
    if not items and get_series(series_id) is None:
        raise HTTPException(status_code=404, detail="series_not_found")
    return {"items": items}


@router.post("/create", status_code=201)
def api_series_create(body: SeriesCreate):
    log = OperationLogContext("CREATE_SERIES")
    log.set_payload(body.model_dump())
    new_id = _run_write(log, create_series, body.model_dump())
    return {"message": "ok", "id": new_id}


@router.put("/{series_id}")
def api_series_update(series_id: int, body: SeriesUpdate):
    changes = body.model_dump(exclude_none=True)
    log = OperationLogContext("UPDATE_SERIES", series_id=series_id)
    log.set_payload({"id": series_id, **changes})
    item = _run_write(log, update_series, series_id, changes)
    return {"message": "ok", "item": item}


@router.delete("/{series_id}")
def api_series_delete(series_id: int):
    log = OperationLogContext("DELETE_SERIES", series_id=series_id)
    log.set_payload({"id": series_id})
    _run_write(log, delete_series, series_id)
    return {"message": "ok"}


@router.post("/{series_id}/genres")
def api_series_assign_genres(series_id: int, body: GenreIds):
    log = OperationLogContext("ASSIGN_GENRES", series_id=series_id)
    log.set_payload({"id": series_id, **body.model_dump()})
    genres = _run_write(log, assign_genres, series_id, body.genre_ids)
    return {"message": "ok", "genres": genres}


@router.delete("/{series_id}/genres")
def api_series_remove_genres(series_id: int, body: GenreIds):
    log = OperationLogContext("REMOVE_GENRES", series_id=series_id)
    log.set_payload({"id": series_id, **body.model_dump()})
    removed = _run_write(log, remove_genres, series_id, body.genre_ids)
    return {"message": "ok", "removed": removed}


@router.post("/{series_id}/titles")
def api_series_add_titles(series_id: int, body: TitleNames):
    log = OperationLogContext("ADD_TITLES", series_id=series_id)
    log.set_payload({"id": series_id, **body.model_dump()})
    titles = _run_write(log, add_titles, series_id, body.titles)
    return {"message": "ok", "titles": titles}


@router.delete("/{series_id}/titles")
def api_series_remove_titles(series_id: int, body: TitleIds):
    log = OperationLogContext("REMOVE_TITLES", series_id=series_id)
    log.set_payload({"id": series_id, **body.model_dump()})
    removed = _run_write(log, remove_titles, series_id, body.title_ids)
    return {"message": "ok", "removed": removed}
