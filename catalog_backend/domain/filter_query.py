"""
Filter -> SQL compiler for the production catalog view.

A loosely-typed filter mapping (as posted by the catalog UI) is rendered into a
parameterized ``SELECT`` over the production view. Each recognized field has a
condition renderer; fields are rendered in a fixed order so equal filters always
produce byte-identical SQL. Unknown keys never reach the statement.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from functools import partial
from typing import Any, Callable, Iterable, Mapping, Optional


MAX_TEXT_FILTER_LENGTH = 50
SORT_DIRECTIONS = ("ASC", "DESC")
DEFAULT_SORT_DIRECTION = "ASC"
# SQLite INTEGER bounds; larger Python ints cannot be bound
SQL_INT_MIN = -(2 ** 63)
SQL_INT_MAX = 2 ** 63 - 1

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class FilterValidationError(ValueError):
    """Malformed filter input. ``field`` names the offending key."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


@dataclass(frozen=True)
class RenderedCondition:
    sql: str
    params: tuple = ()


@dataclass(frozen=True)
class BuiltQuery:
    sql_text: str
    parameters: tuple

    @property
    def placeholder_count(self) -> int:
        return self.sql_text.count("?")


@dataclass(frozen=True)
class FilterQueryConfig:
    source_view: str = "view_all_info_produtions"
    ranking_column: str = "production_ranking_number"
    max_limit: int = 10000
    default_limit: int = 10000

    def __post_init__(self):
        # identifiers are interpolated into SQL, so only bare names are allowed
        for attr in ("source_view", "ranking_column"):
            v = getattr(self, attr)
            if not isinstance(v, str) or not _IDENTIFIER_RE.match(v):
                raise ValueError(f"{attr} must be a plain SQL identifier, got {v!r}")
        for attr in ("max_limit", "default_limit"):
            v = getattr(self, attr)
            if isinstance(v, bool) or not isinstance(v, int) or v < 1:
                raise ValueError(f"{attr} must be a positive integer, got {v!r}")


# ---------------- value coercion ----------------

def _split_csv(value: str) -> list[str]:
    return [p.strip() for p in value.split(",") if p.strip()]


def _as_list(value: Any) -> list:
    if isinstance(value, str):
        return _split_csv(value)
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _check_int_range(field: str, value: int) -> int:
    if not (SQL_INT_MIN <= value <= SQL_INT_MAX):
        raise FilterValidationError(field, f"must be within the 64-bit integer range, got {value}")
    return value


def _to_number(field: str, value: Any, bounded: bool = True) -> int | float:
    if isinstance(value, bool):
        raise FilterValidationError(field, "must contain numbers, not booleans")
    if isinstance(value, int):
        return _check_int_range(field, value) if bounded else value
    if isinstance(value, float):
        return value
    if isinstance(value, str):
        try:
            num = int(value.strip())
        except ValueError:
            raise FilterValidationError(field, f"must contain valid numbers, got {value!r}") from None
        return _check_int_range(field, num) if bounded else num
    raise FilterValidationError(field, f"must contain valid numbers, got {value!r}")


def _to_int(field: str, value: Any, bounded: bool = True) -> int:
    num = _to_number(field, value, bounded)
    if isinstance(num, float):
        if not num.is_integer():
            raise FilterValidationError(field, f"must contain integers, got {value!r}")
        num = int(num)
        return _check_int_range(field, num) if bounded else num
    return num


def _clean_text(field: str, value: Any) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str):
        raise FilterValidationError(field, "must be a string")
    text = value.strip()
    if not text:
        return None
    if len(text) > MAX_TEXT_FILTER_LENGTH:
        raise FilterValidationError(field, f"must be at most {MAX_TEXT_FILTER_LENGTH} characters")
    return text


# ---------------- condition renderers ----------------
# Signature once bound to a column: (field, value) -> RenderedCondition | None.
# None means the field is absent and contributes nothing.

def render_like(column: str, field: str, value: Any) -> Optional[RenderedCondition]:
    text = _clean_text(field, value)
    if text is None:
        return None
    return RenderedCondition(f" AND {column} LIKE ?", (f"%{text}%",))


def render_equal(column: str, field: str, value: Any) -> Optional[RenderedCondition]:
    text = _clean_text(field, value)
    if text is None:
        return None
    return RenderedCondition(f" AND {column} = ?", (text,))


def render_range_or_equal(column: str, field: str, value: Any) -> Optional[RenderedCondition]:
    """
    Single number -> equality; ``[a, b]`` -> ``BETWEEN a AND b``.

    Bounds are bound exactly in the order given. Ordering them is the
    caller's job.
    """
    if value is None:
        return None
    parts = _as_list(value)
    if len(parts) not in (1, 2):
        raise FilterValidationError(field, "must be a single number or a [min, max] pair")
    nums = tuple(_to_number(field, p) for p in parts)
    if len(nums) == 1:
        return RenderedCondition(f" AND {column} = ?", nums)
    return RenderedCondition(f" AND {column} BETWEEN ? AND ?", nums)


def render_any_like(column: str, field: str, value: Any) -> Optional[RenderedCondition]:
    if value is None:
        return None
    if not isinstance(value, (str, list, tuple)):
        raise FilterValidationError(field, "must be a list of strings")
    items: list[str] = []
    for raw in _as_list(value):
        text = _clean_text(field, raw)
        if text is not None:
            items.append(text)
    if not items:
        return None
    group = " OR ".join(f"{column} LIKE ?" for _ in items)
    return RenderedCondition(f" AND ({group})", tuple(f"%{t}%" for t in items))


def render_in(column: str, field: str, value: Any) -> Optional[RenderedCondition]:
    if value is None:
        return None
    ids = tuple(_to_int(field, v) for v in _as_list(value))
    if not ids:
        return None
    placeholders = ", ".join(["?"] * len(ids))
    return RenderedCondition(f" AND {column} IN ({placeholders})", ids)


Renderer = Callable[[str, Any], Optional[RenderedCondition]]

CONDITION_RENDERERS: dict[str, Renderer] = {
    "name": partial(render_like, "production_name"),
    "chapterCount": partial(render_range_or_equal, "production_number_chapters"),
    "description": partial(render_like, "production_description"),
    "year": partial(render_range_or_equal, "production_year"),
    "demographicName": partial(render_equal, "demographic_name"),
    "genreNames": partial(render_any_like, "genre_names"),
    "id": partial(render_in, "id"),
}

# Canonical rendering order; independent of the caller's key order.
FIELD_ORDER = ("name", "chapterCount", "description", "year", "demographicName", "genreNames", "id")


# ---------------- limit / sort ----------------

def resolve_limit(value: Any, config: FilterQueryConfig) -> int:
    """Absent -> default; above max -> max; anything not a positive int -> error."""
    if value is None:
        return min(config.default_limit, config.max_limit)
    if isinstance(value, bool):
        raise FilterValidationError("limit", "must be a positive integer")
    try:
        # oversized limits are clamped below, not rejected
        n = _to_int("limit", value, bounded=False)
    except FilterValidationError:
        raise FilterValidationError("limit", f"must be a positive integer, got {value!r}") from None
    if n < 1:
        raise FilterValidationError("limit", f"must be a positive integer, got {value!r}")
    return min(n, config.max_limit)


def resolve_sort_direction(value: Any) -> str:
    if value is None:
        return DEFAULT_SORT_DIRECTION
    if value not in SORT_DIRECTIONS:
        raise FilterValidationError("sortDirection", f"must be one of {', '.join(SORT_DIRECTIONS)}, got {value!r}")
    return value


# ---------------- assembly ----------------

def flatten_parameters(contributions: Iterable[Any]) -> tuple:
    """Expand list/tuple contributions in place so the result is one flat positional list."""
    flat: list = []
    for item in contributions:
        if isinstance(item, (list, tuple)):
            flat.extend(flatten_parameters(item))
        else:
            flat.append(item)
    return tuple(flat)


def render_conditions(filters: Mapping[str, Any]) -> list[RenderedCondition]:
    out: list[RenderedCondition] = []
    for field in FIELD_ORDER:
        cond = CONDITION_RENDERERS[field](field, filters.get(field))
        if cond is not None:
            out.append(cond)
    return out


def build_filter_query(filters: Mapping[str, Any] | None, config: FilterQueryConfig | None = None) -> BuiltQuery:
    """
    Compile ``filters`` into ``SELECT * FROM <view> WHERE 1 ... ORDER BY ... LIMIT ?``.

    Raises FilterValidationError on bad input; nothing is returned in that case.
    """
    cfg = config or FilterQueryConfig()
    if filters is None:
        filters = {}
    if not isinstance(filters, Mapping):
        raise FilterValidationError("filters", "must be an object")

    conditions = render_conditions(filters)
    direction = resolve_sort_direction(filters.get("sortDirection"))
    limit = resolve_limit(filters.get("limit"), cfg)

    sql_parts = [f"SELECT * FROM {cfg.source_view} WHERE 1"]
    sql_parts.extend(c.sql for c in conditions)
    sql_parts.append(f" ORDER BY {cfg.ranking_column} {direction}")
    sql_parts.append(" LIMIT ?")

    params = flatten_parameters([c.params for c in conditions] + [limit])
    built = BuiltQuery("".join(sql_parts), params)
    if built.placeholder_count != len(built.parameters):
        raise RuntimeError(
            f"placeholder_mismatch: {built.placeholder_count} placeholders, {len(built.parameters)} parameters"
        )
    return built
