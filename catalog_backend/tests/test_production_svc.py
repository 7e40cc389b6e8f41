from __future__ import annotations

from unittest.mock import patch

import pytest

from catalog_backend.db import DatabaseError, execute, get_conn
from catalog_backend.domain.filter_query import FilterQueryConfig, FilterValidationError
from catalog_backend.services.production_svc import build_productions_query, get_productions


def _ids(rows):
    return [r["id"] for r in rows]


def test_no_filters_returns_visible_rows_by_rank(seeded):
    rows = get_productions({})
    assert _ids(rows) == [1, 2, 3, 4]
    assert rows[0]["production_name"] == "Attack on Titan"
    assert rows[0]["demographic_name"] == "Shounen"


def test_sort_desc_and_limit(seeded):
    assert _ids(get_productions({"sortDirection": "DESC"})) == [4, 3, 2, 1]
    assert _ids(get_productions({"limit": 2})) == [1, 2]


def test_genre_filter_matches_any(seeded):
    rows = get_productions({"genreNames": ["Romance", "Mystery"]})
    assert _ids(rows) == [2, 3, 4]


def test_year_range_and_equality(seeded):
    assert _ids(get_productions({"year": [2005, 2010]})) == [2, 4]
    assert _ids(get_productions({"year": 2004})) == [3]
    # reversed bounds are passed through as-is, BETWEEN 2010 AND 2005 matches nothing
    assert get_productions({"year": [2010, 2005]}) == []


def test_id_membership_skips_hidden_series(seeded):
    assert _ids(get_productions({"id": [3, 5]})) == [3]


def test_name_and_demographic(seeded):
    assert _ids(get_productions({"name": "note"})) == [2]
    assert _ids(get_productions({"demographicName": "Seinen"})) == [3]
    assert _ids(get_productions({"demographicName": "Shounen", "chapterCount": [20, 30]})) == [1]


def test_description_substring(seeded):
    assert _ids(get_productions({"description": "surgeon"})) == [3]


def test_validation_fails_before_any_query(seeded):
    with patch("catalog_backend.services.production_svc.get_conn") as mock_conn:
        with pytest.raises(FilterValidationError):
            get_productions({"sortDirection": "SIDEWAYS"}, FilterQueryConfig())
        mock_conn.assert_not_called()


def test_database_errors_propagate(seeded):
    cfg = FilterQueryConfig(source_view="no_such_view")
    with pytest.raises(DatabaseError):
        get_productions({}, cfg)


def test_query_config_comes_from_config_table(seeded):
    with get_conn() as conn:
        conn.execute("INSERT INTO config(key, value) VALUES('max_limit', '3')")
        conn.commit()
    q = build_productions_query({"limit": 500})
    assert q.parameters[-1] == 3
    assert len(get_productions({})) == 3


def test_execute_wraps_driver_overflow(tmp_db_path):
    with get_conn() as conn:
        with pytest.raises(DatabaseError):
            execute(conn, "SELECT ? AS v", (10 ** 30,))


def test_out_of_range_id_fails_before_any_query(seeded):
    with patch("catalog_backend.services.production_svc.get_conn") as mock_conn:
        with pytest.raises(FilterValidationError) as ei:
            get_productions({"id": [10 ** 30]}, FilterQueryConfig())
        mock_conn.assert_not_called()
    assert ei.value.field == "id"
