from __future__ import annotations

import logging
from typing import Any, Mapping

from ..db import get_conn
from ..domain.filter_query import BuiltQuery, FilterQueryConfig, build_filter_query
from ..repository import production_view_repo
from .config_svc import get_query_config

logger = logging.getLogger(__name__)


def build_productions_query(filters: Mapping[str, Any] | None, config: FilterQueryConfig | None = None) -> BuiltQuery:
    """Validate and compile filters; raises FilterValidationError before any query runs."""
    cfg = config or get_query_config()
    return build_filter_query(filters, cfg)


def get_productions(filters: Mapping[str, Any] | None, config: FilterQueryConfig | None = None) -> list[dict]:
    query = build_productions_query(filters, config)
    logger.debug("productions query: %s params=%s", query.sql_text, query.parameters)
    with get_conn() as conn:
        return production_view_repo.run_query(conn, query)
