"""
FastAPI app entry point aggregating per-domain routers under catalog_backend/routes.
Run as `uvicorn catalog_backend.api:app`.
"""
from __future__ import annotations

import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .db import ensure_schema
from .logs import ensure_log_schema, OperationLogContext
from .services.config_svc import ensure_default_config

logger = logging.getLogger(__name__)

app = FastAPI(title="series-catalog-api", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:4200",
        "http://127.0.0.1:4200",
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def on_startup():
    ensure_schema()
    ensure_log_schema()
    try:
        ensure_default_config()
    except Exception as e:
        logger.exception("ensure_default_config failed")
        OperationLogContext("STARTUP").write("ERROR", f"ensure_default_config_failed: {e}")


# Include routers (split by business domain)
from .routes import base as base_routes
from .routes import series as series_routes
from .routes import settings as settings_routes
from .routes import logs as logs_routes

app.include_router(base_routes.router)
app.include_router(series_routes.router)
app.include_router(settings_routes.router)
app.include_router(logs_routes.router)
