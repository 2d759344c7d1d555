from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import psycopg2
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.responses import JSONResponse

from sqlalchemy import text
from sqlalchemy.exc import OperationalError as SAOperationalError

from api.router import api_router
from core.bootstrap import ensure_placement_schema
from core.config import settings
from core.database import DatabaseUnavailableError, ENGINE, is_transient_db_connectivity_error
from core.logging import get_correlation_id, setup_logging
from placement.types import InvalidRequest
from services.commit_coordinator import StorageFailure


logger = logging.getLogger(__name__)


_DB_UNAVAILABLE = {
    "code": "DATABASE_UNAVAILABLE",
    "message": "Database temporarily unavailable. Please retry.",
}
_DB_ERROR = {
    "code": "DATABASE_ERROR",
    "message": "Database operation failed.",
}


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    if settings.environment.lower() != "production":
        # Production schema changes go through migrations/001_create_placement_tables.py.
        try:
            created = ensure_placement_schema(ENGINE)
            if created:
                logger.info("Bootstrapped placement schema: %s", ", ".join(created))
        except SAOperationalError as exc:
            logger.warning("Schema bootstrap skipped; database unreachable", exc_info=exc)
    yield


def create_app() -> FastAPI:
    setup_logging(environment=settings.environment)
    is_production = settings.environment.lower() == "production"
    app = FastAPI(
        title="Bulk Placement API",
        version="0.1.0",
        docs_url=None if is_production else "/docs",
        redoc_url=None if is_production else "/redoc",
        openapi_url=None if is_production else "/openapi.json",
        lifespan=_lifespan,
    )

    @app.exception_handler(InvalidRequest)
    def _invalid_request(_request, exc: InvalidRequest):
        logger.info("Rejected request (%s): %s", exc.code, exc.message)
        return JSONResponse(
            status_code=400,
            content={
                "code": exc.code,
                "message": exc.message,
                "errors": exc.errors,
                "correlationId": get_correlation_id(),
            },
        )

    @app.exception_handler(StorageFailure)
    def _storage_failure(_request, exc: StorageFailure):
        logger.error("Storage failure during commit", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "code": "STORAGE_FAILURE",
                "message": str(exc),
                "correlationId": get_correlation_id(),
            },
        )

    @app.exception_handler(DatabaseUnavailableError)
    def _db_unavailable(_request, _exc: DatabaseUnavailableError):
        logger.warning("Database unavailable (503)", exc_info=_exc)
        return JSONResponse(status_code=503, content=_DB_UNAVAILABLE)

    @app.exception_handler(SAOperationalError)
    def _sqlalchemy_operational_error(_request, exc: SAOperationalError):
        if is_transient_db_connectivity_error(exc):
            logger.warning("Database transient connectivity error (503)", exc_info=exc)
            return JSONResponse(status_code=503, content=_DB_UNAVAILABLE)
        logger.error("Database operation failed", exc_info=exc)
        return JSONResponse(status_code=500, content=_DB_ERROR)

    @app.exception_handler(psycopg2.OperationalError)
    def _psycopg2_operational_error(_request, exc: Exception):
        if is_transient_db_connectivity_error(exc):
            return JSONResponse(status_code=503, content=_DB_UNAVAILABLE)
        return JSONResponse(status_code=500, content=_DB_ERROR)

    allow_origins = [settings.frontend_origin]
    allow_origin_regex = None
    if not is_production:
        # Dev-friendly: allow the configured origin and any localhost port.
        allow_origins.extend(["http://localhost:5173", "http://127.0.0.1:5173"])
        allow_origin_regex = r"^https?://(localhost|127\.0\.0\.1)(:\d+)?$"

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allow_origins,
        allow_origin_regex=allow_origin_regex,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Correlation-Id"],
    )

    @app.get("/health")
    def health() -> dict:
        # Always respond; reflect DB availability without crashing.
        db_status = "ok"
        try:
            with ENGINE.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            db_status = "down"

        return {"app": "ok", "database": db_status}

    app.include_router(api_router, prefix="/api")
    return app


app = create_app()
