"""FastAPI application with lifespan and router mounting."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from payslipflow.api.deps import build_services
from payslipflow.api.routes import backfill, health, ingest, jobs, mappings
from payslipflow.core.config import AppSettings
from payslipflow.core.exceptions import (
    IngestionError,
    MalformedInputError,
    MappingNotFoundError,
    MappingValidationError,
)
from payslipflow.core.log_config import configure_logging
from payslipflow.persistence import Persistence, create_persistence

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "invalid-argument": 400,
    "not-found": 404,
    "failed-precondition": 412,
    "internal": 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize and tear down application resources."""
    if getattr(app.state, "services", None) is None:
        settings = AppSettings()
        configure_logging(settings.log_level)
        app.state.services = build_services(settings, create_persistence(settings))
        logger.info(f"PayslipFlow started ({settings.environment})")
    yield


async def ingestion_error_handler(request: Request, exc: IngestionError) -> JSONResponse:
    return JSONResponse(
        status_code=ERROR_STATUS.get(exc.kind, 500),
        content={"success": False, "error": exc.kind, "message": exc.message},
    )


async def mapping_error_handler(request: Request, exc: MappingValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "invalid-argument", "message": str(exc),
                 "problems": exc.problems},
    )


async def malformed_input_handler(request: Request, exc: MalformedInputError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": "invalid-argument", "message": str(exc)},
    )


async def mapping_not_found_handler(request: Request, exc: MappingNotFoundError) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"success": False, "error": "not-found", "message": str(exc)},
    )


def create_app(
    settings: AppSettings | None = None, persistence: Persistence | None = None
) -> FastAPI:
    """Create and configure the FastAPI application.

    Passing ``persistence`` wires the services up front (tests, scripts);
    otherwise the lifespan builds them from the environment.
    """
    app = FastAPI(
        title="PayslipFlow Payroll CSV Ingestion",
        version="0.1.0",
        lifespan=lifespan,
    )
    if persistence is not None:
        app.state.services = build_services(settings or AppSettings(), persistence)

    app.add_exception_handler(IngestionError, ingestion_error_handler)
    app.add_exception_handler(MappingValidationError, mapping_error_handler)
    app.add_exception_handler(MalformedInputError, malformed_input_handler)
    app.add_exception_handler(MappingNotFoundError, mapping_not_found_handler)

    app.include_router(health.router)
    app.include_router(ingest.router)
    app.include_router(mappings.router, prefix="/mappings")
    app.include_router(backfill.router, prefix="/backfill")
    app.include_router(jobs.router, prefix="/jobs")
    return app
