"""FastAPI front end exposing ingestion and reporting over HTTP."""

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import Body, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..codec import format_timestamp
from ..config import Settings
from ..errors import StoreReadFailure, StoreWriteFailure, ValidationError
from ..logging_config import setup_logging
from ..service import UsageAnalyticsService

logger = logging.getLogger(__name__)


def create_app(service: UsageAnalyticsService, settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or Settings()

    app = FastAPI(title="usagemet", version="0.1.0", description="Usage telemetry ingestion and reporting")
    app.state.service = service
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        logger.warning("Rejected batch on %s: %s %s", request.url.path, exc.message, exc.details)
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid events data", "message": exc.message, "details": exc.details},
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request", "details": {"errors": _jsonable_errors(exc)}},
        )

    @app.exception_handler(StoreWriteFailure)
    async def handle_store_write_failure(request: Request, exc: StoreWriteFailure) -> JSONResponse:
        logger.error("Error processing analytics: %s", exc.message)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.exception_handler(StoreReadFailure)
    async def handle_store_read_failure(request: Request, exc: StoreReadFailure) -> JSONResponse:
        logger.error("Error reading event log for %s: %s", request.url.path, exc.message)
        return JSONResponse(status_code=500, content={"error": "Failed to read analytics data"})

    @app.post("/api/analytics")
    def submit(payload: Any = Body(None)) -> dict:
        return service.submit(payload)

    @app.get("/api/stats")
    def stats() -> dict:
        return service.get_stats()

    @app.get("/api/events/recent")
    def recent_events(limit: Optional[int] = Query(None, ge=0)) -> dict:
        return service.get_recent_events(settings.RECENT_EVENTS_LIMIT if limit is None else limit)

    @app.get("/api/user/{user_id}")
    def user_data(user_id: str) -> dict:
        return service.get_user_data(user_id)

    @app.get("/api/dashboard")
    def dashboard() -> dict:
        return service.get_dashboard()

    @app.get("/api/report")
    def report() -> dict:
        return service.get_report()

    @app.get("/health")
    def health() -> dict:
        return {"status": "ok", "timestamp": format_timestamp(datetime.now(timezone.utc))}

    return app


def create_default_app() -> FastAPI:
    """Application factory for ``uvicorn --factory``."""
    settings = Settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT, settings.LOG_FILE)
    return create_app(UsageAnalyticsService.from_settings(settings), settings)


def _jsonable_errors(exc: RequestValidationError) -> list:
    return [{"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")} for err in exc.errors()]
