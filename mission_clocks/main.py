import logging
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from mission_clocks.config import Settings, configure_logging, get_settings
from mission_clocks.db.database import create_db_engine, create_session_factory, init_db
from mission_clocks.errors import StorageError, ValidationError
from mission_clocks.triggers.emitter import TriggerEmitter
from mission_clocks.triggers.models import InitializeRequest, RegisterDocumentRequest
from mission_clocks.triggers.registry import SchedulerRegistry

logger = logging.getLogger(__name__)


def create_registry(
    settings: Settings,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> SchedulerRegistry:
    """Wire storage, emitter and alarm clock from settings."""
    engine = create_db_engine(settings.database_url, echo=settings.db_echo)
    init_db(engine)

    emitter = TriggerEmitter(
        settings.mission_control_api_url,
        settings.mission_comms_url,
        timeout=settings.notify_timeout_seconds,
        transport=transport
    )
    return SchedulerRegistry(
        create_session_factory(engine),
        emitter,
        catchup_delay=timedelta(seconds=settings.alarm_catchup_seconds),
        retry_delay=timedelta(seconds=settings.alarm_retry_seconds),
        max_retries=settings.alarm_max_retries
    )


def create_app(
    settings: Optional[Settings] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None
) -> FastAPI:
    """Build the HTTP app. Settings are read from the environment at startup when not given."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = settings or get_settings()
        configure_logging(resolved)
        registry = create_registry(resolved, transport=transport)
        app.state.registry = registry
        restored = registry.start()
        logger.info(f"mission-clocks started, {restored} alarm(s) restored")
        try:
            yield
        finally:
            await registry.stop()

    app = FastAPI(
        title="mission-clocks",
        description="Per-mission deadline timers",
        version="0.1.0",
        lifespan=lifespan
    )

    @app.exception_handler(ValidationError)
    async def validation_error_handler(request: Request, exc: ValidationError):
        logger.warning(f"Rejected {request.url.path}: {exc}")
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        logger.warning(f"Rejected {request.url.path}: malformed body")
        return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        return JSONResponse(status_code=503, content={"detail": "storage unavailable"})

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "ok", "service": "mission-clocks"}

    @app.post("/missions/{mission_id}/init")
    async def initialize(mission_id: str, body: InitializeRequest, request: Request):
        """Initialize the mission clock with its lock times and deadlines."""
        return await request.app.state.registry.initialize(mission_id, body)

    @app.post("/missions/{mission_id}/register-document")
    async def register_document(mission_id: str, body: RegisterDocumentRequest, request: Request):
        """Register a document expiry after initialization."""
        return await request.app.state.registry.register_document(mission_id, body)

    @app.post("/missions/{mission_id}/cancel")
    async def cancel_all(mission_id: str, request: Request):
        """Cancel all timers for the mission."""
        return await request.app.state.registry.cancel_all(mission_id)

    @app.get("/missions/{mission_id}")
    async def mission_status(mission_id: str, request: Request):
        """Pending triggers and next alarm for the mission."""
        return request.app.state.registry.status(mission_id)

    return app


app = create_app()
