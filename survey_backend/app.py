"""
FastAPI application entry point for the survey backend.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from survey_backend import __version__
from survey_backend.config import Settings, get_settings
from survey_backend.errors import (
    ConfigurationError,
    EntryNotFoundError,
    InvalidPartitionError,
    KnowledgeBaseError,
)
from survey_backend.logging_config import configure_logging
from survey_backend.routes import router
from survey_backend.schemas import HealthResponse

logger = logging.getLogger(__name__)


async def _knowledge_base_error(request: Request, exc: KnowledgeBaseError):
    if isinstance(exc, EntryNotFoundError):
        status_code = 404
    elif isinstance(exc, InvalidPartitionError):
        status_code = 400
    else:
        status_code = 500
    return JSONResponse(status_code=status_code, content=exc.as_dict())


async def _configuration_error(request: Request, exc: ConfigurationError):
    logger.error("Service not configured", extra={"error": str(exc)})
    return JSONResponse(status_code=503, content={"detail": str(exc)})


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)

    app = FastAPI(title="Survey Insight Backend", version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_exception_handler(KnowledgeBaseError, _knowledge_base_error)
    app.add_exception_handler(ConfigurationError, _configuration_error)

    @app.get("/health", response_model=HealthResponse)
    def health():
        return HealthResponse(
            status="ok",
            timestamp=datetime.now(timezone.utc),
            environment=settings.app_env,
            version=__version__,
        )

    app.include_router(router, prefix=settings.api_prefix)
    return app


app = create_app()
