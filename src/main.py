"""Shikayat FastAPI application entry point.

Creates the FastAPI app, configures middleware, includes routers, and
wires the complaint engine (store, classifier, tracking IDs, intake,
lifecycle, ledger, analytics, notifier) onto ``app.state``.
"""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from config.settings import settings
from src.api.router import api_router
from src.services.analytics import AnalyticsAggregator
from src.services.classifier import TextClassifier
from src.services.directory import InMemoryUserDirectory
from src.services.errors import ShikayatError
from src.services.intake import IntakePipeline
from src.services.ledger import ActivityLedger
from src.services.lifecycle import ComplaintLifecycle
from src.services.notifications import EmailNotifier, Notifier, NullNotifier
from src.services.storage import InMemoryComplaintStore
from src.services.tracking_id import TrackingIdGenerator

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging() -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if settings.log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            logging.getLevelNamesMapping()[settings.log_level.upper()],
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _build_notifier() -> Notifier:
    if not settings.notifications_enabled:
        return NullNotifier()
    if not settings.smtp_configured:
        logger.warning("app.smtp_not_configured", note="Emails will be logged, not sent")
    return EmailNotifier(
        host=settings.smtp_host,
        port=settings.smtp_port,
        user=settings.smtp_user,
        password=settings.smtp_password,
        sender=settings.smtp_from,
        portal_url=settings.portal_base_url,
        use_tls=settings.smtp_use_tls,
        timeout=settings.notification_timeout_seconds,
    )


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the complaint engine and store it on ``app.state``.

    Services that tests pre-populate on ``app.state`` are left alone.
    """
    _configure_logging()
    logger.info("app.startup", env=settings.env)

    app.state.start_time = time.time()

    store = getattr(app.state, "store", None) or InMemoryComplaintStore()
    notifier = getattr(app.state, "notifier", None) or _build_notifier()
    app.state.store = store
    app.state.notifier = notifier
    if getattr(app.state, "directory", None) is None:
        app.state.directory = InMemoryUserDirectory()

    generator = TrackingIdGenerator(
        settings.tracking_id_prefix,
        suffix_length=settings.tracking_id_suffix_length,
    )
    logger.info("app.tracking_ids_configured", prefix=settings.tracking_id_prefix, entropy_bits=generator.entropy_bits)

    app.state.classifier = TextClassifier()
    app.state.intake = IntakePipeline(
        store,
        app.state.classifier,
        generator,
        notifier,
        max_id_attempts=settings.tracking_id_max_attempts,
        id_retry_backoff=settings.tracking_id_retry_backoff,
        storage_timeout=settings.storage_timeout_seconds,
        notification_timeout=settings.notification_timeout_seconds,
    )
    app.state.lifecycle = ComplaintLifecycle(
        store,
        notifier=notifier,
        storage_timeout=settings.storage_timeout_seconds,
        notification_timeout=settings.notification_timeout_seconds,
    )
    app.state.ledger = ActivityLedger(store, timeout=settings.storage_timeout_seconds)
    app.state.analytics = AnalyticsAggregator(store, timeout=settings.storage_timeout_seconds)

    logger.info("app.startup_complete")

    yield

    logger.info("app.shutdown_complete")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Shikayat API",
    description=(
        "Shikayat -- citizen complaint intake, triage and lifecycle engine. "
        "Classifies complaints, issues tracking IDs, and records every "
        "status change, comment and attachment in an append-only history."
    ),
    version="0.1.0",
    lifespan=lifespan,
    default_response_class=ORJSONResponse,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

_ACTOR_HEADERS = ["X-Actor-Id", "X-Actor-Role", "X-Actor-Name", "X-Gateway-Key"]

# -- CORS middleware --------------------------------------------------------
# allow_credentials=True must not be combined with allow_origins=["*"].
if settings.is_production:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH"],
        allow_headers=["Content-Type", "Authorization", *_ACTOR_HEADERS],
    )
else:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:3000", "http://localhost:8000", "http://127.0.0.1:8000"],
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS", "HEAD"],
        allow_headers=["Content-Type", "Accept", "Authorization", *_ACTOR_HEADERS],
    )


# -- Error handling ---------------------------------------------------------


@app.exception_handler(ShikayatError)
async def shikayat_error_handler(request: Request, exc: ShikayatError) -> ORJSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.info
    log("api.error", path=request.url.path, kind=exc.kind, status=exc.status_code, message=exc.message)
    return ORJSONResponse(status_code=exc.status_code, content=exc.to_dict())


# -- Include routers -------------------------------------------------------
app.include_router(api_router)


@app.get("/api", response_class=ORJSONResponse)
async def api_info() -> dict:
    """API information endpoint."""
    return {
        "name": "Shikayat API",
        "version": app.version,
        "docs": "/docs",
        "health": "/api/v1/health",
        "endpoints": {
            "complaints": "/api/v1/complaints",
            "tracking": "/api/v1/complaints/track/{tracking_id}",
            "analytics": "/api/v1/analytics",
            "health": "/api/v1/health",
        },
    }
