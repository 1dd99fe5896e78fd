"""FastAPI application entry point."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from mindshare.api.routes.health import router as health_router
from mindshare.api.routes.signals import router as signals_router
from mindshare.core.logging import EVENT_APP_START, EVENT_CONFIG_LOADED, log_event, setup_logging
from mindshare.core.settings import settings
from mindshare.services.engine import EngineConfig, SignalEngine
from mindshare.services.feed_source import get_feed_source

setup_logging(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    log_event(logger, "info", EVENT_APP_START)
    log_event(logger, "info", EVENT_CONFIG_LOADED, **settings.safe_dump())
    engine = SignalEngine(get_feed_source(settings), EngineConfig.from_settings(settings))
    app.state.engine = engine
    if settings.engine_autostart:
        await engine.start()
    logger.info("Mindshare signal API ready")
    yield
    await engine.stop()
    app.state.engine = None
    logger.info("Mindshare signal API shutting down")


app = FastAPI(
    title="Mindshare Signal API",
    version="0.1.0",
    description="Social signal aggregation and scoring for a tracked token.",
    lifespan=lifespan,
)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler: log details, return safe generic message."""
    from mindshare.core.errors import normalize_unknown_error

    error = normalize_unknown_error(exc, operation=f"{request.method} {request.url.path}")
    return JSONResponse(
        status_code=error.http_status,
        content={"detail": error.user_message},
    )


app.include_router(health_router, tags=["health"])
app.include_router(signals_router, tags=["signals"])
