"""
FastAPI application entry point.

Run with:
    uvicorn safespot.main:app --reload --port 8000
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from safespot.api.v1.hazards import router as hazards_router
from safespot.core.config import settings
from safespot.core.errors import register_error_handlers
from safespot.core.logging_config import get_logger, setup_logging
from safespot.core.middleware import RequestLoggingMiddleware
from safespot.state.context import AlertsContext, build_context

setup_logging()
logger = get_logger(__name__)


def create_app(context: Optional[AlertsContext] = None) -> FastAPI:
    """
    Build the app around an AlertsContext.

    Without one, the lifespan builds a context from settings. A supplied
    context is attached immediately, so tests can use the app without
    running the lifespan.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "Starting %s v%s [%s]",
            settings.APP_NAME, settings.APP_VERSION, settings.ENVIRONMENT,
        )
        ctx: Optional[AlertsContext] = app.state.context
        if ctx is None:
            ctx = app.state.context = build_context(settings)
        await ctx.startup()
        yield
        await ctx.shutdown()
        logger.info("Shutting down %s", settings.APP_NAME)

    app = FastAPI(
        title=settings.APP_NAME,
        description=(
            "Hazard ingestion and alerting: USGS earthquake and NWS weather "
            "feeds, proximity filtering, severity scoring, new-hazard "
            "notifications and nearest-shelter lookup."
        ),
        version=settings.APP_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    register_error_handlers(app)
    app.include_router(hazards_router)

    @app.get("/", tags=["root"])
    async def root():
        return {
            "service": settings.APP_NAME,
            "version": settings.APP_VERSION,
            "environment": settings.ENVIRONMENT,
            "docs": "/docs",
        }

    @app.get("/health/live", tags=["health"])
    async def liveness():
        return {"status": "alive"}

    return app


app = create_app()
