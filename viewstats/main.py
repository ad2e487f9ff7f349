"""
viewstats application factory.

`create_app()` builds the FastAPI application and wires the tracker, the
analytics service and the background runner into `app.state`.
"""

import logging
from collections.abc import Callable
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from starlette.responses import Response

from viewstats.config import Settings, settings as default_settings
from viewstats.database import AsyncSessionLocal, Base, engine
from viewstats.exception_handlers import register_exception_handlers
from viewstats.middleware.logging import StructuredLoggingMiddleware, setup_structured_logging
from viewstats.routes import analytics, tracking
from viewstats.services.analytics_service import AnalyticsService
from viewstats.services.background import BackgroundTaskRunner
from viewstats.services.geo_service import GeoResolver
from viewstats.services.tracking_service import ViewTracker
from viewstats.stores.sql import SqlAggregateStore, SqlInteractionSource, SqlResourceDirectory, SqlViewStore
from viewstats.utils.clock import utcnow
from viewstats.utils.metrics import PrometheusMiddleware, set_app_info

logger = logging.getLogger(__name__)


def create_app(
    settings: Settings | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    geo_resolver: GeoResolver | None = None,
    clock: Callable[[], datetime] = utcnow,
    configure_logging: bool = True,
) -> FastAPI:
    """Create the FastAPI application."""
    settings = settings or default_settings
    session_factory = session_factory or AsyncSessionLocal

    if configure_logging:
        setup_structured_logging(log_level=settings.log_level, json_format=settings.log_json)

    app = FastAPI(
        title=settings.app_name,
        description="View tracking and engagement analytics",
        debug=settings.debug,
        version=settings.app_version,
    )

    # Add middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(PrometheusMiddleware)
    app.add_middleware(StructuredLoggingMiddleware)

    register_exception_handlers(app)

    # Services
    view_store = SqlViewStore(session_factory)
    runner = BackgroundTaskRunner()
    geo_resolver = geo_resolver or GeoResolver(settings.geoip_database_path)

    app.state.background_runner = runner
    app.state.geo_resolver = geo_resolver
    app.state.view_tracker = ViewTracker(
        view_store,
        geo_resolver,
        window_minutes=settings.dedup_window_minutes,
        clock=clock,
    )
    app.state.analytics_service = AnalyticsService(
        view_store,
        SqlAggregateStore(session_factory),
        SqlInteractionSource(session_factory),
        SqlResourceDirectory(session_factory),
        runner,
        stale_ttl_seconds=settings.analytics_stale_ttl_seconds,
        clock=clock,
    )

    # Include routers
    app.include_router(tracking.router, prefix="/tracking")
    app.include_router(analytics.router, prefix="/analytics")

    @app.get("/health", tags=["Monitoring"])
    async def health():
        return {
            "status": "healthy",
            "version": settings.app_version,
            "geoip_enabled": geo_resolver.enabled,
            "background_tasks": runner.pending,
        }

    @app.get("/metrics", tags=["Monitoring"], include_in_schema=False)
    async def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @app.on_event("startup")
    async def startup_event():
        """Tasks to run at application startup."""
        logger.info(f"Starting {settings.app_name} {settings.app_version} in {settings.environment} mode")
        set_app_info(settings.app_version, settings.environment)
        if settings.debug:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables created (if not existing).")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info(f"Shutting down, waiting for {runner.pending} background task(s)...")
        await runner.drain()
        geo_resolver.close()

    return app


app = create_app()
