"""
FastAPI application factory for the Matchday Predictor API service.

Creates the app with:
- Football-data gateway (cached, credential injected server side)
- Gameweek, fixture and scoring routes
- Middleware stack
- Health check endpoints
- Lifespan management (startup/shutdown)
- Background live-fixture refresh (every 120s through the cache)
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, Union

from fastapi import FastAPI

from shared.config import get_settings
from shared.utils.http_client import UpstreamClient
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server

from api.dependencies import (
    get_feed,
    get_refresher,
    init_dependencies,
    reset_dependencies,
)
from api.middleware import setup_middleware
from api.routes.football import router as football_router
from api.routes.gameweek import router as gameweek_router
from api.routes.leaderboard import router as leaderboard_router
from ingest.cache import ResponseCache
from ingest.football_data import FootballDataFeed
from ingest.gameweek import GameweekResolver
from scheduler.refresh import PeriodicRefresher
from scoring.aggregation import AggregationEngine
from scoring.locking import LockingPolicy

logger = get_logger(__name__)


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """No-op lifespan for testing with overridden dependencies."""
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.
    Handles startup (upstream client, cache, live refresher) and
    shutdown (graceful cleanup).
    """
    settings = get_settings()
    setup_logging("api", settings)
    if settings.metrics_enabled:
        start_metrics_server(settings.metrics_port)

    if not settings.has_credential:
        logger.warning("football_data_token_missing")

    client = UpstreamClient.from_settings(settings)
    await client.start()
    cache = ResponseCache(ttl_s=settings.cache_ttl_s)
    feed = FootballDataFeed(client, cache, competition=settings.competition)
    resolver = GameweekResolver.from_settings(feed, settings)

    refresher: PeriodicRefresher | None = None
    if settings.live_refresh_enabled and settings.has_credential:
        refresher = PeriodicRefresher.for_live_window(resolver, settings)
    else:
        logger.info("live_refresh_disabled", has_credential=settings.has_credential)

    init_dependencies(
        feed,
        resolver,
        AggregationEngine.from_settings(settings),
        LockingPolicy(),
        refresher,
    )
    if refresher is not None:
        refresher.start()

    logger.info(
        "api_service_started",
        host=settings.api_host,
        port=settings.api_port,
        competition=settings.competition,
        season=resolver.season,
    )

    yield

    # Shutdown
    if refresher is not None:
        await refresher.stop()
    await client.close()
    cache.clear()
    reset_dependencies()
    logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Create and configure the FastAPI application. Set use_lifespan=False for testing with dependency overrides."""
    app = FastAPI(
        title="Matchday Predictor API",
        description="Fixture sync and scoring for a score-prediction league",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Middleware
    setup_middleware(app)

    # REST routes
    app.include_router(football_router)
    app.include_router(gameweek_router)
    app.include_router(leaderboard_router)

    # Health check
    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> Dict[str, Union[str, bool]]:
        """Readiness probe; the service is ready once a credential is configured."""
        settings = get_settings()
        try:
            get_feed()
            feed_ok = True
        except RuntimeError:
            feed_ok = False
        ready = feed_ok and settings.has_credential
        return {
            "status": "ok" if ready else "degraded",
            "feed": feed_ok,
            "credential": settings.has_credential,
        }

    @app.get("/v1/status", tags=["system"])
    async def system_status() -> dict[str, Any]:
        """Cache occupancy and live refresher state."""
        settings = get_settings()
        cache_info: dict[str, Any] = {"ttl_s": settings.cache_ttl_s}
        try:
            cache = get_feed().cache
            cache_info.update(entries=len(cache), inflight=cache.inflight_count)
        except RuntimeError:
            cache_info.update(entries=None, inflight=None)

        refresher = get_refresher()
        return {
            "service": "api",
            "environment": settings.environment.value,
            "competition": settings.competition,
            "season": settings.current_season,
            "cache": cache_info,
            "live_refresh": refresher.status() if refresher else {"running": False},
        }

    return app


app = create_app()
