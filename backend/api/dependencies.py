"""
Dependency injection for the API service.
Provides the upstream feed, gameweek resolver, scoring engines and live
refresher to route handlers.
"""
from __future__ import annotations

from typing import Optional

from ingest.football_data import FootballDataFeed
from ingest.gameweek import GameweekResolver
from scheduler.refresh import PeriodicRefresher
from scoring.aggregation import AggregationEngine
from scoring.locking import LockingPolicy

# Module-level singletons, initialized at startup
_feed: FootballDataFeed | None = None
_resolver: GameweekResolver | None = None
_engine: AggregationEngine | None = None
_policy: LockingPolicy | None = None
_refresher: PeriodicRefresher | None = None


def init_dependencies(
    feed: FootballDataFeed,
    resolver: GameweekResolver,
    engine: AggregationEngine,
    policy: LockingPolicy,
    refresher: Optional[PeriodicRefresher] = None,
) -> None:
    """Initialize module-level singletons. Called once at startup."""
    global _feed, _resolver, _engine, _policy, _refresher
    _feed = feed
    _resolver = resolver
    _engine = engine
    _policy = policy
    _refresher = refresher


def reset_dependencies() -> None:
    """Drop the singletons. Called on shutdown."""
    global _feed, _resolver, _engine, _policy, _refresher
    _feed = _resolver = _engine = _policy = _refresher = None


def get_feed() -> FootballDataFeed:
    """FastAPI dependency: returns the shared cached feed."""
    if _feed is None:
        raise RuntimeError("FootballDataFeed not initialized; call init_dependencies first")
    return _feed


def get_resolver() -> GameweekResolver:
    if _resolver is None:
        raise RuntimeError("GameweekResolver not initialized; call init_dependencies first")
    return _resolver


def get_engine() -> AggregationEngine:
    if _engine is None:
        raise RuntimeError("AggregationEngine not initialized; call init_dependencies first")
    return _engine


def get_policy() -> LockingPolicy:
    if _policy is None:
        raise RuntimeError("LockingPolicy not initialized; call init_dependencies first")
    return _policy


def get_refresher() -> Optional[PeriodicRefresher]:
    """The live refresher, or None when live refresh is disabled."""
    return _refresher
