"""
Prometheus metrics for the fixture sync core.
"""
from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

from prometheus_client import Counter, Gauge, Histogram, start_http_server

from shared.config import get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Counters ────────────────────────────────────────────────────────────
UPSTREAM_REQUESTS = Counter(
    "mp_upstream_requests_total",
    "Total football-data HTTP requests",
    ["status"],
)
CACHE_LOOKUPS = Counter(
    "mp_cache_lookups_total",
    "Response cache lookups by outcome (hit, miss, joined)",
    ["result"],
)
REFRESH_CYCLES = Counter(
    "mp_refresh_cycles_total",
    "Background refresh cycles by outcome",
    ["refresher", "outcome"],
)
GAMEWEEK_RESOLUTIONS = Counter(
    "mp_gameweek_resolutions_total",
    "Current-gameweek resolutions by outcome",
    ["outcome"],
)

# ── Histograms ──────────────────────────────────────────────────────────
UPSTREAM_LATENCY = Histogram(
    "mp_upstream_latency_seconds",
    "Football-data request latency in seconds",
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0),
)
AGGREGATION_DURATION = Histogram(
    "mp_aggregation_seconds",
    "Time to aggregate predictions into leaderboards",
    ["view"],
    buckets=(0.001, 0.005, 0.01, 0.05, 0.1, 0.5),
)

# ── Gauges ──────────────────────────────────────────────────────────────
CACHE_ENTRIES = Gauge(
    "mp_cache_entries",
    "Entries currently held by the response cache",
)
CACHE_INFLIGHT = Gauge(
    "mp_cache_inflight",
    "Upstream fetches currently in flight",
)
LIVE_FIXTURES = Gauge(
    "mp_live_fixtures",
    "Fixtures held by the live refresher snapshot",
)


@asynccontextmanager
async def atrack_latency(histogram: Histogram, **labels: str) -> AsyncIterator[None]:
    """Async context manager to track operation latency."""
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed = time.perf_counter() - start
        if labels:
            histogram.labels(**labels).observe(elapsed)
        else:
            histogram.observe(elapsed)


def start_metrics_server(port: int | None = None) -> None:
    """Start the Prometheus metrics HTTP server."""
    settings = get_settings()
    if not settings.metrics_enabled:
        return
    metrics_port = port or settings.metrics_port
    try:
        start_http_server(metrics_port)
        logger.info("metrics_server_started", port=metrics_port)
    except OSError as exc:
        logger.warning("metrics_server_failed", error=str(exc), port=metrics_port)
