"""
Background fixture refresh.

Polls a fixture loader on a fixed interval and keeps the latest snapshot in
memory for the API. Loads go through the response cache, so the interval
only needs to be at least the cache TTL to stay within the provider's rate
limit. Once stopped, a load that completes late is dropped.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Mapping, Optional

from shared.config import Settings, get_settings
from shared.models.domain import Fixture
from shared.utils.logging import get_logger
from shared.utils.metrics import LIVE_FIXTURES, REFRESH_CYCLES

from ingest.gameweek import GameweekResolver

logger = get_logger(__name__)

FixtureLoader = Callable[[], Awaitable[Mapping[int, Fixture]]]
Clock = Callable[[], datetime]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def live_window_loader(
    resolver: GameweekResolver,
    past_days: int = 2,
    future_days: int = 10,
    clock: Clock = _utcnow,
) -> FixtureLoader:
    """Loader for every fixture kicking off in [now - past_days, now + future_days]."""

    async def load() -> dict[int, Fixture]:
        now = clock()
        fixtures = await resolver.fixtures_in_range(
            now - timedelta(days=past_days), now + timedelta(days=future_days)
        )
        return {f.id: f for f in fixtures}

    return load


class PeriodicRefresher:
    """
    Runs ``load`` every ``interval_s`` seconds until stopped.

    Args:
        name: Label for logs and metrics.
        interval_s: Delay between the end of one load and the next.
        load: Coroutine function returning fixtures keyed by id.
    """

    def __init__(self, name: str, interval_s: float, load: FixtureLoader) -> None:
        self.name = name
        self._interval_s = interval_s
        self._load = load
        self._active = False
        self._task: Optional[asyncio.Task[None]] = None
        self.fixtures_by_id: dict[int, Fixture] = {}
        self.last_updated: Optional[datetime] = None
        self.error: Optional[str] = None

    @classmethod
    def for_live_window(
        cls, resolver: GameweekResolver, settings: Settings | None = None
    ) -> "PeriodicRefresher":
        settings = settings or get_settings()
        return cls(
            name="live_fixtures",
            interval_s=settings.live_refresh_interval_s,
            load=live_window_loader(
                resolver,
                past_days=settings.live_window_past_days,
                future_days=settings.live_window_future_days,
            ),
        )

    @property
    def is_running(self) -> bool:
        return self._active

    async def refresh_once(self) -> bool:
        """
        Run one load and apply it to the snapshot.

        Returns False when the load failed or finished after stop(); the
        previous snapshot is kept either way.
        """
        try:
            fixtures = await self._load()
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            if not self._active:
                return False
            self.error = str(exc)
            REFRESH_CYCLES.labels(refresher=self.name, outcome="error").inc()
            logger.error("fixture_refresh_error", refresher=self.name, error=self.error)
            return False

        if not self._active:
            REFRESH_CYCLES.labels(refresher=self.name, outcome="discarded").inc()
            logger.debug("fixture_refresh_discarded", refresher=self.name)
            return False

        self.fixtures_by_id = dict(fixtures)
        self.last_updated = _utcnow()
        self.error = None
        LIVE_FIXTURES.set(len(self.fixtures_by_id))
        REFRESH_CYCLES.labels(refresher=self.name, outcome="ok").inc()
        logger.info("fixture_refresh_ok", refresher=self.name, fixtures=len(self.fixtures_by_id))
        return True

    async def _run(self) -> None:
        logger.info("fixture_refresh_started", refresher=self.name, interval_s=self._interval_s)
        while True:
            try:
                await self.refresh_once()
                await asyncio.sleep(self._interval_s)
            except asyncio.CancelledError:
                logger.info("fixture_refresh_stopped", refresher=self.name)
                break

    def start(self) -> None:
        if self._task is not None and not self._task.done():
            return
        self._active = True
        self._task = asyncio.create_task(self._run(), name=f"refresh:{self.name}")

    async def stop(self) -> None:
        self._active = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    def status(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "running": self._active,
            "interval_s": self._interval_s,
            "fixtures": len(self.fixtures_by_id),
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "error": self.error,
        }
