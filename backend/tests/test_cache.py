"""
Unit tests for the response cache: canonical keys, TTL and single-flight.

Run: pytest backend/tests/test_cache.py -v
"""
from __future__ import annotations

import asyncio

import pytest

from shared.errors import UpstreamHttpError, UpstreamUnavailable
from shared.utils.http_client import UpstreamResponse
from ingest.cache import CacheEntry, ResponseCache, canonical_key, canonical_params, decode_body, normalize_path

from factories import FakeClock


class CountingFetcher:
    def __init__(self, text: str = '{"matches": []}', status: int = 200) -> None:
        self.calls = 0
        self.text = text
        self.status = status
        self.release = asyncio.Event()
        self.release.set()

    async def __call__(self) -> UpstreamResponse:
        self.calls += 1
        await self.release.wait()
        return UpstreamResponse(status=self.status, text=self.text)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> ResponseCache:
    return ResponseCache(ttl_s=60, clock=clock)


# ── Canonical keys ──────────────────────────────────────────────────────

def test_key_ignores_parameter_order() -> None:
    a = canonical_key("/competitions/PL/matches", {"dateFrom": "2025-01-01", "dateTo": "2025-01-10"})
    b = canonical_key("/competitions/PL/matches", [("dateTo", "2025-01-10"), ("dateFrom", "2025-01-01")])
    assert a == b == "/competitions/PL/matches?dateFrom=2025-01-01&dateTo=2025-01-10"


def test_key_strips_routing_parameters() -> None:
    key = canonical_key("competitions/PL/matches", {"path": "competitions/PL/matches", "proxy": "x", "matchday": 3})
    assert key == "/competitions/PL/matches?matchday=3"


def test_key_drops_none_values() -> None:
    assert canonical_key("/matches", {"season": None}) == "/matches"


def test_repeated_parameter_sorted_by_value() -> None:
    assert canonical_params([("status", "TIMED"), ("status", "SCHEDULED")]) == [
        ("status", "SCHEDULED"),
        ("status", "TIMED"),
    ]


def test_normalize_path_collapses_slashes() -> None:
    assert normalize_path("//competitions//PL/matches/") == "/competitions/PL/matches"


def test_normalize_path_resolves_dot_segments() -> None:
    assert normalize_path("/a/../competitions/./PL/matches") == "/competitions/PL/matches"
    assert normalize_path("../../competitions") == "/competitions"


def test_dot_segments_share_key_with_plain_path() -> None:
    assert canonical_key("/a/../competitions/PL/matches", {"matchday": 3}) == canonical_key(
        "/competitions/PL/matches", {"matchday": 3}
    )


def test_decode_body_keeps_non_json_text() -> None:
    assert decode_body('{"a": 1}') == ({"a": 1}, True)
    assert decode_body("<html>rate limited</html>") == ("<html>rate limited</html>", False)


# ── TTL ─────────────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_hit_within_ttl(cache: ResponseCache, clock: FakeClock) -> None:
    fetcher = CountingFetcher()
    await cache.get_or_fetch("k", fetcher)
    clock.advance(59)
    entry = await cache.get_or_fetch("k", fetcher)
    assert fetcher.calls == 1
    assert entry.body == {"matches": []}


@pytest.mark.asyncio
async def test_refetch_after_ttl(cache: ResponseCache, clock: FakeClock) -> None:
    fetcher = CountingFetcher()
    await cache.get_or_fetch("k", fetcher)
    clock.advance(60)
    await cache.get_or_fetch("k", fetcher)
    assert fetcher.calls == 2


@pytest.mark.asyncio
async def test_purge_expired(cache: ResponseCache, clock: FakeClock) -> None:
    await cache.get_or_fetch("a", CountingFetcher())
    clock.advance(30)
    await cache.get_or_fetch("b", CountingFetcher())
    clock.advance(31)
    assert cache.purge_expired() == 1
    assert len(cache) == 1
    assert cache.peek("b") is not None


@pytest.mark.asyncio
async def test_invalidate_forces_fetch(cache: ResponseCache) -> None:
    fetcher = CountingFetcher()
    await cache.get_or_fetch("k", fetcher)
    cache.invalidate("k")
    await cache.get_or_fetch("k", fetcher)
    assert fetcher.calls == 2


# ── Single-flight ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_concurrent_misses_share_one_fetch(cache: ResponseCache) -> None:
    fetcher = CountingFetcher()
    fetcher.release.clear()
    waiters = [asyncio.create_task(cache.get_or_fetch("k", fetcher)) for _ in range(5)]
    await asyncio.sleep(0)
    assert cache.inflight_count == 1
    fetcher.release.set()
    entries = await asyncio.gather(*waiters)
    assert fetcher.calls == 1
    assert all(e is entries[0] for e in entries)
    assert cache.inflight_count == 0


@pytest.mark.asyncio
async def test_cancelled_caller_does_not_cancel_shared_fetch(cache: ResponseCache) -> None:
    fetcher = CountingFetcher()
    fetcher.release.clear()
    first = asyncio.create_task(cache.get_or_fetch("k", fetcher))
    second = asyncio.create_task(cache.get_or_fetch("k", fetcher))
    await asyncio.sleep(0)
    first.cancel()
    fetcher.release.set()
    entry = await second
    assert entry.status == 200
    assert cache.peek("k") is entry
    with pytest.raises(asyncio.CancelledError):
        await first


# ── Bodies and failures ─────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_non_json_body_cached_as_text(cache: ResponseCache) -> None:
    fetcher = CountingFetcher(text="Service Unavailable", status=503)
    entry = await cache.get_or_fetch("k", fetcher)
    again = await cache.get_or_fetch("k", fetcher)
    assert entry.is_json is False
    assert entry.body == "Service Unavailable"
    assert entry.ok is False
    assert again is entry
    assert fetcher.calls == 1


@pytest.mark.asyncio
async def test_error_status_is_cached(cache: ResponseCache) -> None:
    fetcher = CountingFetcher(text='{"message": "Too many requests"}', status=429)
    await cache.get_or_fetch("k", fetcher)
    entry = await cache.get_or_fetch("k", fetcher)
    assert entry.status == 429
    assert fetcher.calls == 1


@pytest.mark.asyncio
async def test_transport_failure_not_cached(cache: ResponseCache) -> None:
    calls = 0

    async def failing() -> UpstreamResponse:
        nonlocal calls
        calls += 1
        raise UpstreamUnavailable("/matches", "connect timeout")

    with pytest.raises(UpstreamUnavailable):
        await cache.get_or_fetch("k", failing)
    with pytest.raises(UpstreamUnavailable):
        await cache.get_or_fetch("k", failing)
    assert calls == 2
    assert len(cache) == 0
    assert cache.inflight_count == 0


@pytest.mark.asyncio
async def test_concurrent_waiters_all_see_failure(cache: ResponseCache) -> None:
    release = asyncio.Event()

    async def failing() -> UpstreamResponse:
        await release.wait()
        raise UpstreamUnavailable("/matches", "reset")

    waiters = [asyncio.create_task(cache.get_or_fetch("k", failing)) for _ in range(3)]
    await asyncio.sleep(0)
    release.set()
    results = await asyncio.gather(*waiters, return_exceptions=True)
    assert all(isinstance(r, UpstreamUnavailable) for r in results)


def test_entry_raise_for_status_keeps_body() -> None:
    entry = CacheEntry(key="k", body={"message": "restricted"}, status=403, expires_at=0.0)
    with pytest.raises(UpstreamHttpError) as excinfo:
        entry.raise_for_status()
    assert excinfo.value.status == 403
    assert str(excinfo.value) == "Football API error 403: restricted"
    CacheEntry(key="k", body={}, status=200, expires_at=0.0).raise_for_status()
