"""
Short-TTL response cache in front of the football-data client.

Entries are keyed by the canonical form of an upstream request (normalized
path plus sorted query, routing parameters removed). Concurrent misses for
the same key share a single in-flight fetch.
"""
from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from functools import partial
from typing import Any, Awaitable, Callable, Iterable, Mapping, Optional
from urllib.parse import urlencode

from shared.errors import UpstreamHttpError
from shared.utils.http_client import QueryParams, UpstreamResponse
from shared.utils.logging import get_logger
from shared.utils.metrics import CACHE_ENTRIES, CACHE_INFLIGHT, CACHE_LOOKUPS

logger = get_logger(__name__)

DEFAULT_TTL_S = 60.0

# Query parameters added by the gateway's own routing, never forwarded upstream.
ROUTING_PARAMS = frozenset({"path", "proxy"})

Fetcher = Callable[[], Awaitable[UpstreamResponse]]


def normalize_path(path: str) -> str:
    """Collapse empty, "." and ".." segments; ".." never climbs above the root."""
    segments: list[str] = []
    for segment in path.replace("\\", "/").split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if segments:
                segments.pop()
            continue
        segments.append(segment)
    return "/" + "/".join(segments)


def canonical_params(
    params: QueryParams | None, strip: Iterable[str] = ROUTING_PARAMS
) -> list[tuple[str, str]]:
    """Flatten, filter and sort query parameters by name, then value."""
    stripped = set(strip)
    items: Iterable[tuple[str, Any]]
    if params is None:
        items = ()
    elif isinstance(params, Mapping):
        items = params.items()
    else:
        items = params

    pairs: list[tuple[str, str]] = []
    for name, value in items:
        if name in stripped or value is None:
            continue
        if isinstance(value, (list, tuple)):
            pairs.extend((name, str(v)) for v in value if v is not None)
        else:
            pairs.append((name, str(value)))
    pairs.sort()
    return pairs


def canonical_key(
    path: str, params: QueryParams | None = None, strip: Iterable[str] = ROUTING_PARAMS
) -> str:
    """
    Build the cache key for an upstream request.

    ``canonical_key("/matches", {"dateTo": "b", "dateFrom": "a"})`` and the
    same call with the parameters in the other order give the same key.
    """
    query = urlencode(canonical_params(params, strip))
    path = normalize_path(path)
    return f"{path}?{query}" if query else path


def decode_body(text: str) -> tuple[Any, bool]:
    """Parse JSON when possible; otherwise keep the raw text."""
    try:
        return json.loads(text), True
    except ValueError:
        return text, False


@dataclass(frozen=True)
class CacheEntry:
    key: str
    body: Any
    status: int
    expires_at: float
    is_json: bool = True

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def raise_for_status(self) -> None:
        """Raise UpstreamHttpError for a non-2xx entry; the body is kept for diagnostics."""
        if not self.ok:
            raise UpstreamHttpError(self.status, self.body)


class ResponseCache:
    """
    In-memory TTL cache with single-flight deduplication.

    Args:
        ttl_s: Lifetime of an entry, counted from fetch completion.
        clock: Monotonic clock; injectable for tests.

    The map is only written once a fetch has completed, so overlapping
    refreshes resolve last-writer-wins. Transport failures are never cached.
    """

    def __init__(
        self,
        ttl_s: float = DEFAULT_TTL_S,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl_s = ttl_s
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}
        self._inflight: dict[str, asyncio.Task[CacheEntry]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def ttl_s(self) -> float:
        return self._ttl_s

    @property
    def inflight_count(self) -> int:
        return len(self._inflight)

    def peek(self, key: str) -> Optional[CacheEntry]:
        """Return the entry for key if it has not expired."""
        entry = self._entries.get(key)
        if entry is not None and entry.expires_at > self._clock():
            return entry
        return None

    async def get_or_fetch(self, key: str, fetcher: Fetcher) -> CacheEntry:
        """
        Return the live entry for key, or fetch, store and return a new one.

        A second caller arriving while a fetch for key is running awaits that
        fetch instead of calling ``fetcher`` again. Cancelling a caller does
        not cancel the shared fetch.
        """
        entry = self.peek(key)
        if entry is not None:
            CACHE_LOOKUPS.labels(result="hit").inc()
            logger.debug("cache_hit", key=key)
            return entry

        task = self._inflight.get(key)
        if task is None:
            CACHE_LOOKUPS.labels(result="miss").inc()
            logger.debug("cache_miss", key=key)
            task = asyncio.ensure_future(self._fetch_and_store(key, fetcher))
            self._inflight[key] = task
            CACHE_INFLIGHT.inc()
            task.add_done_callback(partial(self._settle, key))
        else:
            CACHE_LOOKUPS.labels(result="joined").inc()
            logger.debug("cache_join_inflight", key=key)

        return await asyncio.shield(task)

    async def _fetch_and_store(self, key: str, fetcher: Fetcher) -> CacheEntry:
        response = await fetcher()
        body, is_json = decode_body(response.text)
        if not is_json:
            logger.warning("upstream_body_not_json", key=key, status=response.status)
        entry = CacheEntry(
            key=key,
            body=body,
            status=response.status,
            expires_at=self._clock() + self._ttl_s,
            is_json=is_json,
        )
        self._entries[key] = entry
        CACHE_ENTRIES.set(len(self._entries))
        return entry

    def _settle(self, key: str, task: asyncio.Task[CacheEntry]) -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        CACHE_INFLIGHT.dec()
        if not task.cancelled():
            # Marks a failure as retrieved even when every waiter was cancelled.
            task.exception()

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)
        CACHE_ENTRIES.set(len(self._entries))

    def purge_expired(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        CACHE_ENTRIES.set(len(self._entries))
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()
        CACHE_ENTRIES.set(0)
