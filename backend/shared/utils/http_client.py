"""
Async HTTP client for the football-data.org provider.

Injects the auth token, bounds every call with an explicit timeout and turns
transport failures into UpstreamUnavailable. It never retries; retry and
caching policy belong to the callers.
"""
from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

import httpx

from shared.config import Settings, get_settings
from shared.errors import MissingCredential, UpstreamUnavailable
from shared.utils.logging import get_logger
from shared.utils.metrics import UPSTREAM_LATENCY, UPSTREAM_REQUESTS, atrack_latency

logger = get_logger(__name__)

AUTH_HEADER = "X-Auth-Token"

QueryParams = Union[Mapping[str, Any], Sequence[tuple[str, Any]]]


@dataclass(frozen=True)
class UpstreamResponse:
    """Status code and undecoded body of one upstream call."""
    status: int
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class UpstreamClient:
    """
    Thin authenticated client over httpx.AsyncClient.

    The credential lives only here; callers pass a path relative to the
    provider base URL and plain query parameters.
    """

    def __init__(
        self,
        base_url: str,
        token: str,
        timeout_s: float = 10.0,
        connect_timeout_s: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._token = token
        self._timeout = httpx.Timeout(timeout_s, connect=connect_timeout_s)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "UpstreamClient":
        settings = settings or get_settings()
        return cls(
            base_url=settings.football_data_base_url,
            token=settings.football_data_token,
            timeout_s=settings.upstream_timeout_s,
            connect_timeout_s=settings.upstream_connect_timeout_s,
        )

    @property
    def has_credential(self) -> bool:
        return bool(self._token)

    async def start(self) -> None:
        """Initialize the underlying httpx client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                follow_redirects=True,
                limits=httpx.Limits(max_connections=10, max_keepalive_connections=5),
            )

    async def close(self) -> None:
        """Close the underlying httpx client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def fetch_upstream(
        self, path: str, params: QueryParams | None = None
    ) -> UpstreamResponse:
        """
        Perform one GET against the provider.

        Args:
            path: Path relative to the provider base URL, e.g. ``/competitions/PL/matches``.
            params: Query parameters; None values are dropped.

        Returns:
            UpstreamResponse for any HTTP status, 4xx/5xx included.

        Raises:
            MissingCredential: No token configured; no request is made.
            UpstreamUnavailable: Connection, timeout or other transport failure.
        """
        if not self._token:
            logger.error("upstream_credential_missing", path=path)
            raise MissingCredential()
        if self._client is None:
            await self.start()

        if isinstance(params, Mapping):
            query: Any = {k: v for k, v in params.items() if v is not None}
        else:
            query = list(params or [])
        start = time.perf_counter()
        try:
            async with atrack_latency(UPSTREAM_LATENCY):
                resp = await self._client.get(path, params=query, headers={AUTH_HEADER: self._token})
        except httpx.TransportError as exc:
            UPSTREAM_REQUESTS.labels(status="unavailable").inc()
            logger.warning(
                "upstream_unavailable",
                path=path,
                error=str(exc) or exc.__class__.__name__,
                latency_ms=round((time.perf_counter() - start) * 1000, 2),
            )
            raise UpstreamUnavailable(path, str(exc) or exc.__class__.__name__) from exc

        UPSTREAM_REQUESTS.labels(status=str(resp.status_code)).inc()
        logger.info(
            "upstream_request",
            path=path,
            params=query,
            status=resp.status_code,
            latency_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return UpstreamResponse(status=resp.status_code, text=resp.text)
