"""
Football-Data.org (football-data.org) v4 fixture feed.
Competition matches only, served through the response cache; X-Auth-Token auth
is handled by the UpstreamClient.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from shared.errors import MalformedUpstreamBody
from shared.models.domain import Fixture, TeamRef
from shared.models.enums import FixtureStatus
from shared.utils.http_client import QueryParams, UpstreamClient
from shared.utils.logging import get_logger

from ingest.cache import (
    CacheEntry,
    ResponseCache,
    canonical_key,
    canonical_params,
    normalize_path,
)

logger = get_logger(__name__)

UNSCHEDULED_ROUND = "Unscheduled"

_STATUS_MAP: dict[str, FixtureStatus] = {
    "SCHEDULED": FixtureStatus.NOT_STARTED,
    "TIMED": FixtureStatus.NOT_STARTED,
    "IN_PLAY": FixtureStatus.LIVE,
    "PAUSED": FixtureStatus.LIVE,
    "LIVE": FixtureStatus.LIVE,
    "FINISHED": FixtureStatus.FINISHED,
    "AWARDED": FixtureStatus.FINISHED,
    "SUSPENDED": FixtureStatus.SUSPENDED,
    "POSTPONED": FixtureStatus.POSTPONED,
    "CANCELLED": FixtureStatus.POSTPONED,
}


def map_status(status: Optional[str]) -> FixtureStatus:
    """Map a football-data.org status to FixtureStatus; unknown values count as not started."""
    return _STATUS_MAP.get((status or "").strip().upper(), FixtureStatus.NOT_STARTED)


def round_label(matchday: Optional[int]) -> str:
    return f"Matchday {matchday}"


def _goal(value: Any) -> Optional[int]:
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def record_matchday(raw: dict[str, Any]) -> Optional[int]:
    md = raw.get("matchday")
    if isinstance(md, bool) or not isinstance(md, int):
        return None
    return md


def _season(raw: dict[str, Any], default: int) -> int:
    start = (raw.get("season") or {}).get("startDate")
    if isinstance(start, str) and len(start) >= 4 and start[:4].isdigit():
        return int(start[:4])
    return default


def _team(raw: Optional[dict[str, Any]], fallback: str) -> TeamRef:
    raw = raw or {}
    name = raw.get("name") or fallback
    short_name = raw.get("shortName") or name
    return TeamRef(
        name=name,
        short_name=short_name,
        code=raw.get("tla") or raw.get("shortName") or raw.get("name") or fallback,
        crest_url=raw.get("crest"),
    )


def parse_fixture(raw: dict[str, Any], default_season: int, label: str | None = None) -> Fixture:
    """
    Build a Fixture from one football-data match record.

    Args:
        raw: Element of the ``matches`` array.
        default_season: Season used when the record carries no ``season.startDate``.
        label: Round label override; otherwise derived from the record's matchday.
    """
    matchday = record_matchday(raw)
    if label is None:
        label = round_label(matchday) if matchday is not None else (raw.get("group") or UNSCHEDULED_ROUND)
    full_time = (raw.get("score") or {}).get("fullTime") or {}
    kickoff = datetime.fromisoformat(str(raw["utcDate"]).replace("Z", "+00:00"))
    return Fixture(
        id=int(raw["id"]),
        kickoff=kickoff,
        status=map_status(raw.get("status")),
        upstream_status=raw.get("status") or "",
        round=label,
        matchday=matchday,
        season=_season(raw, default_season),
        home_team=_team(raw.get("homeTeam"), "Home"),
        away_team=_team(raw.get("awayTeam"), "Away"),
        home_goals=_goal(full_time.get("home")),
        away_goals=_goal(full_time.get("away")),
    )


def match_records(entry: CacheEntry) -> list[dict[str, Any]]:
    """
    Extract the ``matches`` array from a cached competition response.

    Raises:
        UpstreamHttpError: The provider answered with a non-2xx status.
        MalformedUpstreamBody: The body is not JSON or has no ``matches`` list.
    """
    entry.raise_for_status()
    if not entry.is_json:
        raise MalformedUpstreamBody(entry.body)
    matches = entry.body.get("matches") if isinstance(entry.body, dict) else None
    if not isinstance(matches, list):
        raise MalformedUpstreamBody(entry.body, "Football API response has no matches list")
    return [m for m in matches if isinstance(m, dict)]


class FootballDataFeed:
    """
    Cached access to the provider.

    Every read goes through the ResponseCache under the canonical key of the
    request, so identical requests from the gateway, the resolver and the
    refresher share entries and in-flight fetches.
    """

    def __init__(self, client: UpstreamClient, cache: ResponseCache, competition: str = "PL") -> None:
        self._client = client
        self._cache = cache
        self._competition = competition

    @property
    def cache(self) -> ResponseCache:
        return self._cache

    @property
    def competition(self) -> str:
        return self._competition

    async def get(self, path: str, params: QueryParams | None = None) -> CacheEntry:
        """Fetch path through the cache; routing parameters are stripped before keying and forwarding."""
        key = canonical_key(path, params)
        upstream_path = normalize_path(path)
        query = canonical_params(params)
        return await self._cache.get_or_fetch(
            key, lambda: self._client.fetch_upstream(upstream_path, query)
        )

    async def competition_matches(self, **params: Any) -> list[dict[str, Any]]:
        """GET /competitions/{comp}/matches and return the raw match records."""
        entry = await self.get(f"/competitions/{self._competition}/matches", params)
        records = match_records(entry)
        logger.debug("competition_matches", competition=self._competition, count=len(records), params=params)
        return records
