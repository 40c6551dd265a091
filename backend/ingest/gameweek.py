"""
Gameweek resolution.

The current gameweek is found in two phases: a short date window detects the
lowest matchday that still has scheduled or in-play fixtures, then the whole
round is fetched by matchday and season so fixtures outside the window are not
lost. In-play fixtures keep a started round current until the next round's
fixtures show up in the window.
"""
from __future__ import annotations

from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Iterable, Optional, Union

from shared.config import Settings, default_season, get_settings
from shared.errors import EmptyRound, NoUpcomingFixtures
from shared.models.domain import Fixture, Gameweek, Prediction
from shared.utils.logging import get_logger
from shared.utils.metrics import GAMEWEEK_RESOLUTIONS

from ingest.football_data import FootballDataFeed, parse_fixture, record_matchday, round_label

logger = get_logger(__name__)

# Upstream statuses that make a fixture a candidate for the current round.
DETECTION_STATUSES = ("SCHEDULED", "TIMED", "IN_PLAY", "PAUSED")

PREDICTION_WINDOW_PAD = timedelta(days=1)

DateLike = Union[date, datetime]


def _utc(value: DateLike, end_of_day: bool = False) -> datetime:
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    return datetime.combine(value, time.max if end_of_day else time.min, tzinfo=timezone.utc)


def _ymd(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d")


class GameweekResolver:
    """
    Resolves the current round and serves fixture queries over the cached feed.

    Args:
        feed: Cached football-data feed.
        season: Season year used for full-round fetches; None follows the
            calendar (August rollover) at the time of each call.
        detection_window_days: Length of the detection window starting now.
    """

    def __init__(
        self,
        feed: FootballDataFeed,
        season: Optional[int] = None,
        detection_window_days: int = 14,
    ) -> None:
        self._feed = feed
        self._season = season
        self._window = timedelta(days=detection_window_days)

    @classmethod
    def from_settings(cls, feed: FootballDataFeed, settings: Settings | None = None) -> "GameweekResolver":
        settings = settings or get_settings()
        return cls(
            feed=feed,
            season=settings.season,
            detection_window_days=settings.detection_window_days,
        )

    @property
    def season(self) -> int:
        return self.season_at()

    def season_at(self, now: datetime | None = None) -> int:
        if self._season is not None:
            return self._season
        return default_season(_utc(now or datetime.now(timezone.utc)))

    def _parse(self, records: Iterable[dict[str, Any]], label: str | None = None) -> list[Fixture]:
        fixtures: list[Fixture] = []
        for raw in records:
            try:
                fixtures.append(parse_fixture(raw, self.season, label))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("fixture_parse_error", fixture_id=raw.get("id"), error=str(exc))
        fixtures.sort(key=lambda f: (f.kickoff, f.id))
        return fixtures

    async def detect_matchday(self, now: datetime | None = None) -> int:
        """Lowest matchday among scheduled or in-play fixtures in [now, now + window]."""
        now = _utc(now or datetime.now(timezone.utc))
        records = await self._feed.competition_matches(
            dateFrom=_ymd(now),
            dateTo=_ymd(now + self._window),
            status=",".join(DETECTION_STATUSES),
        )
        matchdays = [
            md
            for md in (
                record_matchday(r)
                for r in records
                if (r.get("status") or "").upper() in DETECTION_STATUSES
            )
            if md is not None
        ]
        if not matchdays:
            GAMEWEEK_RESOLUTIONS.labels(outcome="no_upcoming").inc()
            logger.warning("gameweek_no_upcoming_fixtures", window_start=_ymd(now), detected=len(records))
            raise NoUpcomingFixtures()
        return min(matchdays)

    async def round_fixtures(self, matchday: int, season: int | None = None) -> list[Fixture]:
        """Every fixture of (matchday, season), with no date filter."""
        season = season if season is not None else self.season
        records = await self._feed.competition_matches(matchday=matchday, season=season)
        label = round_label(matchday)
        return self._parse((r for r in records if record_matchday(r) == matchday), label)

    async def resolve_current_gameweek(self, now: datetime | None = None) -> Gameweek:
        """
        Resolve the current gameweek and its full fixture set.

        Raises:
            NoUpcomingFixtures: Detection found no fixture with a numeric matchday.
            EmptyRound: The full-round fetch came back empty.
            UpstreamError: Propagated from the feed.
        """
        now = _utc(now or datetime.now(timezone.utc))
        season = self.season_at(now)
        matchday = await self.detect_matchday(now)
        fixtures = await self.round_fixtures(matchday, season)
        if not fixtures:
            GAMEWEEK_RESOLUTIONS.labels(outcome="empty_round").inc()
            logger.error("gameweek_empty_round", matchday=matchday, season=season)
            raise EmptyRound(matchday, season)

        GAMEWEEK_RESOLUTIONS.labels(outcome="resolved").inc()
        logger.info("gameweek_resolved", matchday=matchday, season=season, fixtures=len(fixtures))
        return Gameweek(
            round_label=round_label(matchday),
            matchday=matchday,
            season=season,
            fixtures=fixtures,
        )

    async def fixtures_in_range(self, date_from: DateLike, date_to: DateLike) -> list[Fixture]:
        """Every fixture, whatever its status, whose kickoff falls in [date_from, date_to]."""
        start = _utc(date_from)
        end = _utc(date_to, end_of_day=True)
        if end < start:
            return []
        records = await self._feed.competition_matches(dateFrom=_ymd(start), dateTo=_ymd(end))
        return [f for f in self._parse(records) if start <= f.kickoff <= end]

    async def fixtures_for_predictions(
        self, predictions: Iterable[Prediction], pad: timedelta = PREDICTION_WINDOW_PAD
    ) -> dict[int, Fixture]:
        """
        Fixtures spanning the predictions' kickoffs, padded each side, keyed by id.

        Predictions without a kickoff do not widen the window; with no kickoffs
        at all nothing is fetched.
        """
        kickoffs = [_utc(p.kickoff) for p in predictions if p.kickoff is not None]
        if not kickoffs:
            return {}
        fixtures = await self.fixtures_in_range(min(kickoffs) - pad, max(kickoffs) + pad)
        return {f.id: f for f in fixtures}

