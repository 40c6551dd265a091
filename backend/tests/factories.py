"""Builders for fixtures, predictions and football-data payloads used across tests."""
from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx

from shared.models.domain import Fixture, Prediction, TeamRef, UserRecord
from shared.models.enums import FixtureStatus
from shared.utils.http_client import UpstreamClient

SEASON = 2025
BASE_URL = "https://api.football-data.test/v4"


def utc(*args: int) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def team(code: str) -> TeamRef:
    return TeamRef(name=f"{code} FC", short_name=code.title(), code=code)


def make_fixture(
    fixture_id: int,
    kickoff: datetime,
    status: FixtureStatus = FixtureStatus.NOT_STARTED,
    home_goals: Optional[int] = None,
    away_goals: Optional[int] = None,
    matchday: int = 14,
    round_label: Optional[str] = None,
) -> Fixture:
    return Fixture(
        id=fixture_id,
        kickoff=kickoff,
        status=status,
        round=round_label or f"Matchday {matchday}",
        matchday=matchday,
        season=SEASON,
        home_team=team("HOM"),
        away_team=team("AWY"),
        home_goals=home_goals,
        away_goals=away_goals,
    )


def make_prediction(
    user_id: str,
    fixture_id: int,
    home: Optional[int],
    away: Optional[int],
    round_label: str = "Matchday 14",
    kickoff: Optional[datetime] = None,
    name: str = "",
    locked: bool = False,
) -> Prediction:
    return Prediction(
        user_id=user_id,
        user_display_name=name,
        fixture_id=fixture_id,
        predicted_home=home,
        predicted_away=away,
        round=round_label,
        kickoff=kickoff,
        locked=locked,
    )


def make_user(user_id: str, name: str = "", email: str = "", has_paid: bool = False) -> UserRecord:
    return UserRecord(id=user_id, display_name=name, email=email, has_paid=has_paid)


def match_record(
    match_id: int,
    utc_date: str,
    status: str = "SCHEDULED",
    matchday: Optional[int] = 14,
    home: Optional[int] = None,
    away: Optional[int] = None,
) -> dict[str, Any]:
    """One element of a football-data ``matches`` array."""
    return {
        "id": match_id,
        "utcDate": utc_date,
        "status": status,
        "matchday": matchday,
        "season": {"startDate": f"{SEASON}-08-15"},
        "homeTeam": {"name": "Arsenal FC", "shortName": "Arsenal", "tla": "ARS", "crest": None},
        "awayTeam": {"name": "Chelsea FC", "shortName": "Chelsea", "tla": "CHE", "crest": None},
        "score": {"fullTime": {"home": home, "away": away}},
    }


def matches_body(*records: dict[str, Any]) -> dict[str, Any]:
    return {"count": len(records), "matches": list(records)}


class UpstreamRecorder:
    """
    httpx.MockTransport handler that records every request.

    ``respond`` receives the request and returns an httpx.Response; by default
    every request gets an empty matches list.
    """

    def __init__(self, respond: Optional[Callable[[httpx.Request], httpx.Response]] = None) -> None:
        self.requests: list[httpx.Request] = []
        self._respond = respond or (lambda request: httpx.Response(200, json=matches_body()))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self._respond(request)

    @property
    def calls(self) -> int:
        return len(self.requests)

    def client(self, token: str = "test-token") -> UpstreamClient:
        return UpstreamClient(BASE_URL, token, transport=httpx.MockTransport(self))


def json_response(payload: Any, status: int = 200) -> httpx.Response:
    return httpx.Response(status, content=json.dumps(payload).encode(), headers={"content-type": "application/json"})
