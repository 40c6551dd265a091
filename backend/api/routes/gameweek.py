"""
Gameweek and fixture endpoints.

GET /v1/gameweek/current — Current round with its full fixture set.
GET /v1/fixtures         — Fixtures kicking off in [date_from, date_to].
GET /v1/fixtures/live    — Snapshot held by the live refresher.
"""
from __future__ import annotations

from datetime import date
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query

from shared.models.domain import Fixture, Gameweek

from api.dependencies import get_refresher, get_resolver
from ingest.gameweek import GameweekResolver
from scheduler.refresh import PeriodicRefresher

router = APIRouter(prefix="/v1", tags=["fixtures"])


@router.get("/gameweek/current", response_model=Gameweek)
async def current_gameweek(
    resolver: GameweekResolver = Depends(get_resolver),
) -> Gameweek:
    return await resolver.resolve_current_gameweek()


@router.get("/fixtures", response_model=list[Fixture])
async def fixtures_in_range(
    date_from: date = Query(..., description="First kickoff day (UTC, inclusive)"),
    date_to: date = Query(..., description="Last kickoff day (UTC, inclusive)"),
    resolver: GameweekResolver = Depends(get_resolver),
) -> list[Fixture]:
    return await resolver.fixtures_in_range(date_from, date_to)


@router.get("/fixtures/live")
async def live_fixtures(
    refresher: Optional[PeriodicRefresher] = Depends(get_refresher),
) -> dict[str, Any]:
    """
    Latest live-window snapshot, sorted by kickoff.

    ``error`` holds the text of the last failed refresh; the fixtures are
    then the last good snapshot.
    """
    if refresher is None:
        return {"enabled": False, "fixtures": [], "last_updated": None, "error": None}
    fixtures = sorted(refresher.fixtures_by_id.values(), key=lambda f: (f.kickoff, f.id))
    return {
        "enabled": True,
        "fixtures": [f.model_dump(mode="json") for f in fixtures],
        "last_updated": refresher.last_updated.isoformat() if refresher.last_updated else None,
        "error": refresher.error,
    }
