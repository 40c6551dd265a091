"""
Scoring endpoints.

Predictions and users live in an external store, so callers post them with
each request; fixtures are looked up through the cached feed.

POST /v1/leaderboard                — Season (or single-round) standings.
POST /v1/leaderboard/weekly         — Live matrix for the current round.
POST /v1/stats/{user_id}            — One user's totals and completed rounds.
POST /v1/predictions/lock-state     — Whether each prediction can still be edited.
"""
from __future__ import annotations

from typing import Iterable, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from shared.models.domain import (
    Fixture,
    LeaderboardRow,
    LockDecision,
    Prediction,
    PrizePot,
    RoundStats,
    UserHistory,
    UserRecord,
    WeeklyView,
)
from shared.utils.logging import get_logger
from shared.utils.metrics import AGGREGATION_DURATION

from api.dependencies import get_engine, get_policy, get_resolver
from ingest.gameweek import GameweekResolver
from scoring.aggregation import AggregationEngine
from scoring.locking import LockingPolicy

logger = get_logger(__name__)
router = APIRouter(prefix="/v1", tags=["scoring"])


class PredictionBatch(BaseModel):
    predictions: list[Prediction] = Field(default_factory=list)
    users: list[UserRecord] = Field(default_factory=list)


class WeeklyRequest(PredictionBatch):
    round: Optional[str] = None


class LeaderboardResponse(BaseModel):
    rows: list[LeaderboardRow]
    rounds: list[RoundStats]
    prize_pot: PrizePot


async def _with_full_rounds(
    resolver: GameweekResolver,
    fixtures: dict[int, Fixture],
    rounds: Iterable[str] | None = None,
    pending_only: bool = False,
) -> dict[int, Fixture]:
    """
    Add every fixture of the rounds already present (optionally only ``rounds``).

    With ``pending_only`` a round is fetched only while one of its known
    fixtures is still not started; a settled round cannot change a lock.
    """
    wanted = set(rounds) if rounds is not None else None
    matchdays = {
        (f.matchday, f.season)
        for f in fixtures.values()
        if f.matchday is not None
        and (wanted is None or f.round in wanted)
        and not (pending_only and f.status.has_started)
    }
    merged = dict(fixtures)
    for matchday, season in sorted(matchdays):
        for fixture in await resolver.round_fixtures(matchday, season):
            merged.setdefault(fixture.id, fixture)
    return merged


@router.post("/leaderboard", response_model=LeaderboardResponse)
async def leaderboard(
    body: PredictionBatch,
    round: Optional[str] = Query(None, description="Restrict to one round label"),
    resolver: GameweekResolver = Depends(get_resolver),
    engine: AggregationEngine = Depends(get_engine),
) -> LeaderboardResponse:
    fixtures = await resolver.fixtures_for_predictions(body.predictions)
    with AGGREGATION_DURATION.labels(view="season").time():
        result = engine.aggregate(body.predictions, fixtures, round_label=round, users=body.users)
    return LeaderboardResponse(
        rows=result.by_user,
        rounds=result.by_round,
        prize_pot=engine.prize_pot(body.users),
    )


@router.post("/leaderboard/weekly", response_model=WeeklyView)
async def weekly_leaderboard(
    body: WeeklyRequest,
    resolver: GameweekResolver = Depends(get_resolver),
    engine: AggregationEngine = Depends(get_engine),
) -> WeeklyView:
    label = body.round or engine.current_round(body.predictions)
    in_round = [p for p in body.predictions if p.round == label]
    fixtures = await resolver.fixtures_for_predictions(in_round)
    if label is not None:
        fixtures = await _with_full_rounds(resolver, fixtures, [label])
    with AGGREGATION_DURATION.labels(view="weekly").time():
        return engine.weekly_view(body.predictions, fixtures, users=body.users, round_label=label)


@router.post("/stats/{user_id}", response_model=UserHistory)
async def user_stats(
    user_id: str,
    body: PredictionBatch,
    resolver: GameweekResolver = Depends(get_resolver),
    engine: AggregationEngine = Depends(get_engine),
) -> UserHistory:
    mine = [p for p in body.predictions if p.user_id == user_id]
    fixtures = await resolver.fixtures_for_predictions(mine)
    with AGGREGATION_DURATION.labels(view="history").time():
        return engine.user_history(user_id, mine, fixtures)


@router.post("/predictions/lock-state", response_model=list[LockDecision])
async def lock_state(
    body: PredictionBatch,
    resolver: GameweekResolver = Depends(get_resolver),
    policy: LockingPolicy = Depends(get_policy),
) -> list[LockDecision]:
    fixtures = await resolver.fixtures_for_predictions(body.predictions)
    fixtures = await _with_full_rounds(resolver, fixtures, pending_only=True)
    decisions = policy.decisions(body.predictions, fixtures)
    logger.debug("lock_state_evaluated", predictions=len(decisions))
    return decisions
