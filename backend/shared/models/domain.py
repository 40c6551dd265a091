"""
Pydantic v2 domain models shared across the core and the API.
These are the canonical wire/internal representations; nothing here is persisted.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from shared.models.enums import FixtureStatus, LockState, PredictionStatus


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


class FrozenModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True, frozen=True)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive datetimes from the store are taken to be UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ── Fixtures ────────────────────────────────────────────────────────────
class TeamRef(FrozenModel):
    name: str
    short_name: str
    code: str
    crest_url: Optional[str] = None


class Fixture(FrozenModel):
    """One scheduled match as last reported by the provider."""
    id: int
    kickoff: datetime
    status: FixtureStatus
    upstream_status: str = ""
    round: str
    matchday: Optional[int] = None
    season: int
    home_team: TeamRef
    away_team: TeamRef
    home_goals: Optional[int] = None
    away_goals: Optional[int] = None

    normalize_kickoff = field_validator("kickoff")(_as_utc)

    @property
    def has_result(self) -> bool:
        return self.home_goals is not None and self.away_goals is not None

    @property
    def is_settled(self) -> bool:
        """Finished, or both goal counts are known."""
        return self.status == FixtureStatus.FINISHED or self.has_result


class Gameweek(DomainModel):
    round_label: str
    matchday: int
    season: int
    fixtures: list[Fixture] = Field(default_factory=list)


# ── Store records (read-only inputs) ────────────────────────────────────
class Prediction(DomainModel):
    """One user's guess for one fixture, as held by the external store."""
    user_id: str = Field(validation_alias=AliasChoices("user_id", "userId"))
    user_display_name: str = Field(
        default="", validation_alias=AliasChoices("user_display_name", "userDisplayName")
    )
    fixture_id: int = Field(validation_alias=AliasChoices("fixture_id", "fixtureId"))
    predicted_home: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("predicted_home", "predHome")
    )
    predicted_away: Optional[int] = Field(
        default=None, ge=0, validation_alias=AliasChoices("predicted_away", "predAway")
    )
    locked: bool = False
    round: str = "Unknown"
    kickoff: Optional[datetime] = None

    normalize_kickoff = field_validator("kickoff")(_as_utc)

    @property
    def is_complete(self) -> bool:
        return self.predicted_home is not None and self.predicted_away is not None


class UserRecord(DomainModel):
    id: str
    display_name: str = Field(
        default="", validation_alias=AliasChoices("display_name", "displayName")
    )
    email: str = ""
    is_admin: bool = Field(default=False, validation_alias=AliasChoices("is_admin", "isAdmin"))
    has_paid: bool = Field(default=False, validation_alias=AliasChoices("has_paid", "hasPaid"))


# ── Scoring / aggregation outputs ───────────────────────────────────────
class ScoreResult(FrozenModel):
    points: Optional[int] = None
    status: PredictionStatus = PredictionStatus.PENDING


class LeaderboardRow(DomainModel):
    user_id: str
    display_name: str
    total_points: int = 0
    exact_count: int = 0
    result_count: int = 0
    wrong_count: int = 0
    pending_count: int = 0


class RoundFixtureRow(DomainModel):
    prediction: Prediction
    fixture: Optional[Fixture] = None
    points: Optional[int] = None
    status: PredictionStatus = PredictionStatus.PENDING


class RoundStats(DomainModel):
    round: str
    total_points: int = 0
    exact_count: int = 0
    result_count: int = 0
    wrong_count: int = 0
    pending_count: int = 0
    is_complete: bool = False
    start: Optional[datetime] = None
    rows: list[RoundFixtureRow] = Field(default_factory=list)


class AggregationResult(DomainModel):
    by_user: list[LeaderboardRow] = Field(default_factory=list)
    by_round: list[RoundStats] = Field(default_factory=list)


class PrizePot(DomainModel):
    paid_count: int = 0
    stake: float = 0.0
    total: float = 0.0


class MatrixCell(DomainModel):
    fixture_id: int
    has_prediction: bool = False
    predicted_home: Optional[int] = None
    predicted_away: Optional[int] = None
    points: Optional[int] = None
    status: PredictionStatus = PredictionStatus.PENDING


class WeeklyRow(DomainModel):
    user_id: str
    display_name: str
    total_points: int = 0
    cells: list[MatrixCell] = Field(default_factory=list)


class WeeklyView(DomainModel):
    """Live prediction-vs-actual matrix for one round."""
    round: Optional[str] = None
    fixtures: list[Fixture] = Field(default_factory=list)
    earliest_kickoff: Optional[datetime] = None
    reveal_predictions: bool = False
    rows: list[WeeklyRow] = Field(default_factory=list)
    prize_pot: PrizePot = Field(default_factory=PrizePot)


class UserHistory(DomainModel):
    user_id: str
    total_points: int = 0
    exact_count: int = 0
    result_count: int = 0
    wrong_count: int = 0
    rounds: list[RoundStats] = Field(default_factory=list)


class LockDecision(DomainModel):
    user_id: str
    fixture_id: int
    state: LockState
    can_edit: bool
