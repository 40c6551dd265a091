"""Domain enumerations for the Matchday Predictor core."""
from __future__ import annotations

from enum import Enum


class FixtureStatus(str, Enum):
    NOT_STARTED = "not_started"
    LIVE = "live"
    FINISHED = "finished"
    SUSPENDED = "suspended"
    POSTPONED = "postponed"

    @property
    def has_started(self) -> bool:
        return self != FixtureStatus.NOT_STARTED


class PredictionStatus(str, Enum):
    PENDING = "pending"
    EXACT = "exact"
    RESULT = "result"
    WRONG = "wrong"


class OutcomeClass(str, Enum):
    HOME_WIN = "home_win"
    DRAW = "draw"
    AWAY_WIN = "away_win"


class LockState(str, Enum):
    EDITABLE = "editable"
    LOCKED = "locked"
    FROZEN = "frozen"
