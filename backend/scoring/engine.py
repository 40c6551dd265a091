"""
Prediction scoring.

  - 20 points: exact scoreline
  - 6 points: correct outcome (home win / draw / away win)
  - 0 points: wrong
  - None: pending (no prediction or no result yet)
"""
from __future__ import annotations

from typing import Optional

from shared.models.domain import ScoreResult
from shared.models.enums import OutcomeClass, PredictionStatus

EXACT_POINTS = 20
RESULT_POINTS = 6
WRONG_POINTS = 0

PENDING = ScoreResult(points=None, status=PredictionStatus.PENDING)


def outcome_class(home: int, away: int) -> OutcomeClass:
    """Outcome from the sign of the goal difference."""
    if home > away:
        return OutcomeClass.HOME_WIN
    if home < away:
        return OutcomeClass.AWAY_WIN
    return OutcomeClass.DRAW


def score(
    predicted_home: Optional[int],
    predicted_away: Optional[int],
    actual_home: Optional[int],
    actual_away: Optional[int],
) -> ScoreResult:
    """Score one prediction against one result. Pure and total."""
    if predicted_home is None or predicted_away is None or actual_home is None or actual_away is None:
        return PENDING
    if predicted_home == actual_home and predicted_away == actual_away:
        return ScoreResult(points=EXACT_POINTS, status=PredictionStatus.EXACT)
    if outcome_class(predicted_home, predicted_away) == outcome_class(actual_home, actual_away):
        return ScoreResult(points=RESULT_POINTS, status=PredictionStatus.RESULT)
    return ScoreResult(points=WRONG_POINTS, status=PredictionStatus.WRONG)
