"""
Unit tests for prediction scoring.

Run: pytest backend/tests/test_scoring.py -v
"""
from __future__ import annotations

import pytest

from shared.models.enums import OutcomeClass, PredictionStatus
from scoring.engine import EXACT_POINTS, RESULT_POINTS, WRONG_POINTS, outcome_class, score


# ── outcome_class ───────────────────────────────────────────────────────

def test_outcome_class_home_win() -> None:
    assert outcome_class(3, 1) == OutcomeClass.HOME_WIN


def test_outcome_class_away_win() -> None:
    assert outcome_class(0, 2) == OutcomeClass.AWAY_WIN


def test_outcome_class_draw() -> None:
    assert outcome_class(2, 2) == OutcomeClass.DRAW


# ── score ───────────────────────────────────────────────────────────────

def test_exact_scoreline_scores_twenty() -> None:
    result = score(2, 1, 2, 1)
    assert result.points == EXACT_POINTS == 20
    assert result.status == PredictionStatus.EXACT


def test_correct_outcome_scores_six() -> None:
    result = score(1, 0, 3, 1)
    assert result.points == RESULT_POINTS == 6
    assert result.status == PredictionStatus.RESULT


def test_different_draw_scores_six() -> None:
    assert score(1, 1, 2, 2).points == 6


def test_wrong_outcome_scores_zero() -> None:
    result = score(0, 0, 1, 0)
    assert result.points == WRONG_POINTS == 0
    assert result.status == PredictionStatus.WRONG


@pytest.mark.parametrize(
    "ph, pa, ah, aa",
    [
        (None, 1, 1, 1),
        (1, None, 1, 1),
        (1, 1, None, 1),
        (1, 1, 1, None),
        (None, None, None, None),
    ],
)
def test_missing_goal_is_pending(ph, pa, ah, aa) -> None:
    result = score(ph, pa, ah, aa)
    assert result.points is None
    assert result.status == PredictionStatus.PENDING


def test_zero_goals_are_not_missing() -> None:
    assert score(0, 0, 0, 0).status == PredictionStatus.EXACT


@pytest.mark.parametrize("h, a", [(0, 0), (1, 0), (3, 3), (7, 2)])
def test_identical_scoreline_always_exact(h: int, a: int) -> None:
    assert score(h, a, h, a).points == 20


def test_same_outcome_different_margin() -> None:
    assert score(2, 0, 3, 1).status == PredictionStatus.RESULT


def test_draw_predicted_home_win_actual() -> None:
    assert score(1, 1, 2, 0).points == 0
