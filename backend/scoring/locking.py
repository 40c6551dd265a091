"""
Prediction editing policy.

    editable ──save──▶ locked ──unlock──▶ editable
        │                 │
        └──── kickoff ────┴──▶ frozen (terminal)

State is derived from fixture state on every call. The only thing stored is
the advisory ``locked`` flag on the prediction; ``frozen`` is never persisted.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, Sequence

from shared.errors import PredictionFrozen
from shared.models.domain import Fixture, LockDecision, Prediction
from shared.models.enums import LockState
from shared.utils.logging import get_logger

logger = get_logger(__name__)


def _now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(timezone.utc)
    return now if now.tzinfo else now.replace(tzinfo=timezone.utc)


class LockingPolicy:
    """Decides whether a prediction may still be changed."""

    @staticmethod
    def gameweek_started(round_fixtures: Iterable[Fixture], now: datetime | None = None) -> bool:
        """True once any fixture has left not_started or the earliest kickoff has passed."""
        fixtures = list(round_fixtures)
        if not fixtures:
            return False
        if any(f.status.has_started for f in fixtures):
            return True
        return min(f.kickoff for f in fixtures) <= _now(now)

    def state(
        self,
        prediction: Prediction,
        fixture: Optional[Fixture],
        round_fixtures: Iterable[Fixture] = (),
        now: datetime | None = None,
    ) -> LockState:
        if fixture is None:
            return LockState.FROZEN
        if self.gameweek_started([fixture, *round_fixtures], now):
            return LockState.FROZEN
        if prediction.locked:
            return LockState.LOCKED
        return LockState.EDITABLE

    def can_edit(
        self,
        prediction: Prediction,
        fixture: Optional[Fixture],
        round_fixtures: Iterable[Fixture] = (),
        now: datetime | None = None,
    ) -> bool:
        return self.state(prediction, fixture, round_fixtures, now) == LockState.EDITABLE

    def save(
        self,
        prediction: Prediction,
        predicted_home: int,
        predicted_away: int,
        fixture: Optional[Fixture],
        round_fixtures: Iterable[Fixture] = (),
        now: datetime | None = None,
    ) -> Prediction:
        """
        Store new scores and lock the prediction.

        A locked prediction may be saved again before kickoff; it stays locked.

        Raises:
            PredictionFrozen: The fixture or its gameweek has started.
        """
        if self.state(prediction, fixture, round_fixtures, now) == LockState.FROZEN:
            logger.info("prediction_save_rejected", fixture_id=prediction.fixture_id, user_id=prediction.user_id)
            raise PredictionFrozen(prediction.fixture_id)
        update = {"predicted_home": predicted_home, "predicted_away": predicted_away, "locked": True}
        if fixture is not None:
            update.update(kickoff=fixture.kickoff, round=fixture.round)
        # model_copy skips validation
        return Prediction.model_validate({**prediction.model_dump(), **update})

    def unlock(
        self,
        prediction: Prediction,
        fixture: Optional[Fixture],
        round_fixtures: Iterable[Fixture] = (),
        now: datetime | None = None,
    ) -> Prediction:
        """
        Raises:
            PredictionFrozen: The fixture or its gameweek has started.
        """
        if self.state(prediction, fixture, round_fixtures, now) == LockState.FROZEN:
            raise PredictionFrozen(prediction.fixture_id)
        return prediction.model_copy(update={"locked": False})

    def decisions(
        self,
        predictions: Sequence[Prediction],
        fixtures_by_id: Mapping[int, Fixture],
        now: datetime | None = None,
    ) -> list[LockDecision]:
        """Lock state for each prediction, with each fixture's round as its gameweek."""
        rounds: dict[str, list[Fixture]] = {}
        for fixture in fixtures_by_id.values():
            rounds.setdefault(fixture.round, []).append(fixture)

        out: list[LockDecision] = []
        for prediction in predictions:
            fixture = fixtures_by_id.get(prediction.fixture_id)
            siblings = rounds.get(fixture.round, []) if fixture is not None else []
            state = self.state(prediction, fixture, siblings, now)
            out.append(
                LockDecision(
                    user_id=prediction.user_id,
                    fixture_id=prediction.fixture_id,
                    state=state,
                    can_edit=state == LockState.EDITABLE,
                )
            )
        return out
