"""
Leaderboard aggregation.

Combines stored predictions with the latest fixture state into per-user
totals, per-round stats, the weekly prediction-vs-actual matrix and a user's
history. Everything is recomputed from scratch on every call; a prediction
whose fixture is unknown is pending, never an error.

Ranking is total points descending, then display name (case-insensitive),
then user id, so equal totals always come out in the same order.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Mapping, Optional, Protocol, Sequence

from shared.config import Settings, get_settings
from shared.models.domain import (
    AggregationResult,
    Fixture,
    LeaderboardRow,
    MatrixCell,
    Prediction,
    PrizePot,
    RoundFixtureRow,
    RoundStats,
    ScoreResult,
    UserHistory,
    UserRecord,
    WeeklyRow,
    WeeklyView,
)
from shared.models.enums import PredictionStatus
from shared.utils.logging import get_logger
from shared.utils.names import format_first_name

from scoring.engine import PENDING, score

logger = get_logger(__name__)

DEFAULT_STAKE = 5.0

_FAR_FUTURE = datetime.max.replace(tzinfo=timezone.utc)

FixtureIndex = Mapping[int, Fixture]


class _Tally(Protocol):
    total_points: int
    exact_count: int
    result_count: int
    wrong_count: int
    pending_count: int


def _tally(target: _Tally, result: ScoreResult) -> None:
    if result.points is not None:
        target.total_points += result.points
    if result.status == PredictionStatus.EXACT:
        target.exact_count += 1
    elif result.status == PredictionStatus.RESULT:
        target.result_count += 1
    elif result.status == PredictionStatus.WRONG:
        target.wrong_count += 1
    else:
        target.pending_count += 1


def _rank_key(row: LeaderboardRow | WeeklyRow) -> tuple[int, str, str]:
    return (-row.total_points, row.display_name.casefold(), row.user_id)


def _row_kickoff(row: RoundFixtureRow) -> datetime:
    if row.fixture is not None:
        return row.fixture.kickoff
    return row.prediction.kickoff or _FAR_FUTURE


def user_display_names(users: Iterable[UserRecord] | None) -> dict[str, str]:
    """First-name display names keyed by user id."""
    return {u.id: format_first_name(u.display_name or u.email) for u in users or ()}


class AggregationEngine:
    """
    Stateless aggregation over predictions and a fixture index.

    Args:
        stake: Entry fee per paid user, used for the prize pot.
    """

    def __init__(self, stake: float = DEFAULT_STAKE) -> None:
        self._stake = stake

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "AggregationEngine":
        settings = settings or get_settings()
        return cls(stake=settings.prize_stake)

    @staticmethod
    def score_prediction(prediction: Prediction, fixture: Optional[Fixture]) -> ScoreResult:
        if fixture is None:
            return PENDING
        return score(
            prediction.predicted_home,
            prediction.predicted_away,
            fixture.home_goals,
            fixture.away_goals,
        )

    @staticmethod
    def _display_name(prediction: Prediction, names: Mapping[str, str]) -> str:
        return names.get(prediction.user_id) or format_first_name(prediction.user_display_name)

    # ── Leaderboards ────────────────────────────────────────────────────

    def aggregate(
        self,
        predictions: Iterable[Prediction],
        fixtures_by_id: FixtureIndex,
        round_label: str | None = None,
        users: Iterable[UserRecord] | None = None,
    ) -> AggregationResult:
        """
        Per-user totals and per-round stats.

        Args:
            predictions: Stored predictions, any users and rounds.
            fixtures_by_id: Latest known fixtures.
            round_label: Restrict to one round (weekly view); None for the season.
            users: Optional roster; its names take precedence over the
                names denormalized on predictions.
        """
        names = user_display_names(users)
        by_user: dict[str, LeaderboardRow] = {}
        by_round: dict[str, RoundStats] = {}
        settled: dict[str, bool] = {}

        for prediction in predictions:
            if round_label is not None and prediction.round != round_label:
                continue
            fixture = fixtures_by_id.get(prediction.fixture_id)
            result = self.score_prediction(prediction, fixture)

            row = by_user.get(prediction.user_id)
            if row is None:
                row = by_user[prediction.user_id] = LeaderboardRow(
                    user_id=prediction.user_id,
                    display_name=self._display_name(prediction, names),
                )
            _tally(row, result)

            stats = by_round.get(prediction.round)
            if stats is None:
                stats = by_round[prediction.round] = RoundStats(round=prediction.round)
                settled[prediction.round] = True
            _tally(stats, result)
            if fixture is None or not fixture.is_settled:
                settled[prediction.round] = False
            stats.rows.append(
                RoundFixtureRow(
                    prediction=prediction,
                    fixture=fixture,
                    points=result.points,
                    status=result.status,
                )
            )

        for label, stats in by_round.items():
            stats.rows.sort(key=lambda r: (_row_kickoff(r), r.prediction.fixture_id, r.prediction.user_id))
            stats.is_complete = settled[label] and bool(stats.rows)
            kickoffs = [_row_kickoff(r) for r in stats.rows]
            stats.start = min(kickoffs) if kickoffs and min(kickoffs) != _FAR_FUTURE else None

        rows = sorted(by_user.values(), key=_rank_key)
        rounds = sorted(by_round.values(), key=lambda s: (s.start or _FAR_FUTURE, s.round))
        logger.debug(
            "predictions_aggregated",
            users=len(rows),
            rounds=len(rounds),
            round_filter=round_label,
        )
        return AggregationResult(by_user=rows, by_round=rounds)

    def prize_pot(self, users: Iterable[UserRecord]) -> PrizePot:
        paid = sum(1 for u in users if u.has_paid)
        return PrizePot(paid_count=paid, stake=self._stake, total=round(paid * self._stake, 2))

    # ── Weekly view ─────────────────────────────────────────────────────

    @staticmethod
    def current_round(predictions: Iterable[Prediction]) -> Optional[str]:
        """The round whose latest predicted kickoff is the most recent."""
        latest: dict[str, datetime] = {}
        for p in predictions:
            if p.kickoff is None:
                continue
            if p.round not in latest or p.kickoff > latest[p.round]:
                latest[p.round] = p.kickoff
        if not latest:
            return None
        return max(latest.items(), key=lambda item: (item[1], item[0]))[0]

    def weekly_view(
        self,
        predictions: Sequence[Prediction],
        fixtures_by_id: FixtureIndex,
        users: Sequence[UserRecord] | None = None,
        round_label: str | None = None,
    ) -> WeeklyView:
        """
        Live matrix for one round (the current round by default).

        Incomplete fixtures are scored as far as they go. Until a fixture of
        the round has left not_started, cells say whether a prediction exists but not what it is.
        """
        users = users or []
        pot = self.prize_pot(users)
        label = round_label or self.current_round(predictions)
        if label is None:
            return WeeklyView(prize_pot=pot)

        fixtures = sorted(
            (f for f in fixtures_by_id.values() if f.round == label),
            key=lambda f: (f.kickoff, f.id),
        )
        reveal = any(f.status.has_started for f in fixtures)
        totals = self.aggregate(predictions, fixtures_by_id, round_label=label, users=users)

        picks: dict[str, dict[int, Prediction]] = {}
        for p in predictions:
            if p.round == label:
                picks.setdefault(p.user_id, {})[p.fixture_id] = p

        rows: list[WeeklyRow] = []
        for leader in totals.by_user:
            mine = picks.get(leader.user_id, {})
            cells: list[MatrixCell] = []
            for fixture in fixtures:
                prediction = mine.get(fixture.id)
                if prediction is None:
                    cells.append(MatrixCell(fixture_id=fixture.id))
                    continue
                result = self.score_prediction(prediction, fixture)
                cells.append(
                    MatrixCell(
                        fixture_id=fixture.id,
                        has_prediction=prediction.is_complete,
                        predicted_home=prediction.predicted_home if reveal else None,
                        predicted_away=prediction.predicted_away if reveal else None,
                        points=result.points,
                        status=result.status,
                    )
                )
            rows.append(
                WeeklyRow(
                    user_id=leader.user_id,
                    display_name=leader.display_name,
                    total_points=leader.total_points,
                    cells=cells,
                )
            )

        return WeeklyView(
            round=label,
            fixtures=fixtures,
            earliest_kickoff=fixtures[0].kickoff if fixtures else None,
            reveal_predictions=reveal,
            rows=rows,
            prize_pot=pot,
        )

    # ── History ─────────────────────────────────────────────────────────

    def user_history(
        self,
        user_id: str,
        predictions: Iterable[Prediction],
        fixtures_by_id: FixtureIndex,
    ) -> UserHistory:
        """Season totals for one user plus their completed rounds, latest first."""
        mine = [p for p in predictions if p.user_id == user_id]
        result = self.aggregate(mine, fixtures_by_id)
        history = UserHistory(user_id=user_id)
        if result.by_user:
            overall = result.by_user[0]
            history.total_points = overall.total_points
            history.exact_count = overall.exact_count
            history.result_count = overall.result_count
            history.wrong_count = overall.wrong_count
        history.rounds = sorted(
            (r for r in result.by_round if r.is_complete),
            key=lambda r: r.start or _FAR_FUTURE,
            reverse=True,
        )
        return history
