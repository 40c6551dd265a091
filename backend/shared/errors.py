"""
Error taxonomy for the fixture sync and scoring core.

Every error carries a stable ``kind`` used as the ``error`` field of API
responses; the message is meant to be shown to users verbatim.
"""
from __future__ import annotations

from typing import Any


class PredictorError(Exception):
    """Base class for all domain errors."""

    kind = "predictor_error"


# ── Upstream ────────────────────────────────────────────────────────────
class UpstreamError(PredictorError):
    kind = "upstream_error"


class UpstreamUnavailable(UpstreamError):
    """Network or transport failure talking to the provider. Never retried here."""

    kind = "upstream_unavailable"

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Football API unreachable ({path}): {reason}")


class UpstreamHttpError(UpstreamError):
    """Non-2xx status from the provider. The body is kept for diagnostics."""

    kind = "upstream_http_error"

    def __init__(self, status: int, body: Any) -> None:
        self.status = status
        self.body = body
        detail = body
        if isinstance(body, dict):
            detail = body.get("message") or body.get("error") or body
        super().__init__(f"Football API error {status}: {detail}")


class MalformedUpstreamBody(UpstreamError):
    """Provider returned something other than the JSON document we expected."""

    kind = "malformed_upstream_body"

    def __init__(self, body: Any, message: str = "Football API returned non-JSON response") -> None:
        self.body = body
        super().__init__(message)


# ── Configuration ───────────────────────────────────────────────────────
class MissingCredential(PredictorError):
    kind = "missing_credential"

    def __init__(self, message: str = "Football-Data API token not configured") -> None:
        super().__init__(message)


# ── Gameweek resolution ─────────────────────────────────────────────────
class GameweekError(PredictorError):
    kind = "gameweek_error"


class NoUpcomingFixtures(GameweekError):
    kind = "no_upcoming_fixtures"

    def __init__(self, message: str = "No upcoming matchdays found in the detection window.") -> None:
        super().__init__(message)


class EmptyRound(GameweekError):
    kind = "empty_round"

    def __init__(self, matchday: int, season: int) -> None:
        self.matchday = matchday
        self.season = season
        super().__init__(f"No matches returned for matchday {matchday} of season {season}.")


# ── Prediction editing ──────────────────────────────────────────────────
class PredictionFrozen(PredictorError):
    """The fixture (or its gameweek) has started; the prediction can no longer change."""

    kind = "prediction_frozen"

    def __init__(self, fixture_id: int) -> None:
        self.fixture_id = fixture_id
        super().__init__(f"Predictions are locked for fixture {fixture_id}.")
