"""
Domain errors raised by the match workflow, the stores and admin services.

Every error carries a stable, client-safe ``reason`` string and the HTTP
status the web layer should answer with. Persistence errors are not
wrapped here: they propagate as-is (after rollback) and the web layer
turns them into a generic 500.
"""

from __future__ import annotations


class RallyEloError(Exception):
    """Base class for all client-facing domain errors."""

    status_code = 400
    reason = "request failed"

    def __init__(self, reason: str | None = None, *, field: str | None = None):
        self.reason = reason or self.reason
        self.field = field
        super().__init__(self.reason)

    def to_dict(self) -> dict:
        payload = {"error": self.reason}
        if self.field:
            payload["field"] = self.field
        return payload


# =============================================================================
# Validation errors (detected before touching the database)
# =============================================================================

class ValidationError(RallyEloError):
    status_code = 400
    reason = "invalid request"


class SelfMatchError(ValidationError):
    reason = "cannot submit a match against yourself"


class TiedScoreError(ValidationError):
    reason = "match cannot end in a tie"


class ScoreOutOfRangeError(ValidationError):
    reason = "score is out of range for this sport"


class InvalidStatusError(ValidationError):
    reason = "invalid match status"


# =============================================================================
# Not found
# =============================================================================

class NotFoundError(RallyEloError):
    status_code = 404
    reason = "not found"


class MatchNotFoundError(NotFoundError):
    reason = "match not found"


class UserNotFoundError(NotFoundError):
    reason = "user not found"


class OpponentNotFoundError(UserNotFoundError):
    reason = "opponent not found"


class SportNotFoundError(NotFoundError):
    reason = "sport not found"


# =============================================================================
# State guards (match loaded, nothing mutated yet)
# =============================================================================

class StateGuardError(RallyEloError):
    status_code = 400
    reason = "operation not allowed in the current state"


class MatchNotPendingError(StateGuardError):
    reason = "match is not pending"


class MatchNotConfirmedError(StateGuardError):
    reason = "can only revert confirmed matches"


class DuplicatePendingMatchError(StateGuardError):
    status_code = 409
    reason = "a pending match already exists between these players for this sport"


class UserBannedError(StateGuardError):
    reason = "user is banned"


class ConfirmedStatusEditError(StateGuardError):
    reason = "only confirmation can confirm a match and only revert can undo it"


class WinnerChangeError(StateGuardError):
    reason = "cannot change the winner of a confirmed match, revert it instead"


# =============================================================================
# Permission errors (wrong actor)
# =============================================================================

class PermissionDeniedError(RallyEloError):
    status_code = 403
    reason = "permission denied"


class NotMatchParticipantError(PermissionDeniedError):
    reason = "you are not part of this match"


class SubmitterCannotRespondError(PermissionDeniedError):
    reason = "you cannot respond to your own match submission"


class NotSubmitterError(PermissionDeniedError):
    reason = "only the submitter can cancel this match"


class AdminRequiredError(PermissionDeniedError):
    reason = "admin access required"
