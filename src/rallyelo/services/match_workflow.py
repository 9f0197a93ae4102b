"""
Match confirmation workflow.

The state machine for a reported match:

    pending --confirm--> confirmed --revert (admin)--> (deleted)
    pending --deny-----> denied
    pending --cancel---> cancelled
    pending --dispute (admin)--> disputed

confirmed, denied, cancelled and disputed accept no further normal
operations. Admin edit can rewrite scores and status, but never
confirms a match or un-confirms one, and never flips the winner of a
confirmed match.

Every operation follows the same shape:
1. Validate inputs that need no database access
2. Load the match and check status/actor guards (no locks yet)
3. Inside unit_of_work(): lock the rows being changed, re-check the
   status on the locked match, mutate, commit
4. Any exception inside step 3 rolls back everything

Actor rules: the submitter asserts a result and the *other* player
confirms or denies it, so no single player can move ratings alone.

Usage:
    workflow = MatchWorkflow(get_sport_registry())

    match = workflow.submit(db, submitter_id=1, sport_id="table_tennis",
                            opponent_id=2, player_score=11, opponent_score=7)
    workflow.confirm(db, match.id, actor_id=2)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from rallyelo.db.models import Match, User
from rallyelo.db.session import unit_of_work
from rallyelo.elo.calculator import EloUpdate, compute
from rallyelo.errors import (
    ConfirmedStatusEditError,
    DuplicatePendingMatchError,
    InvalidStatusError,
    MatchNotConfirmedError,
    MatchNotPendingError,
    NotMatchParticipantError,
    NotSubmitterError,
    OpponentNotFoundError,
    ScoreOutOfRangeError,
    SelfMatchError,
    SubmitterCannotRespondError,
    TiedScoreError,
    UserBannedError,
    UserNotFoundError,
    ValidationError,
    WinnerChangeError,
)
from rallyelo.match_statuses import (
    ALL_MATCH_STATUSES,
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    STATUS_DENIED,
    STATUS_DISPUTED,
    STATUS_PENDING,
    can_transition,
)
from rallyelo.repositories import matches as match_store
from rallyelo.repositories import ratings as rating_store
from rallyelo.repositories import users as user_store
from rallyelo.services.admin import require_admin
from rallyelo.sports.registry import SportConfig, SportRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RevertResult:
    """What an admin revert restored."""

    match_id: int
    sport_id: str
    player1_id: int
    player2_id: int
    player1_restored_elo: int
    player2_restored_elo: int

    def to_dict(self) -> dict:
        return {
            "match_id": self.match_id,
            "sport": self.sport_id,
            "player1_id": self.player1_id,
            "player2_id": self.player2_id,
            "player1_restored_elo": self.player1_restored_elo,
            "player2_restored_elo": self.player2_restored_elo,
        }


def _require_pending(match: Match) -> None:
    if not match.is_pending:
        raise MatchNotPendingError()


def _require_transition(match: Match, target: str) -> None:
    if not can_transition(match.status, target):
        raise MatchNotPendingError()


def _require_responder(match: Match, actor_id: int) -> None:
    """Actor must be a player of the match, and not the one who submitted it."""
    if not match.involves(actor_id):
        raise NotMatchParticipantError()
    if match.submitted_by == actor_id:
        raise SubmitterCannotRespondError()


def validate_scores(player_score: int, opponent_score: int) -> None:
    """Checks that need no sport configuration: non-negative and not a draw."""
    if player_score < 0 or opponent_score < 0:
        raise ScoreOutOfRangeError("scores cannot be negative", field="player_score")
    if player_score == opponent_score:
        raise TiedScoreError(field="opponent_score")


def check_score_bounds(sport: SportConfig, scores: dict[str, int]) -> None:
    for field, score in scores.items():
        if not sport.score_in_range(score):
            raise ScoreOutOfRangeError(
                f"score must be between {sport.min_score} and {sport.max_score}",
                field=field,
            )


def _require_rating_snapshot(match: Match) -> None:
    """A revert needs the pre-match ratings written by confirm."""
    if match.player1_elo_before is None or match.player2_elo_before is None:
        raise MatchNotConfirmedError("match has no rating snapshot to restore")


class MatchWorkflow:
    """Submit, confirm, deny, cancel, and the admin revert/edit/dispute operations."""

    def __init__(self, sports: SportRegistry):
        self.sports = sports

    # ------------------------------------------------------------------
    # Player operations
    # ------------------------------------------------------------------

    def submit(
        self,
        session: Session,
        submitter_id: int,
        sport_id: str,
        opponent_id: int,
        player_score: int,
        opponent_score: int,
    ) -> Match:
        """
        Create a pending match with the submitter as player1.

        Raises:
            SelfMatchError, TiedScoreError, ScoreOutOfRangeError: invalid input
            SportNotFoundError: unknown or inactive sport
            OpponentNotFoundError / UserBannedError: bad opponent or banned player
            DuplicatePendingMatchError: the pair already has a pending match
        """
        if opponent_id == submitter_id:
            raise SelfMatchError(field="opponent_id")
        validate_scores(player_score, opponent_score)

        sport = self.sports.get_active_sport(sport_id)
        check_score_bounds(sport, {"player_score": player_score, "opponent_score": opponent_score})

        with unit_of_work(session):
            # Locking both users serializes concurrent submits for the same pair,
            # which makes the check-then-insert below race-free
            users = user_store.lock_users(session, (submitter_id, opponent_id))
            submitter = users.get(submitter_id)
            opponent = users.get(opponent_id)
            if submitter is None:
                raise UserNotFoundError()
            if opponent is None:
                raise OpponentNotFoundError(field="opponent_id")
            if submitter.is_banned:
                raise UserBannedError("you are banned from submitting matches")
            if opponent.is_banned:
                raise UserBannedError("opponent is banned", field="opponent_id")

            existing = match_store.find_pending_between(session, sport.id, submitter_id, opponent_id)
            if existing is not None:
                logger.info(
                    "Rejected duplicate pending match: sport=%s players=%d,%d existing=%d",
                    sport.id, submitter_id, opponent_id, existing.id,
                )
                raise DuplicatePendingMatchError()

            match = match_store.create_match(
                session,
                sport_id=sport.id,
                player1_id=submitter_id,
                player2_id=opponent_id,
                player1_score=player_score,
                player2_score=opponent_score,
                submitted_by=submitter_id,
            )

        logger.info(
            "Match %d submitted: sport=%s %d vs %d (%d-%d)",
            match.id, sport.id, submitter_id, opponent_id, player_score, opponent_score,
        )
        return match

    def confirm(self, session: Session, match_id: int, actor_id: int) -> Match:
        """
        Confirm a pending match and apply the rating change.

        Both rating rows are locked before reading, and the match status is
        re-checked on the locked row, so a second confirmation racing this
        one fails with MatchNotPendingError instead of applying twice.
        """
        match = match_store.get_match(session, match_id)
        _require_transition(match, STATUS_CONFIRMED)
        _require_responder(match, actor_id)

        k_factor = self.sports.get_k_factor(match.sport_id)
        default_elo = self.sports.get_default_elo(match.sport_id)

        with unit_of_work(session):
            match = match_store.get_match(session, match_id, for_update=True)
            _require_transition(match, STATUS_CONFIRMED)

            ratings = rating_store.lock_ratings(
                session, match.sport_id, (match.player1_id, match.player2_id), default_elo
            )
            row1 = ratings[match.player1_id]
            row2 = ratings[match.player2_id]

            player1_won = match.winner_id == match.player1_id
            update: EloUpdate = compute(row1.current_elo, row2.current_elo, player1_won, k_factor)

            match_store.mark_confirmed(match, update)
            rating_store.apply_result(row1, update.new_a, won=player1_won)
            rating_store.apply_result(row2, update.new_b, won=not player1_won)

        logger.info(
            "Match %d confirmed by %d: sport=%s k=%d player%d %d->%d (%+d), player%d %d->%d (%+d)",
            match.id, actor_id, match.sport_id, k_factor,
            match.player1_id, update.before_a, update.new_a, update.delta_a,
            match.player2_id, update.before_b, update.new_b, update.delta_b,
        )
        return match

    def deny(self, session: Session, match_id: int, actor_id: int) -> Match:
        """Reject a pending match. Ratings are not touched."""
        match = match_store.get_match(session, match_id)
        _require_transition(match, STATUS_DENIED)
        _require_responder(match, actor_id)

        with unit_of_work(session):
            match = match_store.get_match(session, match_id, for_update=True)
            _require_transition(match, STATUS_DENIED)
            match_store.mark_denied(match)

        logger.info("Match %d denied by %d", match.id, actor_id)
        return match

    def cancel(self, session: Session, match_id: int, actor_id: int) -> Match:
        """Withdraw a pending match. Only its submitter may do this."""
        match = match_store.get_match(session, match_id)
        _require_transition(match, STATUS_CANCELLED)
        if match.submitted_by != actor_id:
            raise NotSubmitterError()

        with unit_of_work(session):
            match = match_store.get_match(session, match_id, for_update=True)
            _require_transition(match, STATUS_CANCELLED)
            match_store.mark_cancelled(match)

        logger.info("Match %d cancelled by submitter %d", match.id, actor_id)
        return match

    # ------------------------------------------------------------------
    # Admin operations
    # ------------------------------------------------------------------

    def revert(self, session: Session, match_id: int, admin: User) -> RevertResult:
        """
        Undo a confirmed match.

        Both players get their stored pre-match rating back, one win/loss
        is removed from each player's counters, and the match row is
        deleted. All of it commits together or not at all.
        """
        require_admin(admin)
        match = match_store.get_match(session, match_id)
        if not match.is_confirmed:
            raise MatchNotConfirmedError()
        _require_rating_snapshot(match)

        default_elo = self.sports.get_default_elo(match.sport_id)

        with unit_of_work(session):
            match = match_store.get_match(session, match_id, for_update=True)
            if not match.is_confirmed:
                raise MatchNotConfirmedError()
            _require_rating_snapshot(match)

            ratings = rating_store.lock_ratings(
                session, match.sport_id, (match.player1_id, match.player2_id), default_elo
            )
            player1_won = match.winner_id == match.player1_id
            rating_store.undo_result(
                ratings[match.player1_id], match.player1_elo_before, won=player1_won
            )
            rating_store.undo_result(
                ratings[match.player2_id], match.player2_elo_before, won=not player1_won
            )

            result = RevertResult(
                match_id=match.id,
                sport_id=match.sport_id,
                player1_id=match.player1_id,
                player2_id=match.player2_id,
                player1_restored_elo=match.player1_elo_before,
                player2_restored_elo=match.player2_elo_before,
            )
            match_store.delete_match(session, match)

        logger.info(
            "Match %d reverted by admin %d: player%d -> %d, player%d -> %d",
            result.match_id, admin.id,
            result.player1_id, result.player1_restored_elo,
            result.player2_id, result.player2_restored_elo,
        )
        return result

    def edit(
        self,
        session: Session,
        match_id: int,
        admin: User,
        player1_score: Optional[int] = None,
        player2_score: Optional[int] = None,
        status: Optional[str] = None,
    ) -> Match:
        """
        Rewrite scores and/or status directly, bypassing the normal guards.

        The winner is re-derived from the scores, which must fall inside the
        sport's bounds. Ratings are NOT recalculated, so a confirmed match
        is protected: its status stays confirmed and its winner cannot
        change, or a later revert would undo the wrong result. Moving a
        match into confirmed is left to confirm(), which writes the rating
        snapshot. Reopening a match as pending respects the one pending
        match per pair rule.
        """
        require_admin(admin)
        if player1_score is None and player2_score is None and status is None:
            raise ValidationError("nothing to update")
        if status is not None and status not in ALL_MATCH_STATUSES:
            raise InvalidStatusError(field="status")

        with unit_of_work(session):
            match = match_store.get_match(session, match_id, for_update=True)
            new_p1 = match.player1_score if player1_score is None else player1_score
            new_p2 = match.player2_score if player2_score is None else player2_score
            validate_scores(new_p1, new_p2)
            check_score_bounds(
                self.sports.get_sport(match.sport_id),
                {"player1_score": new_p1, "player2_score": new_p2},
            )
            new_winner_id = match.player1_id if new_p1 > new_p2 else match.player2_id

            if status is not None and status != match.status:
                if STATUS_CONFIRMED in (status, match.status):
                    raise ConfirmedStatusEditError(field="status")
                if status == STATUS_PENDING:
                    self._require_no_other_pending(session, match)
            if match.is_confirmed and new_winner_id != match.winner_id:
                raise WinnerChangeError(field="player1_score")

            changes = {}
            if (new_p1, new_p2) != (match.player1_score, match.player2_score):
                changes["scores"] = [
                    f"{match.player1_score}-{match.player2_score}", f"{new_p1}-{new_p2}"
                ]
                match.player1_score = new_p1
                match.player2_score = new_p2
                match.winner_id = new_winner_id
            if status is not None and status != match.status:
                changes["status"] = [match.status, status]
                match.status = status
            session.flush()

        logger.info("Match %d edited by admin %d: %s", match.id, admin.id, changes or "no changes")
        return match

    def _require_no_other_pending(self, session: Session, match: Match) -> None:
        # Same user locks as submit, so a concurrent submit for the pair waits
        user_store.lock_users(session, (match.player1_id, match.player2_id))
        existing = match_store.find_pending_between(
            session, match.sport_id, match.player1_id, match.player2_id
        )
        if existing is not None and existing.id != match.id:
            raise DuplicatePendingMatchError(field="status")

    def dispute(self, session: Session, match_id: int, admin: User) -> Match:
        """Flag a pending match as disputed for manual resolution."""
        require_admin(admin)
        match = match_store.get_match(session, match_id)
        _require_pending(match)

        with unit_of_work(session):
            match = match_store.get_match(session, match_id, for_update=True)
            _require_pending(match)
            match.status = STATUS_DISPUTED

        logger.info("Match %d marked disputed by admin %d", match.id, admin.id)
        return match
