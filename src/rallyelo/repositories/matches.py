"""Match records and their status transitions."""

from __future__ import annotations

from typing import Optional, Sequence

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rallyelo.db.models import Match, utcnow
from rallyelo.elo.calculator import EloUpdate
from rallyelo.errors import DuplicatePendingMatchError, MatchNotFoundError
from rallyelo.match_statuses import (
    STATUS_CANCELLED,
    STATUS_CONFIRMED,
    STATUS_DENIED,
    STATUS_PENDING,
)

PENDING_PAIR_INDEX = "uq_matches_pending_pair"


def get_match(session: Session, match_id: int, *, for_update: bool = False) -> Match:
    """
    Return the match, raising MatchNotFoundError if absent.

    With ``for_update`` the row is locked and re-read from the database
    even if an older copy is already in the session.
    """
    if for_update:
        match = session.get(Match, match_id, with_for_update=True, populate_existing=True)
    else:
        match = session.get(Match, match_id)
    if match is None:
        raise MatchNotFoundError()
    return match


def find_pending_between(
    session: Session,
    sport_id: str,
    player_a_id: int,
    player_b_id: int,
) -> Optional[Match]:
    """Pending match between two players in a sport, in either player order."""
    return (
        session.query(Match)
        .filter(
            Match.sport_id == sport_id,
            Match.status == STATUS_PENDING,
            or_(
                and_(Match.player1_id == player_a_id, Match.player2_id == player_b_id),
                and_(Match.player1_id == player_b_id, Match.player2_id == player_a_id),
            ),
        )
        .first()
    )


def create_match(
    session: Session,
    sport_id: str,
    player1_id: int,
    player2_id: int,
    player1_score: int,
    player2_score: int,
    submitted_by: int,
) -> Match:
    """
    Insert a new pending match. The winner is the player with the higher score.

    Raises:
        DuplicatePendingMatchError: if the pending-pair unique index rejects the row
    """
    winner_id = player1_id if player1_score > player2_score else player2_id
    match = Match(
        sport_id=sport_id,
        player1_id=player1_id,
        player2_id=player2_id,
        player1_score=player1_score,
        player2_score=player2_score,
        winner_id=winner_id,
        status=STATUS_PENDING,
        submitted_by=submitted_by,
    )
    session.add(match)
    try:
        session.flush()
    except IntegrityError as exc:
        if PENDING_PAIR_INDEX in str(exc.orig):
            raise DuplicatePendingMatchError() from exc
        raise
    return match


def mark_confirmed(match: Match, update: EloUpdate) -> None:
    """Write the confirmed status and the six rating fields."""
    match.status = STATUS_CONFIRMED
    match.confirmed_at = utcnow()
    match.player1_elo_before = update.before_a
    match.player1_elo_after = update.new_a
    match.player1_elo_delta = update.delta_a
    match.player2_elo_before = update.before_b
    match.player2_elo_after = update.new_b
    match.player2_elo_delta = update.delta_b


def mark_denied(match: Match) -> None:
    match.status = STATUS_DENIED
    match.denied_at = utcnow()


def mark_cancelled(match: Match) -> None:
    match.status = STATUS_CANCELLED


def delete_match(session: Session, match: Match) -> None:
    session.delete(match)
    session.flush()


def list_matches(
    session: Session,
    *,
    user_id: Optional[int] = None,
    sport_id: Optional[str] = None,
    statuses: Optional[Sequence[str]] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Match]:
    """Matches newest first, optionally filtered by player, sport and status."""
    query = session.query(Match)
    if user_id is not None:
        query = query.filter(or_(Match.player1_id == user_id, Match.player2_id == user_id))
    if sport_id is not None:
        query = query.filter(Match.sport_id == sport_id)
    if statuses:
        query = query.filter(Match.status.in_(list(statuses)))
    return (
        query.order_by(Match.created_at.desc(), Match.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def list_confirmed_for_user(session: Session, user_id: int, sport_id: str) -> list[Match]:
    """Confirmed matches of a player in a sport, oldest first."""
    return (
        session.query(Match)
        .filter(
            Match.sport_id == sport_id,
            Match.status == STATUS_CONFIRMED,
            or_(Match.player1_id == user_id, Match.player2_id == user_id),
        )
        .order_by(Match.confirmed_at.asc(), Match.id.asc())
        .all()
    )
