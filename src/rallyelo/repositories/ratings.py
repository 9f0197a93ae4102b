"""
Per-sport player ratings (user_sports rows).

Rows are lazily materialized: a user without a row in a sport is treated
as having the sport's default rating and no matches. Mutations always go
through lock_ratings() first, which creates any missing rows and then
re-reads all of them with SELECT ... FOR UPDATE, so concurrent
confirmations touching the same player apply their deltas one after the
other instead of overwriting each other.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from rallyelo.db.models import User, UserSport


def default_rating(user_id: int, sport_id: str, default_elo: int) -> UserSport:
    """Transient (unsaved) row describing a player who has not played yet."""
    return UserSport(
        user_id=user_id,
        sport_id=sport_id,
        current_elo=default_elo,
        highest_elo=default_elo,
        matches_played=0,
        wins=0,
        losses=0,
    )


def get_rating(session: Session, user_id: int, sport_id: str, default_elo: int) -> UserSport:
    """Unlocked read of a player's rating, or the defaults when there is no row."""
    row = session.get(UserSport, (user_id, sport_id))
    if row is None:
        return default_rating(user_id, sport_id, default_elo)
    return row


def _ensure_rows(session: Session, sport_id: str, user_ids: list[int], default_elo: int) -> None:
    """Insert default rows for users that have none, ignoring ones that already exist."""
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        insert = pg_insert
    elif dialect == "sqlite":
        insert = sqlite_insert
    else:
        raise NotImplementedError(f"Unsupported database dialect: {dialect}")

    stmt = insert(UserSport).values([
        {
            "user_id": user_id,
            "sport_id": sport_id,
            "current_elo": default_elo,
            "highest_elo": default_elo,
            "matches_played": 0,
            "wins": 0,
            "losses": 0,
        }
        for user_id in user_ids
    ])
    session.execute(stmt.on_conflict_do_nothing(index_elements=["user_id", "sport_id"]))


def lock_ratings(
    session: Session,
    sport_id: str,
    user_ids: Iterable[int],
    default_elo: int,
) -> dict[int, UserSport]:
    """
    Lock and return the rating rows of the given users in one sport.

    Missing rows are created with ``default_elo`` first. Rows are locked
    in ascending user id order to avoid deadlocks between transactions
    locking the same two players.
    """
    ids = sorted(set(user_ids))
    _ensure_rows(session, sport_id, ids, default_elo)
    rows = (
        session.query(UserSport)
        .filter(UserSport.sport_id == sport_id, UserSport.user_id.in_(ids))
        .order_by(UserSport.user_id)
        .with_for_update()
        .populate_existing()
        .all()
    )
    return {row.user_id: row for row in rows}


def apply_result(row: UserSport, new_elo: int, won: bool) -> None:
    """Record a confirmed match on a locked rating row."""
    row.current_elo = new_elo
    row.highest_elo = max(row.highest_elo, new_elo)
    row.matches_played += 1
    if won:
        row.wins += 1
    else:
        row.losses += 1


def undo_result(row: UserSport, restored_elo: int, won: bool) -> None:
    """
    Undo a confirmed match on a locked rating row.

    Counters are decremented but never go below zero. highest_elo is left
    alone (it is a historical maximum), except that it can never be below
    the restored rating.
    """
    row.current_elo = restored_elo
    row.highest_elo = max(row.highest_elo, restored_elo)
    if won and row.wins > 0:
        row.wins -= 1
        row.matches_played -= 1
    elif not won and row.losses > 0:
        row.losses -= 1
        row.matches_played -= 1


def set_rating(row: UserSport, new_elo: int) -> int:
    """Overwrite the current rating of a locked row, returning the old value."""
    old_elo = row.current_elo
    row.current_elo = new_elo
    row.highest_elo = max(row.highest_elo, new_elo)
    return old_elo


def list_sport_ratings(session: Session, sport_id: str, include_banned: bool = False) -> list[UserSport]:
    """All rating rows in a sport, with their users loaded."""
    query = (
        session.query(UserSport)
        .join(User, UserSport.user_id == User.id)
        .filter(UserSport.sport_id == sport_id)
    )
    if not include_banned:
        query = query.filter(User.is_banned.is_(False))
    return query.all()
