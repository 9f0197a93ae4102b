"""User lookups and ban bookkeeping."""

from __future__ import annotations

from typing import Iterable, Optional

from sqlalchemy.orm import Session

from rallyelo.db.models import User, utcnow
from rallyelo.errors import UserNotFoundError


def get_user(session: Session, user_id: int) -> User:
    """Return the user, raising UserNotFoundError if absent."""
    user = session.get(User, user_id)
    if user is None:
        raise UserNotFoundError()
    return user


def lock_users(session: Session, user_ids: Iterable[int]) -> dict[int, User]:
    """
    Load users with a row lock, in ascending id order.

    Locking in a fixed order keeps two transactions that touch the same
    pair of users from deadlocking.
    """
    ids = sorted(set(user_ids))
    users = (
        session.query(User)
        .filter(User.id.in_(ids))
        .order_by(User.id)
        .with_for_update()
        .populate_existing()
        .all()
    )
    return {u.id: u for u in users}


def get_user_by_intra_id(session: Session, intra_id: int) -> Optional[User]:
    return session.query(User).filter(User.intra_id == intra_id).first()


def create_or_update_user(
    session: Session,
    intra_id: int,
    login: str,
    display_name: str = "",
    avatar_url: Optional[str] = None,
    campus: Optional[str] = None,
    is_admin: Optional[bool] = None,
) -> User:
    """Create a user from provider data, or refresh an existing one by intra_id."""
    normalized = login.strip().lower()
    if not normalized:
        raise ValueError("Login cannot be empty")

    user = get_user_by_intra_id(session, intra_id)
    if user:
        user.login = normalized
        user.display_name = display_name or user.display_name
        user.avatar_url = avatar_url
        user.campus = campus
        if is_admin is not None:
            user.is_admin = is_admin
    else:
        user = User(
            intra_id=intra_id,
            login=normalized,
            display_name=display_name or normalized,
            avatar_url=avatar_url,
            campus=campus,
            is_admin=bool(is_admin),
        )
        session.add(user)
    session.flush()
    return user


def set_banned(
    user: User,
    banned: bool,
    reason: Optional[str] = None,
    banned_by: Optional[int] = None,
) -> None:
    """Set or clear the ban fields on a user."""
    user.is_banned = banned
    if banned:
        user.ban_reason = reason
        user.banned_at = utcnow()
        user.banned_by = banned_by
    else:
        user.ban_reason = None
        user.banned_at = None
        user.banned_by = None


def list_banned_users(session: Session) -> list[User]:
    return (
        session.query(User)
        .filter(User.is_banned.is_(True))
        .order_by(User.banned_at.desc())
        .all()
    )
