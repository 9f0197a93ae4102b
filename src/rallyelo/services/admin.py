"""
Admin moderation: bans, manual rating overrides and the audit trail.

Ban, unban and adjust_elo write their admin_audit_log row in the same
transaction as the change they record. Workflow operations (revert, edit,
dispute) commit on their own, and record_admin_action then writes and
commits their audit row in a second transaction.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from rallyelo.db.models import AdminAuditLog, EloAdjustment, Match, User
from rallyelo.db.session import unit_of_work
from rallyelo.elo.constants import MAX_ADJUSTED_ELO, MIN_ADJUSTED_ELO
from rallyelo.errors import AdminRequiredError, PermissionDeniedError, ValidationError
from rallyelo.match_statuses import STATUS_DISPUTED
from rallyelo.repositories import ratings as rating_store
from rallyelo.repositories import users as user_store
from rallyelo.sports.registry import SportRegistry

logger = logging.getLogger(__name__)

MIN_REASON_LENGTH = 5
MAX_REASON_LENGTH = 500


def require_admin(actor: User) -> None:
    if not actor.is_admin:
        raise AdminRequiredError()


def _validate_reason(reason: str) -> str:
    reason = (reason or "").strip()
    if not MIN_REASON_LENGTH <= len(reason) <= MAX_REASON_LENGTH:
        raise ValidationError(
            f"reason must be between {MIN_REASON_LENGTH} and {MAX_REASON_LENGTH} characters",
            field="reason",
        )
    return reason


def log_admin_action(
    session: Session,
    admin_id: int,
    action: str,
    target_type: str,
    target_id: Optional[int] = None,
    details: Optional[dict[str, Any]] = None,
) -> AdminAuditLog:
    """Add an audit entry to the current transaction."""
    entry = AdminAuditLog(
        admin_id=admin_id,
        action=action,
        target_type=target_type,
        target_id=target_id,
        details=details,
    )
    session.add(entry)
    session.flush()
    return entry


def record_admin_action(
    session: Session,
    admin_id: int,
    action: str,
    target_type: str,
    target_id: Optional[int] = None,
    details: Optional[dict[str, Any]] = None,
) -> AdminAuditLog:
    """Write and commit an audit entry for an action that has already committed."""
    with unit_of_work(session):
        entry = log_admin_action(session, admin_id, action, target_type, target_id, details)
    return entry


def ban_user(session: Session, admin: User, user_id: int, reason: str) -> User:
    """Ban a user. Admins cannot ban themselves or other admins."""
    require_admin(admin)
    reason = _validate_reason(reason)
    if user_id == admin.id:
        raise ValidationError("cannot ban yourself", field="user_id")

    with unit_of_work(session):
        user = user_store.get_user(session, user_id)
        if user.is_admin:
            raise PermissionDeniedError("cannot ban another admin")
        user_store.set_banned(user, True, reason=reason, banned_by=admin.id)
        log_admin_action(
            session, admin.id, "ban_user", "user", user.id,
            {"reason": reason, "user": user.login},
        )

    logger.info("User %d banned by admin %d", user_id, admin.id)
    return user


def unban_user(session: Session, admin: User, user_id: int) -> User:
    require_admin(admin)
    with unit_of_work(session):
        user = user_store.get_user(session, user_id)
        user_store.set_banned(user, False)
        log_admin_action(session, admin.id, "unban_user", "user", user.id, {"user": user.login})

    logger.info("User %d unbanned by admin %d", user_id, admin.id)
    return user


def adjust_elo(
    session: Session,
    sports: SportRegistry,
    admin: User,
    user_id: int,
    sport_id: str,
    new_elo: int,
    reason: str,
) -> EloAdjustment:
    """
    Overwrite a player's current rating in a sport.

    Uses the same locked read-then-write as match confirmation, so an
    override cannot be lost to a confirmation committing at the same time.
    """
    require_admin(admin)
    reason = _validate_reason(reason)
    if not MIN_ADJUSTED_ELO <= new_elo <= MAX_ADJUSTED_ELO:
        raise ValidationError(
            f"new_elo must be between {MIN_ADJUSTED_ELO} and {MAX_ADJUSTED_ELO}",
            field="new_elo",
        )
    sport = sports.get_active_sport(sport_id)

    with unit_of_work(session):
        user = user_store.get_user(session, user_id)
        row = rating_store.lock_ratings(session, sport.id, [user.id], sport.default_elo)[user.id]
        old_elo = rating_store.set_rating(row, new_elo)

        adjustment = EloAdjustment(
            user_id=user.id,
            sport_id=sport.id,
            old_elo=old_elo,
            new_elo=new_elo,
            reason=reason,
            adjusted_by=admin.id,
        )
        session.add(adjustment)
        log_admin_action(
            session, admin.id, "adjust_elo", "user", user.id,
            {"sport": sport.id, "old_elo": old_elo, "new_elo": new_elo, "reason": reason, "user": user.login},
        )

    logger.info(
        "ELO of user %d in %s adjusted %d -> %d by admin %d",
        user_id, sport.id, old_elo, new_elo, admin.id,
    )
    return adjustment


def list_elo_adjustments(session: Session, limit: int = 100) -> list[EloAdjustment]:
    return (
        session.query(EloAdjustment)
        .order_by(EloAdjustment.created_at.desc(), EloAdjustment.id.desc())
        .limit(limit)
        .all()
    )


def list_audit_log(session: Session, limit: int = 100) -> list[AdminAuditLog]:
    return (
        session.query(AdminAuditLog)
        .order_by(AdminAuditLog.created_at.desc(), AdminAuditLog.id.desc())
        .limit(limit)
        .all()
    )


def list_disputed_matches(session: Session) -> list[Match]:
    return (
        session.query(Match)
        .filter(Match.status == STATUS_DISPUTED)
        .order_by(Match.created_at.desc())
        .all()
    )
