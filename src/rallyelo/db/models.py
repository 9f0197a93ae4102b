"""
SQLAlchemy ORM models for rallyelo.

The schema is built around per-sport ratings: a user has one row in
user_sports for every sport they have a confirmed match in, and matches
carry the rating snapshot that was applied when they were confirmed.

Key design decisions:
- Sports are configuration rows, not an enum (new sports are an INSERT)
- A missing user_sports row means "default rating, no matches yet"
- Matches keep before/after/delta ratings so an admin can revert them
- At most one pending match per unordered player pair per sport
  (enforced in the submit transaction, backed by a partial unique index
  on PostgreSQL)

Tables:
- users: Organization members (identity comes from the OAuth provider)
- sports: Sport configuration (K-factor, score bounds, default rating)
- user_sports: Current/highest rating and win/loss counters per user and sport
- matches: Reported games and their confirmation lifecycle
- elo_adjustments: Manual rating overrides made by admins
- admin_audit_log: Trail of admin actions
"""

from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from rallyelo.match_statuses import (
    ALL_MATCH_STATUSES,
    STATUS_CONFIRMED,
    STATUS_PENDING,
)


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the DateTime columns below."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _status_check_sql() -> str:
    quoted = ", ".join(f"'{s}'" for s in ALL_MATCH_STATUSES)
    return f"status IN ({quoted})"


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""
    pass


# =============================================================================
# User Models
# =============================================================================

class User(Base):
    """
    An organization member.

    Rows are created/updated by the OAuth login flow; the workflow only
    reads them (opponent lookup, ban checks, admin checks).
    """

    __tablename__ = "users"

    id: Mapped[int] = mapped_column(primary_key=True)
    # Identifier from the OAuth provider
    intra_id: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    login: Mapped[str] = mapped_column(String(100), nullable=False)
    display_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    avatar_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    campus: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    is_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    is_banned: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default="false")
    ban_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    banned_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    banned_by: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id"), nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_users_login", "login"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, login='{self.login}', admin={self.is_admin})>"


# =============================================================================
# Sport Models
# =============================================================================

class Sport(Base):
    """
    Sport configuration.

    Read through SportRegistry (sports/registry.py), which caches the
    whole table in memory. Changes here need registry.invalidate() to
    become visible before the cache TTL runs out.
    """

    __tablename__ = "sports"

    # Slug, e.g. 'table_tennis'
    id: Mapped[str] = mapped_column(String(50), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    icon_url: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    default_elo: Mapped[int] = mapped_column(Integer, nullable=False, default=1000, server_default="1000")
    k_factor: Mapped[int] = mapped_column(Integer, nullable=False, default=32, server_default="32")
    min_score: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    max_score: Mapped[int] = mapped_column(Integer, nullable=False, default=999, server_default="999")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default="true")
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_sports_active", "is_active", "sort_order"),
        CheckConstraint("k_factor > 0", name="ck_sports_k_factor_positive"),
        CheckConstraint("min_score >= 0 AND max_score >= min_score", name="ck_sports_score_bounds"),
    )

    def __repr__(self) -> str:
        return f"<Sport(id='{self.id}', k={self.k_factor}, active={self.is_active})>"


class UserSport(Base):
    """
    A user's rating and counters in one sport.

    current_elo only moves through the locked read-then-write helpers in
    repositories/ratings.py.
    """

    __tablename__ = "user_sports"

    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    sport_id: Mapped[str] = mapped_column(ForeignKey("sports.id", ondelete="CASCADE"), primary_key=True)
    current_elo: Mapped[int] = mapped_column(Integer, nullable=False, default=1000, server_default="1000")
    highest_elo: Mapped[int] = mapped_column(Integer, nullable=False, default=1000, server_default="1000")
    matches_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    wins: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    losses: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    user: Mapped["User"] = relationship()

    __table_args__ = (
        Index("idx_user_sports_elo", "sport_id", "current_elo"),
        Index("idx_user_sports_user", "user_id"),
        CheckConstraint("highest_elo >= current_elo", name="ck_user_sports_highest"),
        CheckConstraint("matches_played = wins + losses", name="ck_user_sports_counters"),
        CheckConstraint("wins >= 0 AND losses >= 0", name="ck_user_sports_non_negative"),
    )

    @property
    def win_rate(self) -> float:
        """Win percentage rounded to one decimal (0.0 with no matches)."""
        if not self.matches_played:
            return 0.0
        return round(self.wins * 100.0 / self.matches_played, 1)

    def __repr__(self) -> str:
        return (
            f"<UserSport(user_id={self.user_id}, sport='{self.sport_id}', "
            f"elo={self.current_elo}, {self.wins}W/{self.losses}L)>"
        )


# =============================================================================
# Match Models
# =============================================================================

class Match(Base):
    """
    A reported game result and its confirmation lifecycle.

    player1 is always the submitter's side of the submission (submission
    order, not skill order). The six *_elo_* columns are filled in one go
    when the opponent confirms, and are what an admin revert restores from.

    Status lifecycle:
    - 'pending': Submitted, waiting for the opponent
    - 'confirmed': Opponent confirmed, ratings applied
    - 'denied': Opponent rejected the result
    - 'cancelled': Submitter withdrew the result
    - 'disputed': Flagged by an admin for manual resolution
    """

    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(primary_key=True)
    sport_id: Mapped[str] = mapped_column(ForeignKey("sports.id"), nullable=False)

    player1_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    player2_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    player1_score: Mapped[int] = mapped_column(Integer, nullable=False)
    player2_score: Mapped[int] = mapped_column(Integer, nullable=False)
    winner_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default=STATUS_PENDING)
    submitted_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)

    # Rating snapshot, populated on confirmation
    player1_elo_before: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    player1_elo_after: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    player1_elo_delta: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    player2_elo_before: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    player2_elo_after: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    player2_elo_delta: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    confirmed_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    denied_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    player1: Mapped["User"] = relationship(foreign_keys=[player1_id])
    player2: Mapped["User"] = relationship(foreign_keys=[player2_id])

    __table_args__ = (
        Index("idx_matches_sport", "sport_id"),
        Index("idx_matches_status", "status"),
        Index("idx_matches_player1", "player1_id"),
        Index("idx_matches_player2", "player2_id"),
        Index("idx_matches_created_at", "created_at"),
        CheckConstraint("player1_id <> player2_id", name="ck_matches_distinct_players"),
        CheckConstraint(
            "winner_id = player1_id OR winner_id = player2_id",
            name="ck_matches_winner_is_player",
        ),
        CheckConstraint(
            "player1_score >= 0 AND player2_score >= 0",
            name="ck_matches_scores_non_negative",
        ),
        CheckConstraint("player1_score <> player2_score", name="ck_matches_no_draw"),
        CheckConstraint(_status_check_sql(), name="ck_matches_status"),
    )

    @property
    def is_pending(self) -> bool:
        return self.status == STATUS_PENDING

    @property
    def is_confirmed(self) -> bool:
        return self.status == STATUS_CONFIRMED

    def involves(self, user_id: int) -> bool:
        """Whether the user is one of the two players."""
        return user_id in (self.player1_id, self.player2_id)

    def opponent_of(self, user_id: int) -> int:
        return self.player2_id if user_id == self.player1_id else self.player1_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "sport": self.sport_id,
            "player1_id": self.player1_id,
            "player2_id": self.player2_id,
            "player1_score": self.player1_score,
            "player2_score": self.player2_score,
            "winner_id": self.winner_id,
            "status": self.status,
            "submitted_by": self.submitted_by,
            "player1_elo_before": self.player1_elo_before,
            "player1_elo_after": self.player1_elo_after,
            "player1_elo_delta": self.player1_elo_delta,
            "player2_elo_before": self.player2_elo_before,
            "player2_elo_after": self.player2_elo_after,
            "player2_elo_delta": self.player2_elo_delta,
            "confirmed_at": self.confirmed_at.isoformat() if self.confirmed_at else None,
            "denied_at": self.denied_at.isoformat() if self.denied_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return (
            f"<Match(id={self.id}, sport='{self.sport_id}', "
            f"{self.player1_id} vs {self.player2_id}, status='{self.status}')>"
        )


# Backstop for the one-pending-match-per-pair rule. least/greatest make the
# pair unordered; the expression index is only created on PostgreSQL.
pending_pair_index = Index(
    "uq_matches_pending_pair",
    Match.sport_id,
    func.least(Match.player1_id, Match.player2_id),
    func.greatest(Match.player1_id, Match.player2_id),
    unique=True,
    postgresql_where=text(f"status = '{STATUS_PENDING}'"),
)
pending_pair_index.ddl_if(dialect="postgresql")


# =============================================================================
# Admin Models
# =============================================================================

class EloAdjustment(Base):
    """Manual rating override made by an admin."""

    __tablename__ = "elo_adjustments"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    sport_id: Mapped[str] = mapped_column(ForeignKey("sports.id"), nullable=False)
    old_elo: Mapped[int] = mapped_column(Integer, nullable=False)
    new_elo: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    adjusted_by: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_elo_adjustments_user_id", "user_id"),
        Index("idx_elo_adjustments_created_at", "created_at"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "sport": self.sport_id,
            "old_elo": self.old_elo,
            "new_elo": self.new_elo,
            "reason": self.reason,
            "adjusted_by": self.adjusted_by,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class AdminAuditLog(Base):
    """Audit trail entry for an admin action."""

    __tablename__ = "admin_audit_log"

    id: Mapped[int] = mapped_column(primary_key=True)
    admin_id: Mapped[int] = mapped_column(ForeignKey("users.id"), nullable=False)
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    target_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    details: Mapped[Optional[dict]] = mapped_column(
        JSON().with_variant(JSONB, "postgresql"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    __table_args__ = (
        Index("idx_admin_audit_log_admin_id", "admin_id"),
        Index("idx_admin_audit_log_created_at", "created_at"),
        Index("idx_admin_audit_log_action", "action"),
    )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "admin_id": self.admin_id,
            "action": self.action,
            "target_type": self.target_type,
            "target_id": self.target_id,
            "details": self.details,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self) -> str:
        return f"<AdminAuditLog(action='{self.action}', target={self.target_type}:{self.target_id})>"
