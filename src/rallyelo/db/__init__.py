"""
Database module for rallyelo.

Provides SQLAlchemy ORM models and session management.

Usage:
    from rallyelo.db import get_session, Match, UserSport

    with get_session() as session:
        pending = session.query(Match).filter(Match.status == "pending").all()
"""

from rallyelo.db.models import (
    Base,
    User,
    Sport,
    UserSport,
    Match,
    EloAdjustment,
    AdminAuditLog,
)
from rallyelo.db.session import get_session, get_engine, get_db, unit_of_work, SessionLocal

__all__ = [
    # Base
    "Base",
    # Models
    "User",
    "Sport",
    "UserSport",
    "Match",
    "EloAdjustment",
    "AdminAuditLog",
    # Session
    "get_session",
    "get_engine",
    "get_db",
    "unit_of_work",
    "SessionLocal",
]
