"""
FastAPI dependencies: current user, admin check, shared services.

Authentication itself (OAuth login, token checks) lives outside this
package; it stores the authenticated user's id in the signed session
cookie under SESSION_USER_KEY, which is all these dependencies rely on.
"""

from __future__ import annotations

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from rallyelo.db.models import User
from rallyelo.db.session import get_db
from rallyelo.errors import AdminRequiredError
from rallyelo.services.match_workflow import MatchWorkflow
from rallyelo.sports.registry import SportRegistry, get_sport_registry

SESSION_USER_KEY = "user_id"


def get_registry() -> SportRegistry:
    return get_sport_registry()


def get_workflow(sports: SportRegistry = Depends(get_registry)) -> MatchWorkflow:
    return MatchWorkflow(sports)


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """The logged-in user, or 401."""
    user_id = request.session.get(SESSION_USER_KEY)
    if not user_id:
        raise HTTPException(status_code=401, detail="unauthorized")
    user = db.get(User, int(user_id))
    if user is None:
        raise HTTPException(status_code=401, detail="unauthorized")
    return user


def get_admin_user(user: User = Depends(get_current_user)) -> User:
    """The logged-in user if they are an admin, otherwise 403."""
    if not user.is_admin:
        raise AdminRequiredError()
    return user
