"""
JSON API for match reporting, leaderboards and admin moderation.

Endpoints are plain ``def`` functions: FastAPI runs them in its thread
pool, so every request gets its own Session from get_db() and blocking
row locks never stall the event loop.

Run with:
    rallyelo-api
or:
    uvicorn rallyelo.web.main:app --port 8080
"""

import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.sessions import SessionMiddleware
from sqlalchemy import text
from sqlalchemy.orm import Session

from rallyelo.config import settings
from rallyelo.db.models import User
from rallyelo.db.session import get_db
from rallyelo.errors import RallyEloError
from rallyelo.match_statuses import normalize_status_filter
from rallyelo.repositories import matches as match_store
from rallyelo.repositories import users as user_store
from rallyelo.services import admin as admin_service
from rallyelo.services.leaderboard import get_leaderboard, get_player_stats
from rallyelo.services.match_workflow import MatchWorkflow
from rallyelo.sports.registry import SportRegistry
from rallyelo.web.deps import get_admin_user, get_current_user, get_registry, get_workflow
from rallyelo.web.schemas import (
    AdjustEloRequest,
    BanUserRequest,
    EditMatchRequest,
    SubmitMatchRequest,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="RallyElo")
app.add_middleware(
    SessionMiddleware,
    secret_key=settings.session_secret,
    max_age=settings.session_max_age_seconds,
)


# =============================================================================
# Error handling
# =============================================================================

@app.exception_handler(RallyEloError)
async def rallyelo_error_handler(request: Request, exc: RallyEloError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report the first invalid field as a 400 in the same shape as domain errors."""
    errors = exc.errors()
    content = {"error": "invalid request"}
    if errors:
        first = errors[0]
        loc = [str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path")]
        if loc:
            content["field"] = ".".join(loc)
        content["error"] = first.get("msg", content["error"])
    return JSONResponse(status_code=400, content=content)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail).lower()})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    # Never leak internals to the client; the traceback goes to the log
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "internal server error"})


def _action_response(message: str, match) -> dict:
    return {"message": message, "match": match.to_dict()}


# =============================================================================
# Public endpoints
# =============================================================================

@app.get("/health")
def health(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {"status": "ok"}


@app.get("/sports")
def list_sports(sports: SportRegistry = Depends(get_registry)):
    return {"sports": [sport.to_dict() for sport in sports.list_active()]}


@app.get("/leaderboard/{sport_id}")
def leaderboard(
    sport_id: str,
    db: Session = Depends(get_db),
    sports: SportRegistry = Depends(get_registry),
):
    entries = get_leaderboard(db, sports, sport_id)
    return {"sport": sport_id, "entries": [entry.to_dict() for entry in entries]}


@app.get("/players/{user_id}/stats/{sport_id}")
def player_stats(
    user_id: int,
    sport_id: str,
    db: Session = Depends(get_db),
    sports: SportRegistry = Depends(get_registry),
):
    return get_player_stats(db, sports, user_id, sport_id).to_dict()


# =============================================================================
# Match workflow
# =============================================================================

@app.get("/matches")
def list_matches(
    status: Optional[List[str]] = Query(default=None),
    sport: Optional[str] = None,
    user_id: Optional[int] = None,
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    statuses = normalize_status_filter(status)
    matches = match_store.list_matches(
        db, user_id=user_id, sport_id=sport, statuses=statuses, limit=limit, offset=offset
    )
    return {"matches": [m.to_dict() for m in matches], "limit": limit, "offset": offset}


@app.post("/matches", status_code=201)
def submit_match(
    body: SubmitMatchRequest,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: MatchWorkflow = Depends(get_workflow),
):
    match = workflow.submit(
        db,
        submitter_id=user.id,
        sport_id=body.sport,
        opponent_id=body.opponent_id,
        player_score=body.player_score,
        opponent_score=body.opponent_score,
    )
    return match.to_dict()


@app.get("/matches/{match_id}")
def get_match(
    match_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    return match_store.get_match(db, match_id).to_dict()


@app.post("/matches/{match_id}/confirm")
def confirm_match(
    match_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: MatchWorkflow = Depends(get_workflow),
):
    match = workflow.confirm(db, match_id, actor_id=user.id)
    return _action_response("match confirmed", match)


@app.post("/matches/{match_id}/deny")
def deny_match(
    match_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: MatchWorkflow = Depends(get_workflow),
):
    match = workflow.deny(db, match_id, actor_id=user.id)
    return _action_response("match denied", match)


@app.post("/matches/{match_id}/cancel")
def cancel_match(
    match_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    workflow: MatchWorkflow = Depends(get_workflow),
):
    match = workflow.cancel(db, match_id, actor_id=user.id)
    return _action_response("match cancelled", match)


# =============================================================================
# Admin
# =============================================================================

@app.get("/admin/matches/disputed")
def disputed_matches(
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    return {"matches": [m.to_dict() for m in admin_service.list_disputed_matches(db)]}


@app.post("/admin/matches/{match_id}/revert")
def revert_match(
    match_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
    workflow: MatchWorkflow = Depends(get_workflow),
):
    result = workflow.revert(db, match_id, admin)
    admin_service.record_admin_action(
        db, admin.id, "revert_match", "match", match_id, result.to_dict()
    )
    return {"message": "match reverted", "result": result.to_dict()}


@app.patch("/admin/matches/{match_id}")
def edit_match(
    match_id: int,
    body: EditMatchRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
    workflow: MatchWorkflow = Depends(get_workflow),
):
    match = workflow.edit(
        db,
        match_id,
        admin,
        player1_score=body.player1_score,
        player2_score=body.player2_score,
        status=body.status,
    )
    admin_service.record_admin_action(
        db, admin.id, "edit_match", "match", match_id, body.model_dump(exclude_none=True)
    )
    return _action_response("match updated", match)


@app.post("/admin/matches/{match_id}/dispute")
def dispute_match(
    match_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
    workflow: MatchWorkflow = Depends(get_workflow),
):
    match = workflow.dispute(db, match_id, admin)
    admin_service.record_admin_action(db, admin.id, "dispute_match", "match", match_id)
    return _action_response("match marked as disputed", match)


@app.post("/admin/users/ban")
def ban_user(
    body: BanUserRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    user = admin_service.ban_user(db, admin, body.user_id, body.reason)
    return {"message": "user banned", "user_id": user.id}


@app.get("/admin/users/banned")
def banned_users(
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    users = user_store.list_banned_users(db)
    return {
        "users": [
            {
                "id": u.id,
                "login": u.login,
                "ban_reason": u.ban_reason,
                "banned_at": u.banned_at.isoformat() if u.banned_at else None,
                "banned_by": u.banned_by,
            }
            for u in users
        ]
    }


@app.post("/admin/users/{user_id}/unban")
def unban_user(
    user_id: int,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    user = admin_service.unban_user(db, admin, user_id)
    return {"message": "user unbanned", "user_id": user.id}


@app.post("/admin/elo/adjust")
def adjust_elo(
    body: AdjustEloRequest,
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
    sports: SportRegistry = Depends(get_registry),
):
    adjustment = admin_service.adjust_elo(
        db, sports, admin, body.user_id, body.sport, body.new_elo, body.reason
    )
    return {"message": "elo adjusted", "adjustment": adjustment.to_dict()}


@app.get("/admin/elo/adjustments")
def elo_adjustments(
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    rows = admin_service.list_elo_adjustments(db, limit=limit)
    return {"adjustments": [row.to_dict() for row in rows]}


@app.get("/admin/audit-log")
def audit_log(
    limit: int = Query(default=100, ge=1, le=500),
    db: Session = Depends(get_db),
    admin: User = Depends(get_admin_user),
):
    rows = admin_service.list_audit_log(db, limit=limit)
    return {"entries": [row.to_dict() for row in rows]}


@app.post("/admin/sports/invalidate")
def invalidate_sports(
    admin: User = Depends(get_admin_user),
    sports: SportRegistry = Depends(get_registry),
):
    sports.invalidate()
    logger.info("Sport cache invalidated by admin %d", admin.id)
    return {"message": "sport cache invalidated"}


def run() -> None:
    """Console entry point: configure logging and serve the API."""
    import uvicorn

    from rallyelo.logging_config import setup_logging

    setup_logging()
    uvicorn.run(
        "rallyelo.web.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_reload,
        log_config=None,
    )


if __name__ == "__main__":
    run()
