"""API tests: routing, auth dependencies and error-to-status mapping."""

import pytest
from fastapi import Depends, HTTPException, Request
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from rallyelo.db.models import User
from rallyelo.db.session import get_db
from rallyelo.web.deps import get_current_user, get_registry
from rallyelo.web.main import app

USER_HEADER = "X-Test-User"


@pytest.fixture
def client(session_factory, registry):
    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    def override_user(request: Request, db: Session = Depends(get_db)) -> User:
        user_id = request.headers.get(USER_HEADER)
        user = db.get(User, int(user_id)) if user_id else None
        if user is None:
            raise HTTPException(status_code=401, detail="unauthorized")
        return user

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_registry] = lambda: registry
    app.dependency_overrides[get_current_user] = override_user
    yield TestClient(app)
    app.dependency_overrides.clear()


def as_user(user):
    return {USER_HEADER: str(user.id)}


def _submit(client, submitter, opponent, sport="table_tennis", scores=(11, 6)):
    return client.post(
        "/matches",
        json={
            "sport": sport,
            "opponent_id": opponent.id,
            "player_score": scores[0],
            "opponent_score": scores[1],
        },
        headers=as_user(submitter),
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_sports(client):
    sports = client.get("/sports").json()["sports"]
    assert [s["id"] for s in sports] == ["table_tennis", "table_football"]


def test_submit_confirm_flow(client, alice, bob):
    response = _submit(client, alice, bob)
    assert response.status_code == 201
    match = response.json()
    assert match["status"] == "pending"
    assert match["winner_id"] == alice.id

    response = client.post(f"/matches/{match['id']}/confirm", headers=as_user(bob))
    assert response.status_code == 200
    body = response.json()
    assert body["message"] == "match confirmed"
    assert body["match"]["player1_elo_after"] == 1016
    assert body["match"]["player2_elo_after"] == 984

    board = client.get("/leaderboard/table_tennis").json()["entries"]
    assert [(e["user"]["id"], e["elo"]) for e in board] == [(alice.id, 1016), (bob.id, 984)]

    stats = client.get(f"/players/{bob.id}/stats/table_tennis").json()
    assert stats["losses"] == 1


def test_list_matches_filters_by_status(client, alice, bob, carol):
    first = _submit(client, alice, bob).json()
    _submit(client, alice, carol)
    client.post(f"/matches/{first['id']}/deny", headers=as_user(bob))

    response = client.get("/matches", params={"status": "pending"}, headers=as_user(alice))
    assert [m["player2_id"] for m in response.json()["matches"]] == [carol.id]


@pytest.mark.parametrize(
    "payload, field",
    [
        ({"sport": "table_tennis", "player_score": 11, "opponent_score": 3}, "opponent_id"),
        ({"sport": "Table Tennis!", "opponent_id": 2, "player_score": 11, "opponent_score": 3}, "sport"),
        ({"sport": "table_tennis", "opponent_id": 2, "player_score": -4, "opponent_score": 3}, "player_score"),
    ],
)
def test_invalid_body_is_400(client, alice, payload, field):
    response = client.post("/matches", json=payload, headers=as_user(alice))
    assert response.status_code == 400
    assert response.json()["field"] == field


def test_domain_errors_map_to_status_codes(client, alice, bob, carol):
    # Validation
    response = _submit(client, alice, alice)
    assert response.status_code == 400
    assert response.json() == {"error": "cannot submit a match against yourself", "field": "opponent_id"}

    response = _submit(client, alice, bob, scores=(7, 7))
    assert response.status_code == 400

    # Unknown sport
    assert _submit(client, alice, bob, sport="chess").status_code == 404

    match = _submit(client, alice, bob).json()

    # Duplicate pending
    response = _submit(client, bob, alice)
    assert response.status_code == 409

    # Wrong actors
    assert client.post(f"/matches/{match['id']}/confirm", headers=as_user(alice)).status_code == 403
    assert client.post(f"/matches/{match['id']}/confirm", headers=as_user(carol)).status_code == 403
    assert client.post(f"/matches/{match['id']}/cancel", headers=as_user(bob)).status_code == 403

    # Not pending anymore
    assert client.post(f"/matches/{match['id']}/cancel", headers=as_user(alice)).status_code == 200
    response = client.post(f"/matches/{match['id']}/deny", headers=as_user(bob))
    assert response.status_code == 400
    assert response.json() == {"error": "match is not pending"}

    # Missing
    assert client.get("/matches/9999", headers=as_user(alice)).status_code == 404


def test_unauthenticated_is_401(client):
    assert client.post("/matches/1/confirm").status_code == 401


def test_session_auth_without_override(session_factory, registry):
    def override_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_registry] = lambda: registry
    try:
        response = TestClient(app).get("/matches")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401
    assert response.json() == {"error": "unauthorized"}


def test_admin_endpoints_require_admin(client, alice, bob):
    assert client.get("/admin/audit-log", headers=as_user(alice)).status_code == 403
    response = client.post(
        "/admin/users/ban",
        json={"user_id": bob.id, "reason": "spamming matches"},
        headers=as_user(alice),
    )
    assert response.status_code == 403


def test_admin_revert_writes_audit_log(client, admin, alice, bob):
    match = _submit(client, alice, bob).json()
    client.post(f"/matches/{match['id']}/confirm", headers=as_user(bob))

    response = client.post(f"/admin/matches/{match['id']}/revert", headers=as_user(admin))
    assert response.status_code == 200
    assert response.json()["result"]["player1_restored_elo"] == 1000

    assert client.get(f"/matches/{match['id']}", headers=as_user(alice)).status_code == 404

    entries = client.get("/admin/audit-log", headers=as_user(admin)).json()["entries"]
    assert entries[0]["action"] == "revert_match"
    assert entries[0]["target_id"] == match["id"]

    # Second revert: the match is gone
    assert client.post(f"/admin/matches/{match['id']}/revert", headers=as_user(admin)).status_code == 404


def test_admin_revert_of_pending_is_400(client, admin, alice, bob):
    match = _submit(client, alice, bob).json()
    response = client.post(f"/admin/matches/{match['id']}/revert", headers=as_user(admin))
    assert response.status_code == 400
    assert response.json() == {"error": "can only revert confirmed matches"}


def test_admin_edit_and_dispute(client, admin, alice, bob):
    match = _submit(client, alice, bob).json()

    response = client.patch(
        f"/admin/matches/{match['id']}",
        json={"player1_score": 3, "player2_score": 11},
        headers=as_user(admin),
    )
    assert response.status_code == 200
    assert response.json()["match"]["winner_id"] == bob.id

    response = client.post(f"/admin/matches/{match['id']}/dispute", headers=as_user(admin))
    assert response.json()["match"]["status"] == "disputed"

    disputed = client.get("/admin/matches/disputed", headers=as_user(admin)).json()["matches"]
    assert [m["id"] for m in disputed] == [match["id"]]

    response = client.patch(
        f"/admin/matches/{match['id']}", json={"status": "exploded"}, headers=as_user(admin)
    )
    assert response.status_code == 400


def test_admin_ban_and_adjust(client, admin, alice, bob):
    response = client.post(
        "/admin/users/ban",
        json={"user_id": bob.id, "reason": "submitting fake results"},
        headers=as_user(admin),
    )
    assert response.status_code == 200

    banned = client.get("/admin/users/banned", headers=as_user(admin)).json()["users"]
    assert [u["id"] for u in banned] == [bob.id]
    assert _submit(client, alice, bob).status_code == 400

    assert client.post(f"/admin/users/{bob.id}/unban", headers=as_user(admin)).status_code == 200

    response = client.post(
        "/admin/elo/adjust",
        json={"user_id": alice.id, "sport": "table_tennis", "new_elo": 1500, "reason": "migrated rating"},
        headers=as_user(admin),
    )
    assert response.status_code == 200
    assert response.json()["adjustment"]["old_elo"] == 1000

    adjustments = client.get("/admin/elo/adjustments", headers=as_user(admin)).json()["adjustments"]
    assert adjustments[0]["new_elo"] == 1500

    response = client.post(
        "/admin/elo/adjust",
        json={"user_id": alice.id, "sport": "table_tennis", "new_elo": 9000, "reason": "too high"},
        headers=as_user(admin),
    )
    assert response.status_code == 400
    assert response.json()["field"] == "new_elo"


def test_admin_invalidate_sports(client, admin, registry):
    client.get("/sports")
    response = client.post("/admin/sports/invalidate", headers=as_user(admin))
    assert response.status_code == 200
    client.get("/sports")
    assert registry.reload_count == 2


def test_unexpected_error_is_generic_500():
    class BrokenRegistry:
        def list_active(self):
            raise RuntimeError("connection string with password=hunter2")

    app.dependency_overrides[get_registry] = lambda: BrokenRegistry()
    try:
        response = TestClient(app, raise_server_exceptions=False).get("/sports")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 500
    assert response.json() == {"error": "internal server error"}


def test_admin_edit_cannot_confirm_match(client, admin, alice, bob):
    match = _submit(client, alice, bob).json()

    response = client.patch(
        f"/admin/matches/{match['id']}", json={"status": "confirmed"}, headers=as_user(admin)
    )
    assert response.status_code == 400
    assert response.json()["field"] == "status"

    response = client.post(f"/admin/matches/{match['id']}/revert", headers=as_user(admin))
    assert response.status_code == 400
    assert response.json() == {"error": "can only revert confirmed matches"}
