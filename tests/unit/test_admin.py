"""Unit tests for admin moderation: bans, rating overrides, audit trail."""

import pytest

from rallyelo.db.models import AdminAuditLog, EloAdjustment, User, UserSport
from rallyelo.errors import (
    AdminRequiredError,
    PermissionDeniedError,
    SportNotFoundError,
    UserBannedError,
    UserNotFoundError,
    ValidationError,
)
from rallyelo.match_statuses import STATUS_DISPUTED
from rallyelo.services import admin as admin_service


class TestBans:

    def test_ban_and_unban(self, db_session, admin, alice):
        admin_service.ban_user(db_session, admin, alice.id, "repeated fake results")

        db_session.expire_all()
        user = db_session.get(User, alice.id)
        assert user.is_banned
        assert user.ban_reason == "repeated fake results"
        assert user.banned_by == admin.id
        assert user.banned_at is not None

        admin_service.unban_user(db_session, admin, alice.id)
        db_session.expire_all()
        user = db_session.get(User, alice.id)
        assert not user.is_banned
        assert user.ban_reason is None

        actions = [e.action for e in admin_service.list_audit_log(db_session)]
        assert sorted(actions) == ["ban_user", "unban_user"]

    def test_banned_user_cannot_submit(self, db_session, workflow, admin, alice, bob):
        admin_service.ban_user(db_session, admin, alice.id, "cheating")
        with pytest.raises(UserBannedError):
            workflow.submit(db_session, alice.id, "table_tennis", bob.id, 11, 3)

    def test_cannot_ban_self(self, db_session, admin):
        with pytest.raises(ValidationError):
            admin_service.ban_user(db_session, admin, admin.id, "testing self ban")

    def test_cannot_ban_other_admin(self, db_session, admin, make_user):
        other = make_user("other_admin", is_admin=True)
        with pytest.raises(PermissionDeniedError):
            admin_service.ban_user(db_session, admin, other.id, "power struggle")
        assert db_session.query(AdminAuditLog).count() == 0

    @pytest.mark.parametrize("reason", ["", "shrt", "x" * 501])
    def test_reason_length(self, db_session, admin, alice, reason):
        with pytest.raises(ValidationError) as exc_info:
            admin_service.ban_user(db_session, admin, alice.id, reason)
        assert exc_info.value.field == "reason"

    def test_non_admin_rejected(self, db_session, alice, bob):
        with pytest.raises(AdminRequiredError):
            admin_service.ban_user(db_session, alice, bob.id, "not allowed to do this")

    def test_unknown_user(self, db_session, admin):
        with pytest.raises(UserNotFoundError):
            admin_service.unban_user(db_session, admin, 9999)


class TestAdjustElo:

    def test_creates_row_for_new_player(self, db_session, registry, admin, alice):
        adjustment = admin_service.adjust_elo(
            db_session, registry, admin, alice.id, "table_tennis", 1200, "tournament winner bonus"
        )

        assert adjustment.old_elo == 1000
        assert adjustment.new_elo == 1200

        db_session.expire_all()
        row = db_session.get(UserSport, (alice.id, "table_tennis"))
        assert row.current_elo == 1200
        assert row.highest_elo == 1200
        assert row.matches_played == 0

    def test_lowering_keeps_highest(self, db_session, registry, workflow, admin, alice, bob):
        match = workflow.submit(db_session, alice.id, "table_tennis", bob.id, 11, 2)
        workflow.confirm(db_session, match.id, actor_id=bob.id)

        admin_service.adjust_elo(
            db_session, registry, admin, alice.id, "table_tennis", 900, "smurf account correction"
        )

        db_session.expire_all()
        row = db_session.get(UserSport, (alice.id, "table_tennis"))
        assert (row.current_elo, row.highest_elo) == (900, 1016)

    def test_writes_adjustment_and_audit_rows(self, db_session, registry, admin, alice):
        admin_service.adjust_elo(
            db_session, registry, admin, alice.id, "table_tennis", 1100, "manual correction"
        )

        adjustments = admin_service.list_elo_adjustments(db_session)
        assert len(adjustments) == 1
        assert adjustments[0].adjusted_by == admin.id

        entry = db_session.query(AdminAuditLog).one()
        assert entry.action == "adjust_elo"
        assert entry.details["old_elo"] == 1000
        assert entry.details["new_elo"] == 1100

    @pytest.mark.parametrize("new_elo", [-1, 5001])
    def test_bounds(self, db_session, registry, admin, alice, new_elo):
        with pytest.raises(ValidationError):
            admin_service.adjust_elo(
                db_session, registry, admin, alice.id, "table_tennis", new_elo, "out of range value"
            )
        assert db_session.query(EloAdjustment).count() == 0

    def test_unknown_sport(self, db_session, registry, admin, alice):
        with pytest.raises(SportNotFoundError):
            admin_service.adjust_elo(
                db_session, registry, admin, alice.id, "chess", 1100, "wrong sport here"
            )


def test_list_disputed_matches(db_session, workflow, admin, alice, bob, carol):
    first = workflow.submit(db_session, alice.id, "table_tennis", bob.id, 11, 2)
    workflow.submit(db_session, alice.id, "table_tennis", carol.id, 11, 2)
    workflow.dispute(db_session, first.id, admin)

    disputed = admin_service.list_disputed_matches(db_session)
    assert [m.id for m in disputed] == [first.id]
    assert disputed[0].status == STATUS_DISPUTED


def test_record_admin_action_commits(db_session, admin):
    admin_service.record_admin_action(
        db_session, admin.id, "revert_match", "match", 7, {"player1_restored_elo": 1000}
    )
    db_session.rollback()

    entries = admin_service.list_audit_log(db_session)
    assert len(entries) == 1
    assert entries[0].to_dict()["details"] == {"player1_restored_elo": 1000}
