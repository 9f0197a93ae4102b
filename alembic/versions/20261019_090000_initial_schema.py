"""Initial schema: users, sports, ratings, matches, admin tables

Creates every table, the pending-pair partial unique index on matches,
and seeds the two launch sports.

Revision ID: 4f1a2b3c5d6e
Revises:
Create Date: 2026-10-19 09:00:00.000000+00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# Revision identifiers, used by Alembic.
revision: str = "4f1a2b3c5d6e"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("intra_id", sa.Integer(), nullable=False),
        sa.Column("login", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.String(length=200), nullable=False),
        sa.Column("avatar_url", sa.String(length=500), nullable=True),
        sa.Column("campus", sa.String(length=100), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_banned", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("ban_reason", sa.Text(), nullable=True),
        sa.Column("banned_at", sa.DateTime(), nullable=True),
        sa.Column("banned_by", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["banned_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("intra_id"),
    )
    op.create_index("idx_users_login", "users", ["login"], unique=False)

    op.create_table(
        "sports",
        sa.Column("id", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("display_name", sa.String(length=100), nullable=False),
        sa.Column("icon_url", sa.String(length=255), nullable=True),
        sa.Column("default_elo", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("k_factor", sa.Integer(), nullable=False, server_default="32"),
        sa.Column("min_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("max_score", sa.Integer(), nullable=False, server_default="999"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("k_factor > 0", name="ck_sports_k_factor_positive"),
        sa.CheckConstraint("min_score >= 0 AND max_score >= min_score", name="ck_sports_score_bounds"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_sports_active", "sports", ["is_active", "sort_order"], unique=False)

    op.create_table(
        "user_sports",
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("sport_id", sa.String(length=50), nullable=False),
        sa.Column("current_elo", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("highest_elo", sa.Integer(), nullable=False, server_default="1000"),
        sa.Column("matches_played", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("wins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("losses", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("highest_elo >= current_elo", name="ck_user_sports_highest"),
        sa.CheckConstraint("matches_played = wins + losses", name="ck_user_sports_counters"),
        sa.CheckConstraint("wins >= 0 AND losses >= 0", name="ck_user_sports_non_negative"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sport_id"], ["sports.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id", "sport_id"),
    )
    op.create_index("idx_user_sports_elo", "user_sports", ["sport_id", "current_elo"], unique=False)
    op.create_index("idx_user_sports_user", "user_sports", ["user_id"], unique=False)

    op.create_table(
        "matches",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sport_id", sa.String(length=50), nullable=False),
        sa.Column("player1_id", sa.Integer(), nullable=False),
        sa.Column("player2_id", sa.Integer(), nullable=False),
        sa.Column("player1_score", sa.Integer(), nullable=False),
        sa.Column("player2_score", sa.Integer(), nullable=False),
        sa.Column("winner_id", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("submitted_by", sa.Integer(), nullable=False),
        sa.Column("player1_elo_before", sa.Integer(), nullable=True),
        sa.Column("player1_elo_after", sa.Integer(), nullable=True),
        sa.Column("player1_elo_delta", sa.Integer(), nullable=True),
        sa.Column("player2_elo_before", sa.Integer(), nullable=True),
        sa.Column("player2_elo_after", sa.Integer(), nullable=True),
        sa.Column("player2_elo_delta", sa.Integer(), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("denied_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("player1_id <> player2_id", name="ck_matches_distinct_players"),
        sa.CheckConstraint(
            "winner_id = player1_id OR winner_id = player2_id",
            name="ck_matches_winner_is_player",
        ),
        sa.CheckConstraint(
            "player1_score >= 0 AND player2_score >= 0",
            name="ck_matches_scores_non_negative",
        ),
        sa.CheckConstraint("player1_score <> player2_score", name="ck_matches_no_draw"),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'denied', 'cancelled', 'disputed')",
            name="ck_matches_status",
        ),
        sa.ForeignKeyConstraint(["sport_id"], ["sports.id"]),
        sa.ForeignKeyConstraint(["player1_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["player2_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["winner_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["submitted_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_matches_sport", "matches", ["sport_id"], unique=False)
    op.create_index("idx_matches_status", "matches", ["status"], unique=False)
    op.create_index("idx_matches_player1", "matches", ["player1_id"], unique=False)
    op.create_index("idx_matches_player2", "matches", ["player2_id"], unique=False)
    op.create_index("idx_matches_created_at", "matches", ["created_at"], unique=False)
    # One pending match per unordered pair per sport
    op.execute("""
        CREATE UNIQUE INDEX uq_matches_pending_pair
        ON matches (sport_id, LEAST(player1_id, player2_id), GREATEST(player1_id, player2_id))
        WHERE status = 'pending'
    """)

    op.create_table(
        "elo_adjustments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("sport_id", sa.String(length=50), nullable=False),
        sa.Column("old_elo", sa.Integer(), nullable=False),
        sa.Column("new_elo", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("adjusted_by", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["sport_id"], ["sports.id"]),
        sa.ForeignKeyConstraint(["adjusted_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_elo_adjustments_user_id", "elo_adjustments", ["user_id"], unique=False)
    op.create_index("idx_elo_adjustments_created_at", "elo_adjustments", ["created_at"], unique=False)

    op.create_table(
        "admin_audit_log",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("admin_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("target_type", sa.String(length=50), nullable=False),
        sa.Column("target_id", sa.Integer(), nullable=True),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["admin_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_admin_audit_log_admin_id", "admin_audit_log", ["admin_id"], unique=False)
    op.create_index("idx_admin_audit_log_created_at", "admin_audit_log", ["created_at"], unique=False)
    op.create_index("idx_admin_audit_log_action", "admin_audit_log", ["action"], unique=False)

    op.execute("""
        INSERT INTO sports (id, name, display_name, default_elo, k_factor,
                            min_score, max_score, is_active, sort_order, created_at, updated_at)
        VALUES
            ('table_tennis', 'table_tennis', 'Table Tennis', 1000, 32, 0, 999, true, 1, now(), now()),
            ('table_football', 'table_football', 'Table Football', 1000, 32, 0, 999, true, 2, now(), now())
        ON CONFLICT (id) DO NOTHING
    """)


def downgrade() -> None:
    op.drop_table("admin_audit_log")
    op.drop_table("elo_adjustments")
    op.execute("DROP INDEX IF EXISTS uq_matches_pending_pair")
    op.drop_table("matches")
    op.drop_table("user_sports")
    op.drop_table("sports")
    op.drop_table("users")
