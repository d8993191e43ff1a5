"""initial matching schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

OPEN_STATUS_SQL = "status IN ('suggested', 'mentor_accepted', 'mentee_accepted')"
MATCH_STATUSES = (
    "suggested",
    "mentor_accepted",
    "mentor_declined",
    "mentee_accepted",
    "mentee_declined",
    "rejected",
    "expired",
    "connected",
)

string_list = sa.ARRAY(sa.String()).with_variant(sa.JSON(), "sqlite")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False),
        sa.Column("application_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("approved_at", sa.TIMESTAMP(), nullable=True),
        sa.Column("mentor_capacity", sa.Integer(), nullable=False, server_default="3"),
        sa.Column("active_mentees_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(), nullable=True),
        sa.CheckConstraint("mentor_capacity >= 1", name="check_mentor_capacity_positive"),
        sa.CheckConstraint("active_mentees_count >= 0", name="check_active_mentees_non_negative"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])
    op.create_index("ix_users_application_status", "users", ["application_status"])

    op.create_table(
        "user_profiles",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("display_name", sa.String(100)),
        sa.Column("bio", sa.String(500)),
        sa.Column("program", sa.String(150)),
        sa.Column("major", sa.String(150)),
        sa.Column("expertise_areas", string_list),
        sa.Column("skills", string_list),
        sa.Column("interests", string_list),
        sa.Column("mentoring_goals", sa.Text()),
        sa.Column("availability_slots", sa.JSON()),
        sa.Column("priority", sa.String(20)),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.func.now()),
    )

    op.create_table(
        "match_suggestions",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("mentor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("mentee_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("expertise_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("availability_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("interaction_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("priority_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "status",
            sa.Enum(*MATCH_STATUSES, name="matchstatus", native_enum=False, length=20),
            nullable=False,
            server_default="suggested",
        ),
        sa.Column("notes", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("mentee_snapshot", sa.JSON()),
        sa.Column("mentor_snapshot", sa.JSON()),
        sa.Column("expires_at", sa.TIMESTAMP(), nullable=True),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(), server_default=sa.func.now()),
    )
    op.create_index("ix_match_suggestions_id", "match_suggestions", ["id"])
    op.create_index("ix_match_suggestions_mentor_id", "match_suggestions", ["mentor_id"])
    op.create_index("ix_match_suggestions_mentee_id", "match_suggestions", ["mentee_id"])
    op.create_index("ix_match_suggestions_status", "match_suggestions", ["status"])
    op.create_index("ix_match_suggestions_expires_at", "match_suggestions", ["expires_at"])
    op.create_index("ix_match_suggestions_mentor_status", "match_suggestions", ["mentor_id", "status"])
    op.create_index(
        "ux_match_suggestions_open_pair",
        "match_suggestions",
        ["mentor_id", "mentee_id"],
        unique=True,
        sqlite_where=sa.text(OPEN_STATUS_SQL),
        postgresql_where=sa.text(OPEN_STATUS_SQL),
    )

    op.create_table(
        "mentorships",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("mentor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("mentee_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column(
            "match_suggestion_id",
            sa.Integer(),
            sa.ForeignKey("match_suggestions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("goals", sa.String(500)),
        sa.Column("program", sa.String(150)),
        sa.Column("started_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.TIMESTAMP(), nullable=True),
        sa.UniqueConstraint("mentor_id", "mentee_id", name="uq_mentorship_pair"),
    )
    op.create_index("ix_mentorships_id", "mentorships", ["id"])
    op.create_index("ix_mentorships_mentor_id", "mentorships", ["mentor_id"])
    op.create_index("ix_mentorships_mentee_id", "mentorships", ["mentee_id"])

    op.create_table(
        "match_audits",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "match_suggestion_id",
            sa.Integer(),
            sa.ForeignKey("match_suggestions.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("actor_role", sa.String(20), nullable=False),
        sa.Column("action", sa.String(30), nullable=False),
        sa.Column("reason", sa.Text()),
        sa.Column("capacity_before", sa.Integer()),
        sa.Column("capacity_after", sa.Integer()),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_match_audits_id", "match_audits", ["id"])
    op.create_index("ix_match_audits_match_suggestion_id", "match_audits", ["match_suggestion_id"])
    op.create_index("ix_match_audits_action", "match_audits", ["action"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("recipient_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("actor_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "match_suggestion_id",
            sa.Integer(),
            sa.ForeignKey("match_suggestions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("event_type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(150), nullable=False),
        sa.Column("message", sa.String(500), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.TIMESTAMP(), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_actor_id", "notifications", ["actor_id"])
    op.create_index("ix_notifications_match_suggestion_id", "notifications", ["match_suggestion_id"])
    op.create_index("ix_notifications_event_type", "notifications", ["event_type"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("match_audits")
    op.drop_table("mentorships")
    op.drop_index("ux_match_suggestions_open_pair", table_name="match_suggestions")
    op.drop_table("match_suggestions")
    op.drop_table("user_profiles")
    op.drop_table("users")
