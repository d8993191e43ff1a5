"""mentorship notes and mentorship audit rows

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-26 09:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("mentorships") as batch:
        batch.add_column(sa.Column("notes", sa.Text(), nullable=True))

    with op.batch_alter_table("match_audits") as batch:
        batch.alter_column("match_suggestion_id", existing_type=sa.Integer(), nullable=True)
        batch.add_column(sa.Column("mentorship_id", sa.Integer(), nullable=True))
        batch.create_foreign_key(
            "fk_match_audits_mentorship_id",
            "mentorships",
            ["mentorship_id"],
            ["id"],
            ondelete="CASCADE",
        )
        batch.create_index("ix_match_audits_mentorship_id", ["mentorship_id"])


def downgrade() -> None:
    op.execute("DELETE FROM match_audits WHERE match_suggestion_id IS NULL")
    with op.batch_alter_table("match_audits") as batch:
        batch.drop_index("ix_match_audits_mentorship_id")
        batch.drop_constraint("fk_match_audits_mentorship_id", type_="foreignkey")
        batch.drop_column("mentorship_id")
        batch.alter_column("match_suggestion_id", existing_type=sa.Integer(), nullable=False)

    with op.batch_alter_table("mentorships") as batch:
        batch.drop_column("notes")
