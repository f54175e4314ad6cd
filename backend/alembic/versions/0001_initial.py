"""running and finished tournaments

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "running_tournament",
        sa.Column("channel_id", sa.String(), nullable=False),
        sa.Column("tournament_id", sa.String(), nullable=False),
        sa.Column("snapshot", sa.JSON(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("channel_id"),
    )
    op.create_table(
        "finished_tournament",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("channel_id", sa.String(), nullable=False),
        sa.Column("best_of", sa.Integer(), nullable=False),
        sa.Column("team_a", sa.JSON(), nullable=False),
        sa.Column("team_b", sa.JSON(), nullable=False),
        sa.Column("wins_a", sa.Integer(), nullable=False),
        sa.Column("wins_b", sa.Integer(), nullable=False),
        sa.Column("matches", sa.JSON(), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_finished_tournament_channel_id",
        "finished_tournament",
        ["channel_id", "finished_at"],
    )


def downgrade():
    op.drop_index("ix_finished_tournament_channel_id", table_name="finished_tournament")
    op.drop_table("finished_tournament")
    op.drop_table("running_tournament")
