"""create users and sessions

Revision ID: 0001_create_users_and_sessions
Revises:
Create Date: 2026-10-18
"""

import sqlalchemy as sa

from alembic import op

revision = "0001_create_users_and_sessions"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("token", sa.String(500), primary_key=True, nullable=False),
        sa.Column("last_activity_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "sessions",
        sa.Column("session_id", sa.String(32), primary_key=True, nullable=False),
        sa.Column(
            "user_token",
            sa.String(500),
            sa.ForeignKey("users.token", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("api_key", sa.String(255), nullable=False, server_default=""),
        sa.Column("code", sa.String(6), nullable=True),
        sa.Column("code_valid_until", sa.DateTime(), nullable=True),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("session_duration", sa.Integer(), nullable=False, server_default="1800"),
        sa.Column("validated", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column(
            "parent_session_id",
            sa.String(32),
            sa.ForeignKey("sessions.session_id", ondelete="CASCADE"),
            nullable=True,
        ),
    )
    op.create_index("ix_sessions_user_token", "sessions", ["user_token"], unique=False)
    op.create_index("ix_sessions_expires_at", "sessions", ["expires_at"], unique=False)
    op.create_index(
        "ix_sessions_parent_session_id", "sessions", ["parent_session_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index("ix_sessions_parent_session_id", table_name="sessions")
    op.drop_index("ix_sessions_expires_at", table_name="sessions")
    op.drop_index("ix_sessions_user_token", table_name="sessions")
    op.drop_table("sessions")
    op.drop_table("users")
