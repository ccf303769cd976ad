"""Create access_verification_sessions table.

Revision ID: 002_access_sessions
Revises: 001_users
Create Date: 2026-10-17
"""

import sqlalchemy as sa
from alembic import op

revision = "002_access_sessions"
down_revision = "001_users"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "access_verification_sessions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "requester_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "target_id",
            sa.Uuid(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("target_username", sa.String(length=64), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        # No unique constraint on the pair: expired rows are kept as history
        sa.CheckConstraint("requester_id != target_id", name="ck_no_self_session"),
    )

    op.create_index(
        "ix_access_sessions_pair",
        "access_verification_sessions",
        ["requester_id", "target_id"],
    )
    op.create_index(
        "ix_access_sessions_target_id",
        "access_verification_sessions",
        ["target_id"],
    )
    op.create_index(
        "ix_access_sessions_expires_at",
        "access_verification_sessions",
        ["expires_at"],
    )


def downgrade() -> None:
    op.drop_index(
        "ix_access_sessions_expires_at", table_name="access_verification_sessions"
    )
    op.drop_index(
        "ix_access_sessions_target_id", table_name="access_verification_sessions"
    )
    op.drop_index("ix_access_sessions_pair", table_name="access_verification_sessions")
    op.drop_table("access_verification_sessions")
