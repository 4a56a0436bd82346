"""Create exam registration tables

Revision ID: 3e8f1c2a9b70
Revises:
Create Date: 2025-05-20

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3e8f1c2a9b70"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema: accounts, profiles, registrations, sessions and settings."""
    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("username", sa.String(), nullable=False),
        sa.Column("password_hash", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.Column("email_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_accounts_email", "accounts", ["email"], unique=True)

    op.create_table(
        "applicant_profiles",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("account_id", sa.Uuid(), nullable=False),
        sa.Column("last_name", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=False),
        sa.Column("middle_name", sa.String(), nullable=True),
        sa.Column("gender", sa.String(), nullable=False),
        sa.Column("age", sa.Integer(), nullable=False),
        sa.Column("phone", sa.String(), nullable=False),
        sa.Column("address", sa.String(), nullable=False),
        sa.Column("school_name", sa.String(), nullable=False),
        sa.Column("parent_name", sa.String(), nullable=False),
        sa.Column("parent_phone", sa.String(), nullable=False),
        sa.Column("preferred_courses", sa.JSON(), nullable=False),
        sa.Column("profile_image", sa.LargeBinary(), nullable=True),
        sa.Column("profile_image_content_type", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["account_id"], ["accounts.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_applicant_profiles_account_id",
        "applicant_profiles",
        ["account_id"],
        unique=True,
    )

    op.create_table(
        "registrations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("profile_id", sa.Uuid(), nullable=False),
        sa.Column("school_year", sa.String(), nullable=False),
        sa.Column("semester", sa.String(), nullable=False),
        sa.Column("registration_date", sa.Date(), nullable=False),
        sa.Column(
            "status", sa.String(length=20), nullable=False, server_default="registered"
        ),
        sa.Column("assigned_exam_date", sa.Date(), nullable=True),
        sa.Column("assigned_session", sa.String(length=20), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["profile_id"], ["applicant_profiles.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('registered', 'assigned', 'completed')",
            name="ck_registrations_status",
        ),
        sa.CheckConstraint(
            "assigned_session IS NULL OR assigned_session IN ('morning', 'afternoon')",
            name="ck_registrations_session",
        ),
        sa.CheckConstraint(
            "status <> 'assigned' OR "
            "(assigned_exam_date IS NOT NULL AND assigned_session IS NOT NULL)",
            name="ck_registrations_assigned_has_slot",
        ),
    )
    op.create_index(
        "ix_registrations_profile_id", "registrations", ["profile_id"], unique=True
    )
    op.create_index(
        "ix_registrations_assigned_exam_date",
        "registrations",
        ["assigned_exam_date"],
        unique=False,
    )

    op.create_table(
        "slot_sessions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("exam_date", sa.Date(), nullable=False),
        sa.Column("session", sa.String(length=20), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("max_capacity", sa.Integer(), nullable=False),
        sa.Column("current_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column(
            "status", sa.String(length=20), nullable=False, server_default="open"
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "exam_date", "session", name="uq_slot_sessions_date_session"
        ),
        sa.CheckConstraint(
            "session IN ('morning', 'afternoon')", name="ck_slot_sessions_session"
        ),
        sa.CheckConstraint(
            "status IN ('open', 'full', 'closed')", name="ck_slot_sessions_status"
        ),
        sa.CheckConstraint("max_capacity >= 0", name="ck_slot_sessions_capacity_ge_0"),
        sa.CheckConstraint("current_count >= 0", name="ck_slot_sessions_count_ge_0"),
        sa.CheckConstraint(
            "current_count <= max_capacity",
            name="ck_slot_sessions_count_le_capacity",
        ),
    )
    op.create_index(
        "ix_slot_sessions_exam_date", "slot_sessions", ["exam_date"], unique=False
    )
    # Partial index to speed availability queries
    try:
        op.create_index(
            "idx_slot_sessions_open",
            "slot_sessions",
            ["exam_date"],
            unique=False,
            postgresql_where=sa.text("status = 'open'"),
        )
    except Exception:
        # Some engines may not support partial indexes (e.g., sqlite in dev)
        pass

    op.create_table(
        "exam_registration_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("registration_open", sa.Boolean(), nullable=False),
        sa.Column("academic_year", sa.String(), nullable=True),
        sa.Column("semester", sa.String(), nullable=True),
        sa.Column("exam_start_date", sa.Date(), nullable=True),
        sa.Column("exam_end_date", sa.Date(), nullable=True),
        sa.Column("seats_per_day", sa.Integer(), nullable=False),
        sa.Column("registration_message", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    """Downgrade schema: drop every exam registration table."""
    op.drop_table("exam_registration_settings")
    try:
        op.drop_index("idx_slot_sessions_open", table_name="slot_sessions")
    except Exception:
        pass
    op.drop_index("ix_slot_sessions_exam_date", table_name="slot_sessions")
    op.drop_table("slot_sessions")
    op.drop_index("ix_registrations_assigned_exam_date", table_name="registrations")
    op.drop_index("ix_registrations_profile_id", table_name="registrations")
    op.drop_table("registrations")
    op.drop_index("ix_applicant_profiles_account_id", table_name="applicant_profiles")
    op.drop_table("applicant_profiles")
    op.drop_index("ix_accounts_email", table_name="accounts")
    op.drop_table("accounts")
