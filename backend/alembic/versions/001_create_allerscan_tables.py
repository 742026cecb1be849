"""Create users, families, family_members, allergies and scan_history

Revision ID: 001
Revises: None
Create Date: 2026-10-18 00:00:00.000000+00:00

What:  Initial AllerScan schema.
How:   Portable types (sa.Uuid, sa.JSON, timezone-aware DateTime) so the same
       migration runs on PostgreSQL and SQLite. Every foreign key cascades on
       delete: users ─< families ─< family_members ─< allergies, and
       users ─< scan_history.

Rollback: downgrade() drops all five tables (destructive).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "email",
            sa.String(255),
            nullable=False,
            comment="Lower-cased login email, supplied by the fronting auth layer",
        ),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "families",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_families_user_id", "families", ["user_id"])

    op.create_table(
        "family_members",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("family_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'other'")),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["family_id"], ["families.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("age IS NULL OR (age >= 0 AND age <= 120)", name="ck_family_members_age"),
    )
    op.create_index("ix_family_members_family_id", "family_members", ["family_id"])

    op.create_table(
        "allergies",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("member_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "severity",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'MODERATE'"),
            comment="MILD, MODERATE, SEVERE or LIFE_THREATENING",
        ),
        sa.Column("symptoms", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["member_id"], ["family_members.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_allergies_member_id", "allergies", ["member_id"])

    op.create_table(
        "scan_history",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("ingredients", sa.Text(), nullable=False),
        sa.Column("analysis", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("detected_allergens", sa.JSON(), nullable=False),
        sa.Column("risk_level", sa.String(20), nullable=False),
        sa.Column("is_problematic", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("recommendations", sa.JSON(), nullable=False),
        sa.Column(
            "metadata",
            sa.JSON(),
            nullable=False,
            comment="Checked allergies, highlights, member matches, AI risk level",
        ),
        sa.Column("source", sa.String(10), nullable=False, server_default=sa.text("'text'")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_scan_history_user_id", "scan_history", ["user_id"])
    # History is listed newest first
    op.create_index(
        "idx_scan_history_created_at",
        "scan_history",
        [sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_scan_history_created_at", table_name="scan_history")
    op.drop_index("ix_scan_history_user_id", table_name="scan_history")
    op.drop_table("scan_history")
    op.drop_index("ix_allergies_member_id", table_name="allergies")
    op.drop_table("allergies")
    op.drop_index("ix_family_members_family_id", table_name="family_members")
    op.drop_table("family_members")
    op.drop_index("ix_families_user_id", table_name="families")
    op.drop_table("families")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
