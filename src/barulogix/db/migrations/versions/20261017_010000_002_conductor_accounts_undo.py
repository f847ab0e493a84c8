"""Driver portal accounts and undoable operations.

Revision ID: 002
Revises: 001
Create Date: 2026-10-17 01:00:00.000000+00:00

- conductor_accounts (driver portal logins)
- admin_operations_history.undone_at
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic.
revision: str = "002"
down_revision: str | None = "001"
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Apply migration: conductor accounts and undo marker."""
    op.create_table(
        "conductor_accounts",
        sa.Column(
            "account_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("conductor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(100), nullable=False),
        sa.Column(
            "email_verified", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column("verification_token", sa.String(64), nullable=True),
        sa.Column("verification_token_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reset_token", sa.String(64), nullable=True),
        sa.Column("reset_token_expires", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ["conductor_id"],
            ["conductors.conductor_id"],
            name=op.f("fk_conductor_accounts_conductor_id_conductors"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("account_id", name=op.f("pk_conductor_accounts")),
        sa.UniqueConstraint("conductor_id", name=op.f("uq_conductor_accounts_conductor_id")),
        sa.UniqueConstraint("email", name=op.f("uq_conductor_accounts_email")),
    )
    op.create_index(
        "ix_conductor_accounts_verification_token",
        "conductor_accounts",
        ["verification_token"],
        unique=False,
    )
    op.create_index(
        "ix_conductor_accounts_reset_token",
        "conductor_accounts",
        ["reset_token"],
        unique=False,
    )

    op.add_column(
        "admin_operations_history",
        sa.Column("undone_at", sa.DateTime(timezone=True), nullable=True),
    )


def downgrade() -> None:
    """Revert migration: conductor accounts and undo marker."""
    op.drop_column("admin_operations_history", "undone_at")
    op.drop_table("conductor_accounts")
