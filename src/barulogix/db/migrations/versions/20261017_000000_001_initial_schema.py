"""Initial schema.

Revision ID: 001
Revises: None
Create Date: 2026-10-17 00:00:00.000000+00:00

Creates all tables for BaruLogix:
- conductors (drivers owned by a warehouse user)
- packages (parcels with globally unique tracking)
- notifications (driver notifications)
- admin_operations_history (append-only operation log)
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# Revision identifiers, used by Alembic.
revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
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
    ]


def upgrade() -> None:
    """Apply migration: Initial schema."""
    shipment_type = postgresql.ENUM("Shein/Temu", "Dropi", name="shipment_type", create_type=False)
    shipment_type.create(op.get_bind(), checkfirst=True)

    notification_kind = postgresql.ENUM(
        "DELAY_ALERT", "CUSTOM_MESSAGE", name="notification_kind", create_type=False
    )
    notification_kind.create(op.get_bind(), checkfirst=True)

    op.create_table(
        "conductors",
        sa.Column(
            "conductor_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        *_timestamps(),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("zone", sa.String(150), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.PrimaryKeyConstraint("conductor_id", name=op.f("pk_conductors")),
        sa.UniqueConstraint("owner_id", "name", name="uq_conductors_owner_id_name"),
    )
    op.create_index("ix_conductors_owner_id", "conductors", ["owner_id"], unique=False)
    op.create_index("ix_conductors_owner_zone", "conductors", ["owner_id", "zone"], unique=False)

    op.create_table(
        "packages",
        sa.Column(
            "package_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        *_timestamps(),
        sa.Column("tracking", sa.String(100), nullable=False),
        sa.Column("conductor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("shipment_type", shipment_type, nullable=False),
        sa.Column("status", sa.SmallInteger(), nullable=False, server_default=sa.text("0")),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("client_delivery_date", sa.Date(), nullable=True),
        sa.Column("value", sa.Numeric(14, 2), nullable=True),
        sa.CheckConstraint("status IN (0, 1, 2)", name=op.f("ck_packages_status_valid")),
        sa.CheckConstraint(
            "shipment_type = 'Dropi' OR value IS NULL",
            name=op.f("ck_packages_value_only_for_dropi"),
        ),
        sa.ForeignKeyConstraint(
            ["conductor_id"],
            ["conductors.conductor_id"],
            name=op.f("fk_packages_conductor_id_conductors"),
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("package_id", name=op.f("pk_packages")),
        sa.UniqueConstraint("tracking", name=op.f("uq_packages_tracking")),
    )
    op.create_index("ix_packages_conductor_id", "packages", ["conductor_id"], unique=False)
    op.create_index(
        "ix_packages_conductor_status", "packages", ["conductor_id", "status"], unique=False
    )
    op.create_index("ix_packages_due_date", "packages", ["due_date"], unique=False)

    op.create_table(
        "notifications",
        sa.Column(
            "notification_id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        *_timestamps(),
        sa.Column("conductor_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("kind", notification_kind, nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("package_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.ForeignKeyConstraint(
            ["conductor_id"],
            ["conductors.conductor_id"],
            name=op.f("fk_notifications_conductor_id_conductors"),
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["package_id"],
            ["packages.package_id"],
            name=op.f("fk_notifications_package_id_packages"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("notification_id", name=op.f("pk_notifications")),
    )
    op.create_index(
        "ix_notifications_conductor_created",
        "notifications",
        ["conductor_id", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_notifications_conductor_unread",
        "notifications",
        ["conductor_id", "is_read"],
        unique=False,
    )

    op.create_table(
        "admin_operations_history",
        sa.Column(
            "history_id",
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
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("operation_type", sa.String(100), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("affected_records", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("can_undo", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.PrimaryKeyConstraint("history_id", name=op.f("pk_admin_operations_history")),
    )
    op.create_index(
        "ix_admin_operations_history_user_created",
        "admin_operations_history",
        ["user_id", "created_at"],
        unique=False,
    )


def downgrade() -> None:
    """Revert migration: Initial schema."""
    op.drop_table("admin_operations_history")
    op.drop_table("notifications")
    op.drop_table("packages")
    op.drop_table("conductors")

    op.execute("DROP TYPE IF EXISTS notification_kind")
    op.execute("DROP TYPE IF EXISTS shipment_type")
