"""Test data factories for BaruLogix.

This module provides factory functions for creating test data.
Use these to build consistent, valid model instances without a database.
"""

from datetime import UTC, date, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock
from uuid import UUID, uuid4

import bcrypt
from authlib.jose import JsonWebToken

from barulogix.db.models import (
    Conductor,
    ConductorAccount,
    Notification,
    OperationHistory,
    Package,
)
from barulogix.db.models.base import NotificationKind, PackageStatus, ShipmentType

OWNER_ID = UUID("550e8400-e29b-41d4-a716-446655440001")
OTHER_OWNER_ID = UUID("550e8400-e29b-41d4-a716-446655440002")

JWT_SECRET = "test-jwt-secret-with-enough-entropy"
CONDUCTOR_JWT_SECRET = "test-driver-secret-with-enough-entropy"
DRIVER_PASSWORD = "Entregas2024"
ADMIN_EMAIL = "admin@barulogix.test"


def create_conductor(
    owner_id: UUID = OWNER_ID,
    name: str = "Carlos Pérez",
    zone: str = "Norte",
    phone: str | None = "3001234567",
    active: bool = True,
    conductor_id: UUID | None = None,
) -> Conductor:
    """Create a test conductor.

    Args:
        owner_id: Warehouse owner.
        name: Conductor name.
        zone: Delivery zone.
        phone: Contact phone.
        active: Whether the conductor receives work.
        conductor_id: Conductor UUID. Auto-generated if None.

    Returns:
        Unsaved Conductor instance.
    """
    now = datetime.now(UTC)
    return Conductor(
        conductor_id=conductor_id or uuid4(),
        owner_id=owner_id,
        name=name,
        zone=zone,
        phone=phone,
        active=active,
        created_at=now,
        updated_at=now,
    )


def create_package(
    conductor: Conductor | None = None,
    tracking: str | None = None,
    shipment_type: ShipmentType = ShipmentType.SHEIN_TEMU,
    status: PackageStatus = PackageStatus.PENDING,
    due_date: date | None = None,
    value: Decimal | None = None,
    client_delivery_date: date | None = None,
    package_id: UUID | None = None,
) -> Package:
    """Create a test package assigned to ``conductor``.

    Args:
        conductor: Assigned conductor. A new one is created if None.
        tracking: Tracking number. Auto-generated if None.
        shipment_type: Shein/Temu or Dropi.
        status: Package status.
        due_date: Scheduled delivery date. Defaults to today.
        value: Amount to collect (Dropi only).
        client_delivery_date: Actual delivery date.
        package_id: Package UUID. Auto-generated if None.

    Returns:
        Unsaved Package instance with its conductor loaded.
    """
    conductor = conductor or create_conductor()
    now = datetime.now(UTC)
    return Package(
        package_id=package_id or uuid4(),
        tracking=tracking or f"TRK{uuid4().hex[:10].upper()}",
        conductor_id=conductor.conductor_id,
        conductor=conductor,
        shipment_type=shipment_type,
        status=int(status),
        due_date=due_date or now.date(),
        client_delivery_date=client_delivery_date,
        value=value,
        created_at=now,
        updated_at=now,
    )


def create_overdue_package(conductor: Conductor, days: int, **kwargs) -> Package:
    """Create a pending package whose due date is ``days`` days ago."""
    due = datetime.now(UTC).date() - timedelta(days=days)
    return create_package(conductor=conductor, due_date=due, **kwargs)


def create_notification(
    conductor: Conductor,
    kind: NotificationKind = NotificationKind.CUSTOM_MESSAGE,
    title: str = "Mensaje de Bodega",
    message: str = "Recuerden cargar las rutas temprano",
    is_read: bool = False,
    created_at: datetime | None = None,
    package_id: UUID | None = None,
) -> Notification:
    """Create a test notification addressed to ``conductor``."""
    created = created_at or datetime.now(UTC)
    return Notification(
        notification_id=uuid4(),
        conductor_id=conductor.conductor_id,
        owner_id=conductor.owner_id,
        kind=kind,
        title=title,
        message=message,
        package_id=package_id,
        is_read=is_read,
        created_at=created,
        updated_at=created,
    )


def create_history_entry(
    user_id: UUID = OWNER_ID,
    operation_type: str = "bulk_import",
    description: str = "Importación masiva: 3 paquetes",
    affected_records: int = 3,
    details: dict | None = None,
    can_undo: bool = False,
) -> OperationHistory:
    """Create a test operation history entry."""
    return OperationHistory(
        history_id=uuid4(),
        user_id=user_id,
        operation_type=operation_type,
        description=description,
        details=details if details is not None else {"inserted": affected_records},
        affected_records=affected_records,
        can_undo=can_undo,
        created_at=datetime.now(UTC),
    )


def make_result(*, one=None, many=None, count=None) -> MagicMock:
    """Build a fake SQLAlchemy Result.

    Args:
        one: Value for ``scalar_one_or_none()``.
        many: Items for ``scalars().all()``.
        count: Value for ``scalar_one()``.
    """
    result = MagicMock()
    result.scalar_one_or_none.return_value = one
    result.scalars.return_value.all.return_value = list(many or [])
    result.scalar_one.return_value = count
    return result


def mint_token(
    sub: UUID | str = OWNER_ID,
    email: str | None = "owner@barulogix.test",
    *,
    secret: str = JWT_SECRET,
    audience: str = "authenticated",
    expires_in: int = 3600,
    user_metadata: dict | None = None,
) -> str:
    """Sign an access token the way the identity provider does."""
    now = datetime.now(UTC)
    claims = {
        "sub": str(sub),
        "aud": audience,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        "user_metadata": user_metadata or {},
    }
    if email is not None:
        claims["email"] = email
    token = JsonWebToken(["HS256"]).encode({"alg": "HS256"}, claims, secret.encode("utf-8"))
    return token.decode("ascii")


def create_conductor_account(
    conductor: Conductor | None = None,
    email: str = "conductor@barulogix.test",
    password: str = DRIVER_PASSWORD,
    email_verified: bool = True,
    verification_token: str | None = None,
    verification_token_expires: datetime | None = None,
    reset_token: str | None = None,
    reset_token_expires: datetime | None = None,
) -> ConductorAccount:
    """Create a driver portal account for ``conductor``.

    The password hash uses the cheapest bcrypt cost to keep tests fast.
    """
    conductor = conductor or create_conductor()
    now = datetime.now(UTC)
    return ConductorAccount(
        account_id=uuid4(),
        conductor_id=conductor.conductor_id,
        conductor=conductor,
        email=email,
        password_hash=bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt(rounds=4)).decode(
            "utf-8"
        ),
        email_verified=email_verified,
        verification_token=verification_token,
        verification_token_expires=verification_token_expires,
        reset_token=reset_token,
        reset_token_expires=reset_token_expires,
        created_at=now,
        updated_at=now,
    )


def mint_conductor_token(
    conductor_id: UUID,
    email: str = "conductor@barulogix.test",
    *,
    secret: str = CONDUCTOR_JWT_SECRET,
    token_type: str = "conductor",
    expires_in: int = 3600,
) -> str:
    """Sign a driver session token."""
    now = datetime.now(UTC)
    claims = {
        "sub": str(conductor_id),
        "email": email,
        "type": token_type,
        "iat": int(now.timestamp()),
        "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
    }
    token = JsonWebToken(["HS256"]).encode({"alg": "HS256"}, claims, secret.encode("utf-8"))
    return token.decode("ascii")
