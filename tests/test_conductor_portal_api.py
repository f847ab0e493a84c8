"""Tests for the driver portal API router."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from unittest.mock import MagicMock, patch
from uuid import uuid4

import pytest
from httpx import AsyncClient

from barulogix.db.models.base import PackageStatus, ShipmentType
from barulogix.services.conductor_accounts import PASSWORD_RESET_SENT
from barulogix.services.mailer import EmailDeliveryError
from tests.factories import (
    DRIVER_PASSWORD,
    create_conductor,
    create_conductor_account,
    create_notification,
    create_package,
    make_result,
    mint_conductor_token,
    mint_token,
)


def driver_headers(account) -> dict[str, str]:
    token = mint_conductor_token(account.conductor_id, account.email)
    return {"Authorization": f"Bearer {token}"}


class TestAccountRoutes:
    """Tests for registration, verification, login and password reset."""

    @pytest.mark.asyncio
    @patch("barulogix.services.mailer.ConductorMailer._send_email")
    async def test_register(
        self, mock_send: MagicMock, api_client: AsyncClient, mock_db_session
    ):
        mock_send.return_value = "<id@barulogix.test>"
        conductor = create_conductor()
        mock_db_session.execute.side_effect = [
            make_result(one=conductor),
            make_result(one=None),
        ]

        response = await api_client.post(
            "/api/conductor/auth/register",
            json={
                "conductor_id": str(conductor.conductor_id),
                "email": "Ana@Example.com",
                "password": DRIVER_PASSWORD,
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["conductor"] == {
            "id": str(conductor.conductor_id),
            "email": "ana@example.com",
        }
        assert data["email_sent"] is True
        html = mock_send.call_args.args[2]
        assert "https://app.barulogix.test/conductor/verify-email?token=" in html

    @pytest.mark.asyncio
    @patch("barulogix.services.mailer.ConductorMailer._send_email")
    async def test_register_with_mail_failure(
        self, mock_send: MagicMock, api_client: AsyncClient, mock_db_session
    ):
        mock_send.side_effect = EmailDeliveryError("Connection error: refused")
        conductor = create_conductor()
        mock_db_session.execute.side_effect = [
            make_result(one=conductor),
            make_result(one=None),
        ]

        response = await api_client.post(
            "/api/conductor/auth/register",
            json={
                "conductor_id": str(conductor.conductor_id),
                "email": "ana@example.com",
                "password": DRIVER_PASSWORD,
            },
        )

        assert response.status_code == 200
        assert response.json()["email_sent"] is False
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_register_weak_password(self, api_client: AsyncClient):
        response = await api_client.post(
            "/api/conductor/auth/register",
            json={"conductor_id": str(uuid4()), "email": "a@b.co", "password": "corta"},
        )

        assert response.status_code == 400
        assert "al menos 8 caracteres" in response.json()["error"]

    @pytest.mark.asyncio
    async def test_verify_email(self, api_client: AsyncClient, mock_db_session):
        account = create_conductor_account(
            email_verified=False,
            verification_token="v" * 64,
            verification_token_expires=datetime.now(UTC) + timedelta(hours=2),
        )
        mock_db_session.execute.side_effect = [make_result(one=account)]

        response = await api_client.get(f"/api/conductor/auth/verify-email?token={'v' * 64}")

        assert response.status_code == 200
        assert account.email_verified is True

    @pytest.mark.asyncio
    async def test_verify_email_without_token(self, api_client: AsyncClient):
        response = await api_client.get("/api/conductor/auth/verify-email")

        assert response.status_code == 400
        assert response.json()["error"] == "Token de verificación no proporcionado"

    @pytest.mark.asyncio
    async def test_login(self, api_client: AsyncClient, mock_db_session):
        account = create_conductor_account()
        mock_db_session.execute.side_effect = [make_result(one=account)]

        response = await api_client.post(
            "/api/conductor/auth/login",
            json={"email": account.email, "password": DRIVER_PASSWORD},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Inicio de sesión exitoso"
        assert data["conductor"]["id"] == str(account.conductor_id)
        assert data["token"].count(".") == 2

    @pytest.mark.asyncio
    async def test_login_unverified(self, api_client: AsyncClient, mock_db_session):
        mock_db_session.execute.side_effect = [
            make_result(one=create_conductor_account(email_verified=False))
        ]

        response = await api_client.post(
            "/api/conductor/auth/login",
            json={"email": "conductor@barulogix.test", "password": DRIVER_PASSWORD},
        )

        assert response.status_code == 401
        assert response.json()["code"] == "EMAIL_NOT_VERIFIED"

    @pytest.mark.asyncio
    async def test_forgot_password_is_generic(self, api_client: AsyncClient, mock_db_session):
        mock_db_session.execute.side_effect = [make_result(one=None)]

        response = await api_client.post(
            "/api/conductor/auth/forgot-password", json={"email": "nadie@barulogix.test"}
        )

        assert response.status_code == 200
        assert response.json()["message"] == PASSWORD_RESET_SENT

    @pytest.mark.asyncio
    async def test_reset_password(self, api_client: AsyncClient, mock_db_session):
        account = create_conductor_account(
            reset_token="r" * 64,
            reset_token_expires=datetime.now(UTC) + timedelta(minutes=30),
        )
        mock_db_session.execute.side_effect = [make_result(one=account)]

        response = await api_client.post(
            "/api/conductor/auth/reset-password",
            json={"token": "r" * 64, "password": "NuevaClave1"},
        )

        assert response.status_code == 200
        assert account.reset_token is None


class TestDriverSession:
    """Tests for driver token handling on portal routes."""

    @pytest.mark.asyncio
    async def test_profile(self, api_client: AsyncClient, mock_db_session):
        account = create_conductor_account(create_conductor(name="Ana", zone="Sur"))
        mock_db_session.execute.side_effect = [make_result(one=account)]

        response = await api_client.get("/api/conductor/profile", headers=driver_headers(account))

        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Ana"
        assert data["zone"] == "Sur"
        assert data["email"] == account.email
        assert data["email_verified"] is True

    @pytest.mark.asyncio
    async def test_missing_token(self, api_client: AsyncClient):
        response = await api_client.get("/api/conductor/profile")

        assert response.status_code == 401
        assert response.json()["error"] == "Token de autenticación requerido"

    @pytest.mark.asyncio
    async def test_warehouse_token_rejected(self, api_client: AsyncClient, mock_db_session):
        response = await api_client.get(
            "/api/conductor/profile", headers={"Authorization": f"Bearer {mint_token()}"}
        )

        assert response.status_code == 401
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_driver_token_rejected_on_warehouse_routes(self, api_client: AsyncClient):
        account = create_conductor_account()

        response = await api_client.get("/api/conductors", headers=driver_headers(account))

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_inactive_conductor(self, api_client: AsyncClient, mock_db_session):
        account = create_conductor_account(create_conductor(active=False))
        mock_db_session.execute.side_effect = [make_result(one=account)]

        response = await api_client.get("/api/conductor/profile", headers=driver_headers(account))

        assert response.status_code == 403


class TestDriverPackages:
    """Tests for the driver's packages and stats."""

    @pytest.mark.asyncio
    async def test_list_packages(self, api_client: AsyncClient, mock_db_session):
        account = create_conductor_account()
        package = create_package(
            account.conductor,
            tracking="DRP-77",
            shipment_type=ShipmentType.DROPI,
            value=Decimal("35000"),
        )
        mock_db_session.execute.side_effect = [
            make_result(one=account),
            make_result(count=1),
            make_result(many=[package]),
        ]

        response = await api_client.get(
            "/api/conductor/packages?type=dropi_pending&page=1&limit=10",
            headers=driver_headers(account),
        )

        assert response.status_code == 200
        data = response.json()
        assert data["type"] == "dropi_pending"
        assert [p["tracking"] for p in data["packages"]] == ["DRP-77"]
        assert data["pagination"] == {
            "current_page": 1,
            "total_pages": 1,
            "total_records": 1,
            "limit": 10,
            "has_next": False,
            "has_prev": False,
        }

    @pytest.mark.asyncio
    async def test_invalid_type(self, api_client: AsyncClient, mock_db_session):
        account = create_conductor_account()
        mock_db_session.execute.side_effect = [make_result(one=account)]

        response = await api_client.get(
            "/api/conductor/packages?type=todos", headers=driver_headers(account)
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Tipo de paquete inválido"

    @pytest.mark.asyncio
    async def test_stats(self, api_client: AsyncClient, mock_db_session):
        account = create_conductor_account()
        conductor = account.conductor
        packages = [
            create_package(conductor, status=PackageStatus.DELIVERED),
            create_package(conductor, shipment_type=ShipmentType.DROPI, value=Decimal("1000")),
        ]
        mock_db_session.execute.side_effect = [
            make_result(one=account),
            make_result(one=conductor),
            make_result(many=packages),
        ]

        response = await api_client.get("/api/conductor/stats", headers=driver_headers(account))

        assert response.status_code == 200
        data = response.json()
        assert data["shein_temu_delivered"] == 1
        assert data["dropi_pending"] == 1
        assert data["total"] == 2
        assert data["delivery_rate"] == 50
        assert data["pending_value_dropi"] == 1000.0


class TestDriverInbox:
    """Tests for the driver's notifications."""

    @pytest.mark.asyncio
    async def test_list_notifications(self, api_client: AsyncClient, mock_db_session):
        account = create_conductor_account()
        conductor = account.conductor
        notification = create_notification(conductor)
        mock_db_session.execute.side_effect = [
            make_result(one=account),
            make_result(one=conductor),
            make_result(many=[notification]),
            make_result(count=1),
            make_result(count=1),
        ]

        response = await api_client.get(
            "/api/conductor/notifications", headers=driver_headers(account)
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["unread_count"] == 1
        assert data["notifications"][0]["title"] == notification.title

    @pytest.mark.asyncio
    async def test_mark_one_read(self, api_client: AsyncClient, mock_db_session):
        account = create_conductor_account()
        notification = create_notification(account.conductor)
        mock_db_session.execute.side_effect = [
            make_result(one=account),
            make_result(one=notification),
        ]

        response = await api_client.put(
            "/api/conductor/notifications/mark-read",
            json={"notification_id": str(notification.notification_id)},
            headers=driver_headers(account),
        )

        assert response.status_code == 200
        assert response.json()["updated_count"] == 1
        assert notification.is_read is True

    @pytest.mark.asyncio
    async def test_mark_all_read(self, api_client: AsyncClient, mock_db_session):
        account = create_conductor_account()
        mock_db_session.execute.side_effect = [
            make_result(one=account),
            make_result(many=[uuid4(), uuid4()]),
        ]

        response = await api_client.post(
            "/api/conductor/notifications/mark-read",
            json={"mark_all": True},
            headers=driver_headers(account),
        )

        assert response.status_code == 200
        assert response.json()["updated_count"] == 2
