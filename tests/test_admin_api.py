"""Tests for the admin and auth API routers.

The identity provider is replaced with an httpx MockTransport through the
get_identity_client dependency.
"""

import httpx
import pytest
from httpx import AsyncClient

from barulogix.api.dependencies import get_identity_client
from barulogix.core.config import IdentityProviderSettings
from barulogix.services.errors import EMAIL_NOT_VERIFIED
from barulogix.services.history import OperationType
from barulogix.services.identity import IdentityProviderClient
from tests.factories import (
    ADMIN_EMAIL,
    OWNER_ID,
    create_conductor,
    create_history_entry,
    create_package,
    make_result,
)

OTHER_USER_ID = "6f1c2a9e-8b0d-4a57-9c1e-2f3a4b5c6d7e"


def _user(user_id=OTHER_USER_ID, email="bodega@barulogix.test", **overrides):
    payload = {
        "id": user_id,
        "email": email,
        "created_at": "2026-01-15T10:00:00Z",
        "email_confirmed_at": "2026-01-15T10:05:00Z",
        "banned_until": None,
        "user_metadata": {},
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def identity_provider(test_app):
    """Install a fake identity provider; returns a setter for its handler."""
    state = {"handler": lambda request: httpx.Response(500)}
    settings = IdentityProviderSettings(
        url="https://idp.barulogix.test", anon_key="anon-key", service_role_key="service-key"
    )

    async def override():
        transport = httpx.MockTransport(lambda request: state["handler"](request))
        async with IdentityProviderClient(settings, transport=transport) as client:
            yield client

    test_app.dependency_overrides[get_identity_client] = override

    def set_handler(handler):
        state["handler"] = handler

    return set_handler


class TestLogin:
    """Tests for /api/auth/login."""

    @pytest.mark.asyncio
    async def test_login(self, api_client: AsyncClient, identity_provider):
        identity_provider(
            lambda request: httpx.Response(
                200,
                json={
                    "access_token": "access",
                    "refresh_token": "refresh",
                    "expires_in": 3600,
                    "user": _user(email=ADMIN_EMAIL),
                },
            )
        )

        response = await api_client.post(
            "/api/auth/login", json={"email": ADMIN_EMAIL, "password": "secreto"}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["access_token"] == "access"
        assert data["token_type"] == "bearer"
        assert data["user"]["is_admin"] is True

    @pytest.mark.asyncio
    async def test_login_unverified_email(self, api_client: AsyncClient, identity_provider):
        identity_provider(
            lambda request: httpx.Response(400, json={"error_code": "email_not_confirmed"})
        )

        response = await api_client.post(
            "/api/auth/login", json={"email": "nuevo@barulogix.test", "password": "secreto"}
        )

        assert response.status_code == 401
        body = response.json()
        assert body["code"] == EMAIL_NOT_VERIFIED
        assert body["error"] == "Tu email aún no está verificado"

    @pytest.mark.asyncio
    async def test_login_bad_credentials(self, api_client: AsyncClient, identity_provider):
        identity_provider(lambda request: httpx.Response(400, json={"error": "invalid_grant"}))

        response = await api_client.post(
            "/api/auth/login", json={"email": "x@barulogix.test", "password": "mala"}
        )

        assert response.status_code == 401
        assert response.json()["error"] == "Credenciales inválidas"


class TestAdminUsers:
    """Tests for /api/admin/users."""

    @pytest.mark.asyncio
    async def test_list_users(self, api_client: AsyncClient, identity_provider, admin_headers):
        identity_provider(
            lambda request: httpx.Response(
                200,
                json={
                    "users": [
                        _user(),
                        _user(user_id=str(OWNER_ID), email=ADMIN_EMAIL),
                        _user(
                            user_id="0b7e1c3d-2f4a-4e5b-8c6d-7e8f9a0b1c2d",
                            email="baneado@barulogix.test",
                            banned_until="2999-01-01T00:00:00Z",
                        ),
                    ]
                },
            )
        )

        response = await api_client.get("/api/admin/users", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["stats"] == {"total": 3, "active": 2, "banned": 1, "confirmed": 3}
        flags = {u["email"]: (u["is_admin"], u["banned"]) for u in data["users"]}
        assert flags[ADMIN_EMAIL] == (True, False)
        assert flags["baneado@barulogix.test"] == (False, True)

    @pytest.mark.asyncio
    async def test_list_users_requires_admin(self, api_client: AsyncClient, owner_headers):
        response = await api_client.get("/api/admin/users", headers=owner_headers)

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_ban_user(
        self, api_client: AsyncClient, identity_provider, mock_db_session, admin_headers
    ):
        identity_provider(lambda request: httpx.Response(200, json=_user()))

        response = await api_client.put(
            f"/api/admin/users/{OTHER_USER_ID}", json={"action": "ban"}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Usuario baneado exitosamente"
        history = mock_db_session.add.call_args.args[0]
        assert history.operation_type == OperationType.USER_BAN
        assert history.user_id == OWNER_ID
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_cannot_ban_self(self, api_client: AsyncClient, identity_provider, admin_headers):
        response = await api_client.put(
            f"/api/admin/users/{OWNER_ID}", json={"action": "ban"}, headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "No puedes banearte a ti mismo"

    @pytest.mark.asyncio
    async def test_unknown_action(self, api_client: AsyncClient, identity_provider, admin_headers):
        response = await api_client.put(
            f"/api/admin/users/{OTHER_USER_ID}", json={"action": "promote"}, headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Acción no válida"

    @pytest.mark.asyncio
    async def test_delete_missing_user(
        self, api_client: AsyncClient, identity_provider, mock_db_session, admin_headers
    ):
        identity_provider(lambda request: httpx.Response(404, json={"msg": "User not found"}))

        response = await api_client.delete(
            f"/api/admin/users/{OTHER_USER_ID}", headers=admin_headers
        )

        assert response.status_code == 404
        mock_db_session.commit.assert_not_called()

    @pytest.mark.asyncio
    async def test_cannot_delete_self(
        self, api_client: AsyncClient, identity_provider, admin_headers
    ):
        response = await api_client.delete(f"/api/admin/users/{OWNER_ID}", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "No puedes eliminarte a ti mismo"


class TestAdminHistory:
    """Tests for /api/admin/history."""

    @pytest.mark.asyncio
    async def test_history(self, api_client: AsyncClient, mock_db_session, admin_headers):
        entries = [create_history_entry(), create_history_entry(operation_type="export")]
        mock_db_session.execute.return_value = make_result(many=entries)

        response = await api_client.get("/api/admin/history?limit=10", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert data["operations"][1]["operation_type"] == "export"


class TestAdminOperations:
    """Tests for /api/admin/operations and /api/admin/undo."""

    @pytest.mark.asyncio
    async def test_change_states(self, api_client: AsyncClient, mock_db_session, admin_headers):
        conductor = create_conductor()
        package = create_package(conductor)
        mock_db_session.execute.side_effect = [
            make_result(one=conductor),
            make_result(many=[package]),
        ]

        response = await api_client.post(
            "/api/admin/operations",
            json={
                "operation": "change_states",
                "conductor_id": str(conductor.conductor_id),
                "new_state": 1,
            },
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["affected_records"] == 1
        assert data["details"]["old_states"][0]["package_id"] == str(package.package_id)
        entry = mock_db_session.add.call_args.args[0]
        assert entry.user_id == OWNER_ID
        assert entry.can_undo is True

    @pytest.mark.asyncio
    async def test_transfer(self, api_client: AsyncClient, mock_db_session, admin_headers):
        source = create_conductor()
        target = create_conductor()
        package = create_package(source, tracking="T1")
        mock_db_session.execute.side_effect = [
            make_result(one=target),
            make_result(one=source),
            make_result(many=[package]),
        ]

        response = await api_client.post(
            "/api/admin/operations",
            json={
                "operation": "transfer_packages",
                "from_conductor_id": str(source.conductor_id),
                "to_conductor_id": str(target.conductor_id),
                "transfer_type": "individual",
                "single_tracking": "T1",
            },
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert package.conductor_id == target.conductor_id

    @pytest.mark.asyncio
    async def test_missing_conductor(self, api_client: AsyncClient, admin_headers):
        response = await api_client.post(
            "/api/admin/operations",
            json={"operation": "update_dates", "new_date": "2026-05-20"},
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Conductor requerido"

    @pytest.mark.asyncio
    async def test_unknown_operation(self, api_client: AsyncClient, admin_headers):
        response = await api_client.post(
            "/api/admin/operations", json={"operation": "drop_all"}, headers=admin_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Operación no válida"

    @pytest.mark.asyncio
    async def test_operations_require_admin(self, api_client: AsyncClient, owner_headers):
        response = await api_client.post(
            "/api/admin/operations",
            json={"operation": "toggle_conductors"},
            headers=owner_headers,
        )

        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_undo(self, api_client: AsyncClient, mock_db_session, admin_headers):
        entry = create_history_entry(
            operation_type=OperationType.BULK_IMPORT,
            details={"inserted": 1, "trackings": ["SHN-001"]},
            can_undo=True,
        )
        deleted = make_result()
        deleted.rowcount = 1
        mock_db_session.execute.side_effect = [
            make_result(one=entry),
            make_result(many=[create_conductor().conductor_id]),
            deleted,
        ]

        response = await api_client.post("/api/admin/undo", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Paquetes masivos eliminados exitosamente"
        assert data["details"]["original_operation_id"] == str(entry.history_id)
        assert entry.undone_at is not None

    @pytest.mark.asyncio
    async def test_undo_with_empty_history(
        self, api_client: AsyncClient, mock_db_session, admin_headers
    ):
        mock_db_session.execute.side_effect = [make_result(one=None)]

        response = await api_client.post("/api/admin/undo", headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "No hay operaciones para deshacer"
