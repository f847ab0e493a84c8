"""Tests for the packages and conductors API routers.

Database access goes through the mock session; create-style routes patch
the repository so responses carry realistic ids.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest
from httpx import AsyncClient

from barulogix.db.models.base import PackageStatus, ShipmentType
from barulogix.services.conductors import ConductorRepository
from barulogix.services.packages import PackageRepository
from tests.factories import create_conductor, create_overdue_package, create_package, make_result


class TestPackageRoutes:
    """Tests for /api/packages."""

    @pytest.mark.asyncio
    async def test_list_packages(self, api_client: AsyncClient, mock_db_session, owner_headers):
        conductor = create_conductor(name="Ana", zone="Norte")
        package = create_package(
            conductor,
            tracking="DRP-1",
            shipment_type=ShipmentType.DROPI,
            value=Decimal("25000"),
        )
        mock_db_session.execute.return_value = make_result(many=[package])

        response = await api_client.get("/api/packages", headers=owner_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        item = data["packages"][0]
        assert item["tracking"] == "DRP-1"
        assert item["status_label"] == "No entregado"
        assert item["value"] == 25000.0
        assert item["conductor"] == {
            "id": str(conductor.conductor_id),
            "name": "Ana",
            "zone": "Norte",
        }

    @pytest.mark.asyncio
    async def test_create_package(
        self, api_client: AsyncClient, owner_headers, monkeypatch
    ):
        package = create_package(tracking="SHN-77", due_date=date(2026, 6, 20))
        create = AsyncMock(return_value=package)
        monkeypatch.setattr(PackageRepository, "create", create)

        response = await api_client.post(
            "/api/packages",
            json={
                "tracking": "SHN-77",
                "conductor_id": str(package.conductor_id),
                "shipment_type": "Shein/Temu",
                "due_date": "2026-06-20",
            },
            headers=owner_headers,
        )

        assert response.status_code == 201
        assert response.json()["id"] == str(package.package_id)
        assert create.await_args.kwargs["tracking"] == "SHN-77"

    @pytest.mark.asyncio
    async def test_create_package_missing_fields(
        self, api_client: AsyncClient, mock_db_session, owner_headers
    ):
        response = await api_client.post(
            "/api/packages", json={"tracking": "SHN-1"}, headers=owner_headers
        )

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"
        mock_db_session.add.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_missing_package(
        self, api_client: AsyncClient, mock_db_session, owner_headers
    ):
        mock_db_session.execute.return_value = make_result(one=None)

        response = await api_client.get(f"/api/packages/{uuid4()}", headers=owner_headers)

        assert response.status_code == 404
        assert response.json()["error"] == "Paquete no encontrado"

    @pytest.mark.asyncio
    async def test_delete_package(
        self, api_client: AsyncClient, mock_db_session, owner_headers
    ):
        package = create_package()
        mock_db_session.execute.side_effect = [make_result(one=package), make_result()]

        response = await api_client.delete(
            f"/api/packages/{package.package_id}", headers=owner_headers
        )

        assert response.status_code == 200
        assert response.json() == {"success": True, "message": "Paquete eliminado exitosamente"}
        mock_db_session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_search_invalid_status(self, api_client: AsyncClient, owner_headers):
        response = await api_client.get("/api/packages/search?status=7", headers=owner_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "Estado inválido"

    @pytest.mark.asyncio
    async def test_search_blank_tracking_rejected(
        self, api_client: AsyncClient, mock_db_session, owner_headers
    ):
        response = await api_client.get(
            "/api/packages/search", params={"tracking": "   "}, headers=owner_headers
        )

        assert response.status_code == 400
        assert "al menos un criterio" in response.json()["error"]
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_stats_with_window(
        self, api_client: AsyncClient, mock_db_session, owner_headers
    ):
        conductor = create_conductor()
        mock_db_session.execute.return_value = make_result(
            many=[
                create_package(conductor, status=PackageStatus.DELIVERED),
                create_package(conductor),
            ]
        )

        response = await api_client.get(
            "/api/packages/stats?date_filter=lastDays&lastDays=7", headers=owner_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["stats"]["total"] == 2
        assert data["stats"]["delivery_rate"] == 50
        assert data["date_from"] is not None
        assert data["date_to"] is None

    @pytest.mark.asyncio
    async def test_stats_invalid_window(self, api_client: AsyncClient, owner_headers):
        response = await api_client.get(
            "/api/packages/stats?date_filter=lastDays&lastDays=45", headers=owner_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Número de días inválido"

    @pytest.mark.asyncio
    async def test_stats_month_with_year_zero(self, api_client: AsyncClient, owner_headers):
        response = await api_client.get(
            "/api/packages/stats?date_filter=month&month=2&year=0", headers=owner_headers
        )

        assert response.status_code == 400
        assert response.json()["error"] == "Año inválido"

    @pytest.mark.asyncio
    async def test_by_conductor(self, api_client: AsyncClient, mock_db_session, owner_headers):
        conductor = create_conductor(name="Luis")
        packages = [create_overdue_package(conductor, 6), create_overdue_package(conductor, 2)]
        mock_db_session.execute.side_effect = [
            make_result(one=conductor),
            make_result(many=packages),
        ]

        response = await api_client.get(
            f"/api/packages/by-conductor/{conductor.conductor_id}", headers=owner_headers
        )

        assert response.status_code == 200
        data = response.json()
        assert data["conductor"]["name"] == "Luis"
        assert data["stats"]["pending"] == 2
        assert [p["days_late"] for p in data["delayed"]] == [6]
        assert data["average_pending_delay_days"] == 4

    @pytest.mark.asyncio
    async def test_deliveries_require_trackings(
        self, api_client: AsyncClient, mock_db_session, owner_headers
    ):
        response = await api_client.post(
            "/api/packages/deliveries", json={"trackings": []}, headers=owner_headers
        )

        assert response.status_code == 400
        mock_db_session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_bulk_search(self, api_client: AsyncClient, mock_db_session, owner_headers):
        conductor = create_conductor()
        package = create_overdue_package(conductor, 5, tracking="T-1")
        mock_db_session.execute.side_effect = [
            make_result(many=[conductor.conductor_id]),
            make_result(many=[package]),
        ]

        response = await api_client.post(
            "/api/packages/search/bulk",
            json={"trackings": ["T-1", " T-1 ", "", "T-2"]},
            headers=owner_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["total_requested"] == 2
        assert data["total_found"] == 1
        assert data["not_found"] == ["T-2"]
        assert data["found"][0]["days_late"] == 5


class TestConductorRoutes:
    """Tests for /api/conductors."""

    @pytest.mark.asyncio
    async def test_list_conductors(
        self, api_client: AsyncClient, mock_db_session, owner_headers
    ):
        mock_db_session.execute.return_value = make_result(
            many=[create_conductor(name="Ana"), create_conductor(name="Luis", active=False)]
        )

        response = await api_client.get("/api/conductors", headers=owner_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [c["active"] for c in data["conductors"]] == [True, False]

    @pytest.mark.asyncio
    async def test_create_conductor(self, api_client: AsyncClient, owner_headers, monkeypatch):
        conductor = create_conductor(name="Marta", zone="Centro")
        monkeypatch.setattr(ConductorRepository, "create", AsyncMock(return_value=conductor))

        response = await api_client.post(
            "/api/conductors",
            json={"name": "Marta", "zone": "Centro"},
            headers=owner_headers,
        )

        assert response.status_code == 201
        assert response.json()["id"] == str(conductor.conductor_id)

    @pytest.mark.asyncio
    async def test_zones(self, api_client: AsyncClient, mock_db_session, owner_headers):
        mock_db_session.execute.return_value = make_result(many=["Centro", "Norte"])

        response = await api_client.get("/api/conductors/zones", headers=owner_headers)

        assert response.json() == {"zones": ["Centro", "Norte"]}

    @pytest.mark.asyncio
    async def test_purge_with_packages_conflicts(
        self, api_client: AsyncClient, mock_db_session, owner_headers
    ):
        conductor = create_conductor()
        mock_db_session.execute.side_effect = [
            make_result(one=conductor),
            make_result(count=3),
        ]

        response = await api_client.delete(
            f"/api/conductors/{conductor.conductor_id}", headers=owner_headers
        )

        assert response.status_code == 409
        assert response.json()["details"] == {"packages": 3}
