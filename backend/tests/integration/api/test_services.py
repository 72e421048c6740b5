"""
Integration tests for the service catalogue API.
"""

from decimal import Decimal

import pytest
from httpx import AsyncClient

from app.models.service import ServiceUnitType
from tests.factories import ServiceFactory


class TestServicesApi:
    @pytest.mark.asyncio
    async def test_create_update_delete(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/services",
            headers=auth_headers,
            json={
                "name": "  Strategy workshop ",
                "description": "Half-day session",
                "default_unit_price": "1500.00",
                "unit_type": "days",
            },
        )
        assert response.status_code == 201
        data = response.json()
        service_id = data["id"]
        assert data["name"] == "Strategy workshop"
        assert data["default_unit_price"] == 1500.0
        assert data["unit_type"] == "days"
        # Agency currency when none is given
        assert data["currency"] == "EUR"
        assert data["is_active"] is True

        response = await client.patch(
            f"/api/services/{service_id}",
            headers=auth_headers,
            json={"default_unit_price": 1750, "description": "  ", "name": None},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["default_unit_price"] == 1750.0
        assert data["description"] is None
        assert data["name"] == "Strategy workshop"

        response = await client.delete(f"/api/services/{service_id}", headers=auth_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/services/{service_id}", headers=auth_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_active_only_filter(
        self, client: AsyncClient, db_session, test_agency, auth_headers
    ):
        await ServiceFactory.create(db_session, test_agency, name="Web build")
        await ServiceFactory.create(
            db_session,
            test_agency,
            name="Consulting",
            unit_type=ServiceUnitType.HOURS,
            default_unit_price=Decimal("120.00"),
        )
        await ServiceFactory.create(db_session, test_agency, name="Banner ads", is_active=False)

        response = await client.get("/api/services", headers=auth_headers)
        assert [s["name"] for s in response.json()["items"]] == [
            "Banner ads",
            "Consulting",
            "Web build",
        ]

        response = await client.get("/api/services?active_only=true", headers=auth_headers)
        assert response.json()["total"] == 2
        assert [s["name"] for s in response.json()["items"]] == ["Consulting", "Web build"]

    @pytest.mark.asyncio
    async def test_deactivate_hides_from_active_list(
        self, client: AsyncClient, db_session, test_agency, auth_headers
    ):
        service = await ServiceFactory.create(db_session, test_agency)

        response = await client.patch(
            f"/api/services/{service.id}", headers=auth_headers, json={"is_active": False}
        )
        assert response.status_code == 200
        assert response.json()["is_active"] is False

        response = await client.get("/api/services?active_only=true", headers=auth_headers)
        assert response.json()["items"] == []

    @pytest.mark.parametrize(
        "payload",
        [
            {"name": "Copywriting", "default_unit_price": "50", "unit_type": "weeks"},
            {"name": "Copywriting", "default_unit_price": "-1", "unit_type": "hours"},
            {"name": "   ", "default_unit_price": "50", "unit_type": "hours"},
            {"name": "Copywriting", "unit_type": "hours"},
        ],
    )
    @pytest.mark.asyncio
    async def test_invalid_service_is_rejected(
        self, client: AsyncClient, auth_headers, payload
    ):
        response = await client.post("/api/services", headers=auth_headers, json=payload)

        assert response.status_code == 400
        assert response.json()["error"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_other_agency_service_is_404(
        self, client: AsyncClient, db_session, test_agency, other_auth_headers
    ):
        service = await ServiceFactory.create(db_session, test_agency)

        response = await client.patch(
            f"/api/services/{service.id}", headers=other_auth_headers, json={"is_active": False}
        )
        assert response.status_code == 404

        response = await client.get("/api/services", headers=other_auth_headers)
        assert response.json()["items"] == []
