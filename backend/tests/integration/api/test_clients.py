"""
Integration tests for the clients API.
"""

import pytest
from httpx import AsyncClient

from tests.factories import ClientFactory


class TestClientsApi:
    @pytest.mark.asyncio
    async def test_create_list_update_delete(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/clients",
            headers=auth_headers,
            json={"name": "Globex", "email": "ap@globex.com", "company": "Globex Inc"},
        )
        assert response.status_code == 201
        client_id = response.json()["id"]

        response = await client.get("/api/clients", headers=auth_headers)
        assert response.json()["total"] == 1
        assert response.json()["items"][0]["name"] == "Globex"

        response = await client.put(
            f"/api/clients/{client_id}", headers=auth_headers, json={"name": "Globex Corp"}
        )
        assert response.status_code == 200
        assert response.json()["name"] == "Globex Corp"
        assert response.json()["email"] == "ap@globex.com"

        response = await client.delete(f"/api/clients/{client_id}", headers=auth_headers)
        assert response.status_code == 204

        response = await client.get(f"/api/clients/{client_id}", headers=auth_headers)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_email(self, client: AsyncClient, auth_headers):
        response = await client.post(
            "/api/clients", headers=auth_headers, json={"name": "Bad", "email": "not-an-email"}
        )

        assert response.status_code == 400
        assert response.json()["details"]["errors"]

    @pytest.mark.asyncio
    async def test_other_agency_client_is_404(
        self, client: AsyncClient, db_session, test_agency, other_auth_headers
    ):
        customer = await ClientFactory.create(db_session, test_agency)

        response = await client.get(f"/api/clients/{customer.id}", headers=other_auth_headers)

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unknown_user_has_no_agency(self, client: AsyncClient):
        from app.core.auth import create_access_token

        headers = {"Authorization": f"Bearer {create_access_token({'sub': 'nobody'})}"}

        response = await client.get("/api/clients", headers=headers)

        assert response.status_code == 404
        assert response.json()["error"] == "AgencyNotFoundError"
