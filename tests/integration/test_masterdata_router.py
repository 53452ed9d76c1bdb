"""Integration tests for master-data CRUD endpoints and the currency sync."""

import httpx
import pytest

from erp_backoffice.masterdata.currency_sync import CurrencyCatalogClient, CurrencySyncService


@pytest.fixture
def catalog(app):
    """Point the currency sync at an in-process catalog."""
    from erp_backoffice import deps

    def handler(request):
        return httpx.Response(200, json={"USD": "US Dollar", "EUR": "Euro"})

    client = CurrencyCatalogClient("https://catalog.test/currencies", transport=httpx.MockTransport(handler))
    deps._currency_sync = CurrencySyncService(client)
    yield
    deps._currency_sync = None


class TestCrud:
    async def test_round_trip(self, client, admin_headers, seeded):
        resp = await client.post(
            "/api/admin/master/building",
            json={"code": "B1", "name": "Main plant"},
            headers=admin_headers,
        )
        assert resp.status_code == 201
        item = resp.json()["data"]
        assert item["created_by_id"] == seeded.admin_user_id

        resp = await client.put(
            f"/api/admin/master/building/{item['id']}",
            json={"remarks": "North gate"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["data"]["name"] == "Main plant"
        assert resp.json()["data"]["remarks"] == "North gate"

        resp = await client.get(f"/api/admin/master/building/{item['id']}", headers=admin_headers)
        assert resp.json()["data"]["code"] == "B1"

        resp = await client.delete(f"/api/admin/master/building/{item['id']}", headers=admin_headers)
        assert resp.status_code == 200
        resp = await client.get(f"/api/admin/master/building/{item['id']}", headers=admin_headers)
        assert resp.status_code == 404

    async def test_foreign_key_checked(self, client, admin_headers):
        resp = await client.post(
            "/api/admin/master/warehouse",
            json={"code": "W1", "building_id": 999},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    async def test_duplicate_code(self, client, admin_headers):
        body = {"code": "KG", "name": "Kilogram"}
        await client.post("/api/admin/master/uom", json=body, headers=admin_headers)
        resp = await client.post("/api/admin/master/uom", json=body, headers=admin_headers)
        assert resp.status_code == 409

    async def test_validation_error_envelope(self, client, admin_headers):
        resp = await client.post("/api/admin/master/uom", json={"code": ""}, headers=admin_headers)
        assert resp.status_code == 400
        body = resp.json()
        assert body["status"] == 400
        assert body["code"] == "INVALID_INPUT"

    async def test_empty_list_is_ok(self, client, admin_headers):
        resp = await client.get("/api/admin/master/tax-code", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["items"] == []
        assert data["pagination"]["total_rows"] == 0

    async def test_requires_token(self, client):
        resp = await client.get("/api/admin/master/department")
        assert resp.status_code == 401


class TestCurrencySync:
    async def test_sync_endpoint(self, client, admin_headers, catalog):
        resp = await client.post("/api/admin/master/currency/sync", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["data"] == {"created": 2, "skipped": 0, "failed": []}

        resp = await client.get(
            "/api/admin/master/currency", params={"sortBy": "code"}, headers=admin_headers
        )
        assert [c["code"] for c in resp.json()["data"]["items"]] == ["EUR", "USD"]

        resp = await client.post("/api/admin/master/currency/sync", headers=admin_headers)
        assert resp.json()["data"]["skipped"] == 2


class TestHealth:
    async def test_health(self, client):
        resp = await client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "ok"
