try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import httpx
import pytest

from repair_api.clients import SQLiteApiKeyStore
from repair_api.core.config import get_settings
from repair_api.main import app
from repair_api.services import ApiKeyService

ADMIN_HEADERS = {"X-ADMIN-KEY": "test-admin-key"}

pytestmark = pytest.mark.anyio("asyncio")


@pytest.fixture()
def key_service(tmp_path):
    from repair_api import dependencies

    service = ApiKeyService(SQLiteApiKeyStore(str(tmp_path / "keys.db")))
    settings = get_settings()
    admin_settings = settings.model_copy(
        update={
            "auth": settings.auth.model_copy(update={"admin_api_key": "test-admin-key"})
        }
    )

    app.dependency_overrides.clear()
    app.dependency_overrides.update(
        {
            dependencies.get_api_key_service: lambda: service,
            dependencies.get_app_settings: lambda: admin_settings,
        }
    )

    yield service

    app.dependency_overrides.clear()


@pytest.fixture()
async def client(key_service):
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
    ) as test_client:
        yield test_client


async def _create_key(client, **overrides) -> dict:
    payload = {
        "name": "Claims desk",
        "ownerEmail": "claims@example.com",
        "ownerId": "owner-1",
        "rateLimitTier": "premium",
    }
    payload.update(overrides)
    response = await client.post("/admin/api-keys", json=payload, headers=ADMIN_HEADERS)
    assert response.status_code == 201
    return response.json()


async def test_admin_routes_require_admin_key(key_service, client):
    missing = await client.get("/admin/api-keys", params={"ownerId": "owner-1"})
    wrong = await client.get(
        "/admin/api-keys",
        params={"ownerId": "owner-1"},
        headers={"X-ADMIN-KEY": "guess"},
    )

    assert missing.status_code == 401
    assert wrong.status_code == 401


async def test_create_returns_plaintext_key_once(key_service, client):
    created = await _create_key(client)

    assert created["key"].startswith("sk_")
    assert created["prefix"] == "sk_"
    assert created["rateLimitTier"] == "premium"
    assert created["warning"]
    assert "keyHash" not in created
    assert key_service.authenticate(created["key"]).id == created["id"]

    listed = await client.get(
        "/admin/api-keys", params={"ownerId": "owner-1"}, headers=ADMIN_HEADERS
    )
    assert listed.status_code == 200
    keys = listed.json()["keys"]
    assert [entry["id"] for entry in keys] == [created["id"]]
    assert "key" not in keys[0]


async def test_create_rejects_invalid_email(key_service, client):
    response = await client.post(
        "/admin/api-keys",
        json={"name": "Bad", "ownerEmail": "not-an-email"},
        headers=ADMIN_HEADERS,
    )

    assert response.status_code == 422


async def test_deactivate_and_stats(key_service, client):
    created = await _create_key(client)
    key_service.record_usage(key_service.authenticate(created["key"]))

    stats = await client.get(
        "/admin/api-keys/stats",
        params={"keyId": created["id"], "ownerId": "owner-1"},
        headers=ADMIN_HEADERS,
    )
    assert stats.status_code == 200
    assert stats.json()["dailyUsage"] == 1
    assert stats.json()["totalUsage"] == 1

    deleted = await client.request(
        "DELETE",
        "/admin/api-keys",
        json={"keyId": created["id"], "ownerId": "owner-1"},
        headers=ADMIN_HEADERS,
    )
    assert deleted.status_code == 200

    again = await client.request(
        "DELETE",
        "/admin/api-keys",
        json={"keyId": created["id"], "ownerId": "owner-1"},
        headers=ADMIN_HEADERS,
    )
    assert again.status_code == 404


async def test_stats_for_unknown_key_is_not_found(key_service, client):
    response = await client.get(
        "/admin/api-keys/stats",
        params={"keyId": "missing", "ownerId": "owner-1"},
        headers=ADMIN_HEADERS,
    )

    assert response.status_code == 404
