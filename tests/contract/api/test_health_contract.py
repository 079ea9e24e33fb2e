import httpx
import pytest

from src.app import create_app
from src.api.router import health


@pytest.fixture
async def client():
    transport = httpx.ASGITransport(app=create_app())
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


def stub_checks(monkeypatch, redis_status, database_status):
    async def redis_check():
        return {"status": redis_status, "message": "stub"}

    async def database_check():
        return {"status": database_status, "message": "stub"}

    monkeypatch.setattr(health, "check_redis_health", redis_check)
    monkeypatch.setattr(health, "check_database_health", database_check)


async def test_health_check_contract(client, monkeypatch):
    """Contract test for health check endpoint
    Verifies the response schema and format matches the API contract
    """
    stub_checks(monkeypatch, "healthy", "healthy")

    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()

    # Schema validation
    assert set(data) == {"status", "service", "version", "services", "timestamp"}
    assert isinstance(data["version"], str)
    assert data["service"] == "SIWF-Auth"
    assert data["status"] == "healthy"
    assert data["services"] == {"redis": "healthy", "database": "healthy", "api": "healthy"}


async def test_health_check_degraded(client, monkeypatch):
    stub_checks(monkeypatch, "healthy", "unhealthy")

    response = await client.get("/api/v1/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["services"]["database"] == "unhealthy"
