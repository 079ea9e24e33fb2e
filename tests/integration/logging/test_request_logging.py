import httpx
import pytest
import json
import logging

from src.app import create_app
from src.core.dependencies import get_redis_client
from src.core.logger.logger import JsonFormatter
from src.api.router import health
from src.infra.database import get_async_session

SESSION_PATH = "/api/auth/siwf/session"


@pytest.fixture
async def client(monkeypatch, redis_client, database):
    """Create a new test client for each test"""
    async def healthy():
        return {"status": "healthy", "message": "stub"}

    async def override_session():
        async with database.get_session_factory()() as session:
            yield session

    async def override_redis():
        return redis_client

    monkeypatch.setattr(health, "check_redis_health", healthy)
    monkeypatch.setattr(health, "check_database_health", healthy)

    app = create_app()
    app.dependency_overrides[get_redis_client] = override_redis
    app.dependency_overrides[get_async_session] = override_session

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac


@pytest.fixture(autouse=True)
def setup_logging(caplog):
    """Setup logging to capture logs in tests"""
    caplog.set_level(logging.INFO)
    logger = logging.getLogger("SIWF")
    logger.propagate = True
    yield
    logger.propagate = True


def get_json_logs(caplog):
    """Extract JSON logs from caplog output"""
    logs = []
    for record in caplog.records:
        try:
            if isinstance(record.msg, str) and record.msg.startswith("{"):
                logs.append(json.loads(record.msg))
        except json.JSONDecodeError:
            continue
    return logs


async def test_request_logging(client, caplog):
    """Test that API requests are logged with correlation ID"""
    correlation_id = "test-correlation-id"
    response = await client.get(
        SESSION_PATH,
        headers={"X-Request-ID": correlation_id, "User-Agent": "Warpcast/1.0"}
    )
    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == correlation_id

    request_log = next(
        (log for log in get_json_logs(caplog) if log.get("request_id") == correlation_id),
        None
    )
    assert request_log is not None
    assert request_log["method"] == "GET"
    assert request_log["path"] == SESSION_PATH
    assert request_log["status_code"] == 200
    assert request_log["user_agent"] == "Warpcast/1.0"
    assert request_log["has_session"] is False


async def test_session_token_is_never_logged(client, caplog):
    response = await client.get(
        SESSION_PATH,
        headers={"Authorization": "Bearer very-secret-token", "X-Request-ID": "with-token"}
    )
    assert response.status_code == 200

    request_log = next(log for log in get_json_logs(caplog) if log.get("request_id") == "with-token")
    assert request_log["has_session"] is True
    assert "very-secret-token" not in caplog.text


async def test_generated_request_id(client):
    response = await client.get(SESSION_PATH)

    assert response.headers["X-Request-ID"]


async def test_health_checks_are_quiet(client, caplog):
    response = await client.get("/api/v1/health", headers={"X-Request-ID": "probe"})
    assert response.status_code == 200

    assert not [log for log in get_json_logs(caplog) if log.get("request_id") == "probe"]


async def test_validation_error_logged_as_warning(client, caplog):
    """Client errors are logged at warning level with the request id"""
    response = await client.post(
        "/api/auth/siwf/verify",
        json={"invalid": "data"},
        headers={"X-Request-ID": "bad-request"}
    )
    assert response.status_code == 422

    records = [r for r in caplog.records if "bad-request" in r.getMessage()]
    assert records
    assert records[-1].levelno == logging.WARNING
    assert json.loads(records[-1].getMessage())["status_code"] == 422


async def test_performance_metrics_logging(client, caplog):
    """Test that performance metrics are logged"""
    response = await client.get(SESSION_PATH)
    assert response.status_code == 200

    perf_log = next((log for log in get_json_logs(caplog) if "duration_ms" in log), None)
    assert perf_log is not None
    assert perf_log["duration_ms"] >= 0
    assert perf_log["timestamp"].endswith("Z")


def test_json_formatter_includes_extra_fields():
    record = logging.LogRecord("SIWF", logging.INFO, __file__, 1, "Issued nonce", None, None)
    record.fid = 42

    data = json.loads(JsonFormatter().format(record))

    assert data["message"] == "Issued nonce"
    assert data["fid"] == 42
    assert data["level"] == "INFO"
    assert "exception" not in data
