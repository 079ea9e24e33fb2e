import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock
from uuid import UUID

from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.service.siwf.cache.session_store import SessionStore
from src.core.service.siwf.models.session import DeviceInfo, SessionStatus
from src.core.service.siwf.session_service import UserSessionService

TEST_USER_ID = "3f0c9a52-2a7e-4f6e-9a8f-1d2b3c4d5e6f"
TEST_FID = 42
TEST_DEVICE_INFO = DeviceInfo(user_agent="Warpcast/1.0", ip_address="127.0.0.1")


@pytest.fixture
def session_store(redis_client):
    return SessionStore(redis_client)


@pytest.fixture
def session_service(session_store):
    return UserSessionService(session_store)


async def test_create_session(session_service, redis_client):
    """Should create a session bound to the user and verified fid"""
    session = await session_service.create_session(TEST_USER_ID, TEST_FID, TEST_DEVICE_INFO)

    assert isinstance(session.id, UUID)
    assert session.user_id == TEST_USER_ID
    assert session.fid == TEST_FID
    assert session.device_info == TEST_DEVICE_INFO
    assert session.status == SessionStatus.ACTIVE
    assert session.is_active
    assert session.expires_at - session.created_at == timedelta(days=7)
    assert len(session.token) >= 40

    ttl = await redis_client.ttl(f"session:{session.token}")
    assert 0 < ttl <= 7 * 24 * 3600
    assert session.token in await redis_client.smembers(f"user_sessions:{TEST_USER_ID}")


async def test_tokens_are_unique(session_service):
    first = await session_service.create_session(TEST_USER_ID, TEST_FID)
    second = await session_service.create_session(TEST_USER_ID, TEST_FID)

    assert first.token != second.token


async def test_get_session_round_trips(session_service):
    created = await session_service.create_session(TEST_USER_ID, TEST_FID, TEST_DEVICE_INFO)

    session = await session_service.get_session(created.token)

    assert session.id == created.id
    assert session.fid == TEST_FID
    assert session.expires_at == created.expires_at


async def test_get_unknown_session_fails(session_service):
    with pytest.raises(ServiceError) as exc_info:
        await session_service.get_session("no-such-token")

    assert exc_info.value.code == ServiceErrorCode.SESSION_NOT_FOUND
    assert exc_info.value.status_code == 401


async def test_invalidated_session_is_not_active(session_service):
    session = await session_service.create_session(TEST_USER_ID, TEST_FID)

    invalidated = await session_service.invalidate_session(session.token, "Signed out")

    assert invalidated.status == SessionStatus.INVALIDATED
    assert invalidated.invalidation_reason == "Signed out"
    assert invalidated.invalidated_at is not None
    with pytest.raises(ServiceError):
        await session_service.get_session(session.token)


async def test_invalidate_unknown_session_is_ignored(session_service):
    assert await session_service.invalidate_session("no-such-token", "Signed out") is None


async def test_expired_session_is_not_returned(session_store):
    service = UserSessionService(session_store, lifetime=timedelta(seconds=30))
    session = await service.create_session(TEST_USER_ID, TEST_FID)

    session.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    await session_store.redis.set(f"session:{session.token}", session.model_dump_json())

    with pytest.raises(ServiceError):
        await service.get_session(session.token)


async def test_invalidate_user_sessions(session_service):
    sessions = [await session_service.create_session(TEST_USER_ID, TEST_FID) for _ in range(3)]
    other = await session_service.create_session("other-user", 7)

    invalidated = await session_service.invalidate_user_sessions(TEST_USER_ID, "Signed out everywhere")

    assert {s.token for s in invalidated} == {s.token for s in sessions}
    for session in sessions:
        with pytest.raises(ServiceError):
            await session_service.get_session(session.token)
    assert (await session_service.get_session(other.token)).user_id == "other-user"


async def test_user_sessions_prunes_vanished_tokens(session_store, session_service, redis_client):
    kept = await session_service.create_session(TEST_USER_ID, TEST_FID)
    dropped = await session_service.create_session(TEST_USER_ID, TEST_FID)
    await redis_client.delete(f"session:{dropped.token}")

    sessions = await session_store.get_user_sessions(TEST_USER_ID)

    assert [s.token for s in sessions] == [kept.token]
    assert await redis_client.smembers(f"user_sessions:{TEST_USER_ID}") == {kept.token}


async def test_store_failure_is_session_creation_failed():
    store = AsyncMock(spec=SessionStore)
    store.create_session.side_effect = ConnectionError("redis down")
    service = UserSessionService(store)

    with pytest.raises(ServiceError) as exc_info:
        await service.create_session(TEST_USER_ID, TEST_FID)

    assert exc_info.value.code == ServiceErrorCode.SESSION_CREATION_FAILED
    assert exc_info.value.status_code == 500
    assert exc_info.value.message == "SIWF Internal Server Error"
