import pytest
from datetime import timedelta
from unittest.mock import AsyncMock
from sqlalchemy import func, select

from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.service.siwf.cache.nonce_store import NonceStore
from src.core.service.siwf.cache.session_store import SessionStore
from src.core.service.siwf.identity_resolver import IdentityResolver
from src.core.service.siwf.models.session import DeviceInfo
from src.core.service.siwf.models.user import ClaimedProfile
from src.core.service.siwf.models.wallet import FarcasterProfile, PrimaryAddresses, VerifiedAddresses
from src.core.service.siwf.session_service import UserSessionService
from src.core.service.siwf.siwf_service import SIWFService
from src.core.service.siwf.wallet_linker import WalletLinker
from src.infra.models import AccountModel, FarcasterModel, UserModel, WalletAddressModel
from src.infra.repository.identity_repository import IdentityRepository
from src.infra.repository.wallet_address_repository import WalletAddressRepository

TEST_FID = 42
TEST_PROFILE = ClaimedProfile(fid=TEST_FID, username="alice", pfp_url="https://img.example.com/alice.png")
TEST_DEVICE_INFO = DeviceInfo(user_agent="Warpcast/1.0", ip_address="127.0.0.1")


async def wallet_profile(fid):
    return FarcasterProfile(
        fid=fid,
        custody_address="0xC",
        verified_addresses=VerifiedAddresses(
            primary=PrimaryAddresses(eth_address="0xD"),
            eth_addresses=["0xC", "0xD"]
        )
    )


@pytest.fixture
def nonce_store(redis_client):
    return NonceStore(redis_client)


@pytest.fixture
def session_service(redis_client):
    return UserSessionService(SessionStore(redis_client))


@pytest.fixture
def profile_resolver():
    return AsyncMock(side_effect=wallet_profile)


@pytest.fixture
def siwf_service(nonce_store, verifier, db_session, session_service, issuer, profile_resolver):
    return SIWFService(
        nonce_store=nonce_store,
        verifier=verifier,
        identity_resolver=IdentityResolver(IdentityRepository(db_session), email_domain="farcaster.emails"),
        wallet_linker=WalletLinker(WalletAddressRepository(db_session), profile_resolver, dedupe_custody=True),
        session_service=session_service,
        domain=issuer.domain
    )


async def count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


async def test_first_sign_in(siwf_service, issuer, db_session, session_service):
    """Nonce, token and profile for a new fid produce a user, wallets and a session"""
    await siwf_service.request_nonce(TEST_FID)

    result = await siwf_service.verify_and_sign_in(issuer.token(TEST_FID), TEST_PROFILE, TEST_DEVICE_INFO)

    assert result.fid == TEST_FID
    assert result.is_new_user is True
    assert result.user.name == "alice"
    assert result.session.user_id == result.user.id
    assert result.session.fid == TEST_FID
    assert result.session.device_info == TEST_DEVICE_INFO

    assert await count(db_session, UserModel) == 1
    assert await count(db_session, FarcasterModel) == 1
    assert await count(db_session, AccountModel) == 1
    assert await count(db_session, WalletAddressModel) == 2

    session = await session_service.get_session(result.session.token)
    assert session.user_id == result.user.id


async def test_returning_sign_in_reuses_user_and_skips_wallets(siwf_service, issuer, db_session, profile_resolver):
    await siwf_service.request_nonce(TEST_FID)
    first = await siwf_service.verify_and_sign_in(issuer.token(TEST_FID), TEST_PROFILE)

    await siwf_service.request_nonce(TEST_FID)
    second = await siwf_service.verify_and_sign_in(issuer.token(TEST_FID), TEST_PROFILE)

    assert second.is_new_user is False
    assert second.user.id == first.user.id
    assert second.session.token != first.session.token
    assert profile_resolver.await_count == 1
    assert await count(db_session, UserModel) == 1
    assert await count(db_session, FarcasterModel) == 1
    assert await count(db_session, AccountModel) == 1
    assert await count(db_session, WalletAddressModel) == 2


async def test_sign_in_without_nonce_is_invalid_nonce(siwf_service, issuer, db_session):
    with pytest.raises(ServiceError) as exc_info:
        await siwf_service.verify_and_sign_in(issuer.token(TEST_FID), TEST_PROFILE)

    assert exc_info.value.code == ServiceErrorCode.UNAUTHORIZED_INVALID_OR_EXPIRED_NONCE
    assert exc_info.value.message == "SIWF Unauthorized: Invalid nonce"
    assert exc_info.value.status_code == 401
    assert await count(db_session, UserModel) == 0


async def test_nonce_cannot_be_replayed(siwf_service, issuer):
    await siwf_service.request_nonce(TEST_FID)
    await siwf_service.verify_and_sign_in(issuer.token(TEST_FID), TEST_PROFILE)

    with pytest.raises(ServiceError) as exc_info:
        await siwf_service.verify_and_sign_in(issuer.token(TEST_FID), TEST_PROFILE)

    assert exc_info.value.code == ServiceErrorCode.UNAUTHORIZED_INVALID_OR_EXPIRED_NONCE


async def test_expired_nonce(siwf_service, issuer, redis_client):
    siwf_service.nonce_store = NonceStore(redis_client, ttl=timedelta(seconds=-1))
    await siwf_service.request_nonce(TEST_FID)

    with pytest.raises(ServiceError) as exc_info:
        await siwf_service.verify_and_sign_in(issuer.token(TEST_FID), TEST_PROFILE)

    assert exc_info.value.code == ServiceErrorCode.UNAUTHORIZED_INVALID_OR_EXPIRED_NONCE
    assert exc_info.value.message == "SIWF Unauthorized: Expired nonce"


async def test_nonce_is_consumed_even_when_token_fails(siwf_service, issuer, nonce_store):
    await siwf_service.request_nonce(TEST_FID)

    with pytest.raises(ServiceError) as exc_info:
        await siwf_service.verify_and_sign_in(issuer.token(TEST_FID, domain="other.example.com"), TEST_PROFILE)

    assert exc_info.value.code == ServiceErrorCode.UNAUTHORIZED_VERIFICATION_FAILED
    assert exc_info.value.message == "SIWF sign-in verification failed."

    with pytest.raises(ServiceError) as exc_info:
        await siwf_service.verify_and_sign_in(issuer.token(TEST_FID), TEST_PROFILE)
    assert exc_info.value.code == ServiceErrorCode.UNAUTHORIZED_INVALID_OR_EXPIRED_NONCE


async def test_identity_mismatch_creates_nothing(siwf_service, issuer, db_session, redis_client, profile_resolver):
    """Token for fid 7 presented with a claim for fid 42"""
    await siwf_service.request_nonce(TEST_FID)

    with pytest.raises(ServiceError) as exc_info:
        await siwf_service.verify_and_sign_in(issuer.token(7), TEST_PROFILE)

    assert exc_info.value.code == ServiceErrorCode.UNAUTHORIZED_IDENTITY_MISMATCH
    assert exc_info.value.message == "SIWF Invalid Farcaster user"
    assert exc_info.value.context == {"claimed_fid": TEST_FID, "verified_fid": 7}
    assert await count(db_session, UserModel) == 0
    assert await count(db_session, WalletAddressModel) == 0
    assert await redis_client.keys("session:*") == []
    profile_resolver.assert_not_awaited()


async def test_wallet_failure_does_not_block_sign_in(siwf_service, issuer, db_session, profile_resolver):
    profile_resolver.side_effect = TimeoutError("profile lookup timed out")
    await siwf_service.request_nonce(TEST_FID)

    result = await siwf_service.verify_and_sign_in(issuer.token(TEST_FID), TEST_PROFILE)

    assert result.is_new_user is True
    assert await count(db_session, WalletAddressModel) == 0


async def test_session_failure_keeps_its_code(siwf_service, issuer):
    siwf_service.session_service.session_store = AsyncMock(spec=SessionStore)
    siwf_service.session_service.session_store.create_session.side_effect = ConnectionError("redis down")
    await siwf_service.request_nonce(TEST_FID)

    with pytest.raises(ServiceError) as exc_info:
        await siwf_service.verify_and_sign_in(issuer.token(TEST_FID), TEST_PROFILE)

    assert exc_info.value.code == ServiceErrorCode.SESSION_CREATION_FAILED
    assert exc_info.value.status_code == 500


async def test_unexpected_failure_is_generic_unauthorized(siwf_service, issuer, monkeypatch):
    """Internal detail stays in the error context, not the message"""
    async def broken(fid, profile):
        raise RuntimeError("connection pool exhausted")

    monkeypatch.setattr(siwf_service.identity_resolver, "resolve", broken)
    await siwf_service.request_nonce(TEST_FID)

    with pytest.raises(ServiceError) as exc_info:
        await siwf_service.verify_and_sign_in(issuer.token(TEST_FID), TEST_PROFILE)

    assert exc_info.value.code == ServiceErrorCode.UNAUTHORIZED
    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "SIWF Something went wrong. Please try again later."
    assert "connection pool exhausted" not in exc_info.value.message
    assert exc_info.value.context["error"] == "connection pool exhausted"


async def test_missing_user_is_generic_unauthorized(siwf_service, issuer, db_session):
    db_session.add(FarcasterModel(user_id="missing-user", fid=TEST_FID, username="ghost"))
    await db_session.commit()
    await siwf_service.request_nonce(TEST_FID)

    with pytest.raises(ServiceError) as exc_info:
        await siwf_service.verify_and_sign_in(issuer.token(TEST_FID), TEST_PROFILE)

    assert exc_info.value.code == ServiceErrorCode.UNAUTHORIZED
    assert await count(db_session, UserModel) == 0
