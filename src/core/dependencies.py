"""
FastAPI dependency injection functions.
"""

from functools import lru_cache
from fastapi import Depends
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from src.infra.config.redis import get_redis
from src.infra.database import get_async_session
from src.infra.repository.identity_repository import IdentityRepository
from src.infra.repository.wallet_address_repository import WalletAddressRepository
from src.core.service.siwf.cache.nonce_store import NonceStore
from src.core.service.siwf.cache.session_store import SessionStore
from src.core.service.siwf.identity_resolver import IdentityResolver
from src.core.service.siwf.profile_client import FarcasterProfileClient
from src.core.service.siwf.session_service import UserSessionService
from src.core.service.siwf.siwf_service import SIWFService
from src.core.service.siwf.token_verifier import QuickAuthVerifier
from src.core.service.siwf.wallet_linker import WalletLinker


async def get_redis_client() -> Redis:
    """Get Redis client dependency."""
    return await get_redis()


@lru_cache()
def get_quick_auth_verifier() -> QuickAuthVerifier:
    """Shared verifier so the JWKS cache outlives a request."""
    return QuickAuthVerifier()


@lru_cache()
def get_profile_client() -> FarcasterProfileClient:
    return FarcasterProfileClient()


async def get_nonce_store(redis_client: Redis = Depends(get_redis_client)) -> NonceStore:
    return NonceStore(redis_client)


async def get_session_service(redis_client: Redis = Depends(get_redis_client)) -> UserSessionService:
    """Get session service with Redis dependency."""
    return UserSessionService(SessionStore(redis_client))


async def get_siwf_service(
    nonce_store: NonceStore = Depends(get_nonce_store),
    session_service: UserSessionService = Depends(get_session_service),
    db_session: AsyncSession = Depends(get_async_session),
    verifier: QuickAuthVerifier = Depends(get_quick_auth_verifier),
    profile_client: FarcasterProfileClient = Depends(get_profile_client)
) -> SIWFService:
    """Get sign-in service with all collaborators."""
    return SIWFService(
        nonce_store=nonce_store,
        verifier=verifier,
        identity_resolver=IdentityResolver(IdentityRepository(db_session)),
        wallet_linker=WalletLinker(
            WalletAddressRepository(db_session),
            profile_resolver=profile_client.resolve if profile_client.enabled else None
        ),
        session_service=session_service
    )
