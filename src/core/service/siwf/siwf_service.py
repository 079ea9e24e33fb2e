"""
Sign In With Farcaster flow.

request_nonce binds a fresh nonce to a claimed fid. verify_and_sign_in then
runs: consume nonce -> verify Quick Auth token -> check subject == claimed fid
-> find or create the local user -> link wallets (new users only) -> create
session.
"""

from typing import Optional

from pydantic import BaseModel

from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.logger.logger import get_logger
from src.core.service.siwf.cache.nonce_store import NonceStore
from src.core.service.siwf.exceptions import NonceExpiredError, NonceNotFoundError, TokenVerificationError
from src.core.service.siwf.identity_resolver import IdentityResolver
from src.core.service.siwf.models.session import DeviceInfo, UserSession
from src.core.service.siwf.models.user import ClaimedProfile, User
from src.core.service.siwf.session_service import UserSessionService
from src.core.service.siwf.token_verifier import QuickAuthVerifier
from src.core.service.siwf.wallet_linker import WalletLinker
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class SignInResult(BaseModel):
    session: UserSession
    user: User
    fid: int
    is_new_user: bool


class SIWFService:
    """Orchestrates nonce issuance and Farcaster sign-in"""

    def __init__(
        self,
        nonce_store: NonceStore,
        verifier: QuickAuthVerifier,
        identity_resolver: IdentityResolver,
        wallet_linker: WalletLinker,
        session_service: UserSessionService,
        domain: Optional[str] = None
    ):
        self.nonce_store = nonce_store
        self.verifier = verifier
        self.identity_resolver = identity_resolver
        self.wallet_linker = wallet_linker
        self.session_service = session_service
        self.domain = domain or settings.SIWF_DOMAIN

    async def request_nonce(self, fid: int) -> str:
        nonce = await self.nonce_store.issue(fid)
        logger.info("SIWF nonce issued", extra={"fid": fid})
        return nonce

    async def verify_and_sign_in(
        self,
        token: str,
        profile: ClaimedProfile,
        device_info: Optional[DeviceInfo] = None
    ) -> SignInResult:
        """
        Verify a Quick Auth token for the claimed profile and open a session.

        Raises:
            ServiceError: classified failures keep their code; anything
                unexpected becomes a generic 401 UNAUTHORIZED
        """
        try:
            return await self._sign_in(token, profile, device_info)
        except ServiceError:
            raise
        except Exception as e:
            logger.error(
                "SIWF sign-in failed unexpectedly",
                extra={"fid": profile.fid, "error_type": type(e).__name__, "error": str(e)},
                exc_info=True
            )
            raise ServiceError.unauthorized(
                ServiceErrorCode.UNAUTHORIZED,
                "SIWF Something went wrong. Please try again later.",
                error=str(e)
            )

    async def _sign_in(
        self,
        token: str,
        profile: ClaimedProfile,
        device_info: Optional[DeviceInfo]
    ) -> SignInResult:
        claimed_fid = profile.fid

        try:
            await self.nonce_store.consume_and_check(claimed_fid)
        except NonceNotFoundError:
            raise ServiceError.unauthorized(
                ServiceErrorCode.UNAUTHORIZED_INVALID_OR_EXPIRED_NONCE,
                "SIWF Unauthorized: Invalid nonce",
                fid=claimed_fid
            )
        except NonceExpiredError:
            raise ServiceError.unauthorized(
                ServiceErrorCode.UNAUTHORIZED_INVALID_OR_EXPIRED_NONCE,
                "SIWF Unauthorized: Expired nonce",
                fid=claimed_fid
            )

        try:
            fid = await self.verifier.verify(self.domain, token)
        except TokenVerificationError as e:
            raise ServiceError.unauthorized(
                ServiceErrorCode.UNAUTHORIZED_VERIFICATION_FAILED,
                "SIWF sign-in verification failed.",
                fid=claimed_fid,
                error=str(e)
            )

        if fid != claimed_fid:
            raise ServiceError.unauthorized(
                ServiceErrorCode.UNAUTHORIZED_IDENTITY_MISMATCH,
                "SIWF Invalid Farcaster user",
                claimed_fid=claimed_fid,
                verified_fid=fid
            )

        user, is_new = await self.identity_resolver.resolve(fid, profile)

        if is_new:
            await self.wallet_linker.link(user.id, fid)

        session = await self.session_service.create_session(user.id, fid, device_info)

        logger.info(
            "SIWF sign-in succeeded",
            extra={"fid": fid, "user_id": user.id, "new_user": is_new, "session_id": str(session.id)}
        )

        return SignInResult(session=session, user=user, fid=fid, is_new_user=is_new)
