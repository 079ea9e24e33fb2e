from typing import Optional, Tuple

from src.core.logger.logger import get_logger
from src.core.service.siwf.exceptions import IdentityConflictError, IdentityIntegrityError
from src.core.service.siwf.models.user import ClaimedProfile, FarcasterIdentity, User
from src.infra.config.settings import get_settings
from src.infra.repository.identity_repository import IdentityRepository

logger = get_logger(__name__)
settings = get_settings()


class IdentityResolver:
    """Maps a verified fid to a local user, creating one on first sign-in"""

    def __init__(self, repository: IdentityRepository, email_domain: Optional[str] = None):
        self.repository = repository
        self.email_domain = email_domain or settings.SIWF_EMAIL_DOMAIN

    async def _owner_of(self, identity: FarcasterIdentity) -> User:
        user = await self.repository.get_user_by_id(identity.user_id)
        if user is None:
            raise IdentityIntegrityError(
                f"Farcaster identity {identity.fid} references missing user {identity.user_id}"
            )
        return user

    async def resolve(self, fid: int, profile: ClaimedProfile) -> Tuple[User, bool]:
        """
        Find or create the local user for a verified fid.

        A returning identity is used as stored; the claimed profile only seeds
        new records. When a concurrent sign-in creates the identity first, its
        user is returned and this call reports the identity as not new.

        Returns:
            (user, is_new_identity)
        """
        identity = await self.repository.get_identity_by_fid(fid)
        if identity is not None:
            return await self._owner_of(identity), False

        try:
            user, _ = await self.repository.create_user_with_identity(profile, self.email_domain)
        except IdentityConflictError:
            identity = await self.repository.get_identity_by_fid(fid)
            if identity is None:
                raise
            logger.info("Reusing identity created concurrently", extra={"fid": fid})
            return await self._owner_of(identity), False

        return user, True
