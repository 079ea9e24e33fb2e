"""
User, account and Farcaster identity repository using SQLAlchemy ORM
"""

from datetime import datetime, timezone
from typing import Optional, Tuple
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.exc import IntegrityError

from src.core.service.siwf.exceptions import IdentityConflictError
from src.core.service.siwf.models.user import (
    ClaimedProfile, FarcasterIdentity, User, FARCASTER_PROVIDER_ID, farcaster_account_id
)
from src.infra.models import AccountModel, FarcasterModel, UserModel
from src.core.logger.logger import get_logger

logger = get_logger(__name__)


class IdentityRepository:
    """Repository for Farcaster identities and the users that own them"""

    def __init__(self, session: AsyncSession):
        self.session = session

    def _user_to_entity(self, model: UserModel) -> User:
        return User(
            id=model.id,
            name=model.name,
            email=model.email,
            email_verified=model.email_verified,
            image=model.image,
            created_at=model.created_at,
            updated_at=model.updated_at
        )

    def _identity_to_entity(self, model: FarcasterModel) -> FarcasterIdentity:
        return FarcasterIdentity(
            user_id=model.user_id,
            fid=model.fid,
            username=model.username,
            display_name=model.display_name,
            avatar_url=model.avatar_url,
            notification_details=model.notification_details,
            created_at=model.created_at,
            updated_at=model.updated_at
        )

    async def get_identity_by_fid(self, fid: int) -> Optional[FarcasterIdentity]:
        """Get the Farcaster identity for fid, if any"""
        stmt = select(FarcasterModel).where(FarcasterModel.fid == fid)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._identity_to_entity(model) if model else None

    async def get_user_by_id(self, user_id: str) -> Optional[User]:
        stmt = select(UserModel).where(UserModel.id == user_id)
        result = await self.session.execute(stmt)
        model = result.scalar_one_or_none()
        return self._user_to_entity(model) if model else None

    async def create_user_with_identity(
        self,
        profile: ClaimedProfile,
        email_domain: str
    ) -> Tuple[User, FarcasterIdentity]:
        """
        Create user, Farcaster identity and account rows in one transaction.

        Raises:
            IdentityConflictError: a row for this fid already exists; nothing was written
        """
        fid = profile.fid
        now = datetime.now(timezone.utc)

        user_model = UserModel(
            name=profile.username or str(fid),
            email=f"{fid}@{email_domain}",
            image=profile.pfp_url,
            created_at=now,
            updated_at=now
        )
        self.session.add(user_model)

        try:
            # Flush first so the user id exists for the foreign keys
            await self.session.flush()

            identity_model = FarcasterModel(
                user_id=user_model.id,
                fid=fid,
                username=profile.username or str(fid),
                display_name=profile.display_name,
                avatar_url=profile.pfp_url,
                notification_details=profile.notification_details,
                created_at=now,
                updated_at=now
            )
            account_model = AccountModel(
                user_id=user_model.id,
                provider_id=FARCASTER_PROVIDER_ID,
                account_id=farcaster_account_id(fid),
                created_at=now,
                updated_at=now
            )
            self.session.add_all([identity_model, account_model])
            await self.session.commit()

        except IntegrityError as e:
            await self.session.rollback()
            logger.warning(
                f"Farcaster identity already exists (race condition): {e.orig}",
                extra={"fid": fid}
            )
            raise IdentityConflictError(f"Identity for fid {fid} already exists") from e

        except Exception:
            await self.session.rollback()
            raise

        logger.info(
            "New Farcaster user created in database",
            extra={"fid": fid, "user_id": user_model.id}
        )

        return self._user_to_entity(user_model), self._identity_to_entity(identity_model)
