import secrets
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.core.logger.logger import get_logger
from src.core.service.siwf.cache.session_store import SessionStore
from src.core.service.siwf.models.session import UserSession, DeviceInfo
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class UserSessionService:
    """Service for managing user sessions"""

    TOKEN_BYTES = 32

    def __init__(self, session_store: SessionStore, lifetime: Optional[timedelta] = None):
        self.session_store = session_store
        self.lifetime = lifetime or timedelta(days=settings.SESSION_EXPIRE_DAYS)

    def _generate_token(self) -> str:
        return secrets.token_urlsafe(self.TOKEN_BYTES)

    async def create_session(
        self,
        user_id: str,
        fid: int,
        device_info: Optional[DeviceInfo] = None
    ) -> UserSession:
        """Create a new session for a user, carrying the verified fid"""
        now = datetime.now(timezone.utc)
        session = UserSession(
            token=self._generate_token(),
            user_id=user_id,
            fid=fid,
            device_info=device_info or DeviceInfo(),
            created_at=now,
            expires_at=now + self.lifetime
        )

        try:
            await self.session_store.create_session(session)
        except Exception as e:
            logger.error(
                "Failed to create session",
                extra={"user_id": user_id, "fid": fid, "error": str(e)}
            )
            raise ServiceError(
                code=ServiceErrorCode.SESSION_CREATION_FAILED,
                message="SIWF Internal Server Error",
                status_code=500,
                context={"error": str(e)}
            )

        logger.info(
            "New session created",
            extra={
                "session_id": str(session.id),
                "user_id": user_id,
                "fid": fid,
                "expires_at": session.expires_at.isoformat()
            }
        )
        return session

    async def get_session(self, token: str) -> UserSession:
        """Get an active session by token"""
        session = await self.session_store.get_session(token)

        if not session or not session.is_active:
            raise ServiceError(
                code=ServiceErrorCode.SESSION_NOT_FOUND,
                message="Session not found or no longer active",
                status_code=401
            )

        return session

    async def invalidate_session(self, token: str, reason: str) -> Optional[UserSession]:
        """Invalidate a specific session; unknown tokens are ignored"""
        session = await self.session_store.get_session(token)
        if not session:
            return None

        if session.is_active:
            session.invalidate(reason)
            await self.session_store.update_session(session)
            logger.info(
                "Session invalidated",
                extra={"session_id": str(session.id), "user_id": session.user_id, "reason": reason}
            )

        return session

    async def invalidate_user_sessions(self, user_id: str, reason: str) -> List[UserSession]:
        """Invalidate every active session of a user"""
        invalidated = []
        for session in await self.session_store.get_user_sessions(user_id):
            if session.is_active:
                session.invalidate(reason)
                await self.session_store.update_session(session)
                invalidated.append(session)

        logger.info(
            "User sessions invalidated",
            extra={"user_id": user_id, "reason": reason, "count": len(invalidated)}
        )
        return invalidated
