from datetime import datetime, timezone
from typing import List, Optional

from redis.asyncio import Redis

from src.core.logger.logger import get_logger
from src.core.service.siwf.models.session import UserSession

logger = get_logger(__name__)


class SessionStore:
    """Redis-based store for managing user sessions"""

    def __init__(self, redis_client: Redis):
        self.redis = redis_client
        self.session_key_prefix = "session:"
        self.user_sessions_key_prefix = "user_sessions:"

    def _session_key(self, token: str) -> str:
        return f"{self.session_key_prefix}{token}"

    def _user_sessions_key(self, user_id: str) -> str:
        return f"{self.user_sessions_key_prefix}{user_id}"

    def _ttl_seconds(self, session: UserSession) -> int:
        return max(1, int((session.expires_at - datetime.now(timezone.utc)).total_seconds()))

    async def create_session(self, session: UserSession) -> None:
        """Store a new user session"""
        try:
            await self.redis.setex(
                self._session_key(session.token),
                self._ttl_seconds(session),
                session.model_dump_json()
            )
            await self.redis.sadd(self._user_sessions_key(session.user_id), session.token)

            logger.info(
                "Session stored",
                extra={
                    "session_id": str(session.id),
                    "user_id": session.user_id,
                    "fid": session.fid
                }
            )

        except Exception as e:
            logger.error(
                "Failed to store session",
                extra={
                    "session_id": str(session.id),
                    "user_id": session.user_id,
                    "error": str(e)
                }
            )
            raise

    async def get_session(self, token: str) -> Optional[UserSession]:
        """Retrieve a session by token"""
        try:
            data = await self.redis.get(self._session_key(token))
            if not data:
                return None
            return UserSession.model_validate_json(data)

        except Exception as e:
            logger.error("Failed to get session", extra={"error": str(e)})
            raise

    async def update_session(self, session: UserSession) -> None:
        """Update an existing session"""
        try:
            key = self._session_key(session.token)
            if not await self.redis.exists(key):
                raise ValueError(f"Session {session.id} not found")

            await self.redis.setex(key, self._ttl_seconds(session), session.model_dump_json())

            logger.info(
                "Session updated",
                extra={
                    "session_id": str(session.id),
                    "user_id": session.user_id,
                    "status": session.status.value
                }
            )

        except Exception as e:
            logger.error(
                "Failed to update session",
                extra={
                    "session_id": str(session.id),
                    "user_id": session.user_id,
                    "error": str(e)
                }
            )
            raise

    async def get_user_sessions(self, user_id: str) -> List[UserSession]:
        """Get all live sessions for a user, pruning tokens whose session expired"""
        try:
            tokens = await self.redis.smembers(self._user_sessions_key(user_id))

            sessions = []
            for token in tokens:
                session = await self.get_session(token)
                if session:
                    sessions.append(session)
                else:
                    await self.redis.srem(self._user_sessions_key(user_id), token)

            return sessions

        except Exception as e:
            logger.error(
                "Failed to get user sessions",
                extra={"user_id": user_id, "error": str(e)}
            )
            raise
