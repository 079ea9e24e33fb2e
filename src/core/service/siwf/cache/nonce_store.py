import json
import secrets
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import redis.asyncio as redis

from src.core.service.siwf.exceptions import NonceExpiredError, NonceNotFoundError
from src.core.service.siwf.models.nonce import NonceRecord, nonce_identifier
from src.core.logger.logger import get_logger
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


def generate_nonce() -> str:
    """Generate a cryptographically secure nonce"""
    return secrets.token_hex(NonceStore.NONCE_BYTES)


class NonceStore:
    """Redis store for single-use SIWF nonces, one per fid"""

    NONCE_BYTES = 16
    # Redis keeps the key a little past expires_at so consume can tell expired from missing
    EXPIRY_GRACE_SECONDS = 60

    def __init__(
        self,
        redis_client: redis.Redis,
        nonce_generator: Optional[Callable[[], str]] = None,
        ttl: Optional[timedelta] = None
    ):
        self.redis = redis_client
        self.nonce_generator = nonce_generator or generate_nonce
        self.ttl = ttl or timedelta(minutes=settings.SIWF_NONCE_TTL_MINUTES)

    def _serialize(self, record: NonceRecord) -> str:
        data = record.model_dump()
        data["expires_at"] = data["expires_at"].isoformat()
        return json.dumps(data)

    def _deserialize(self, data: str) -> NonceRecord:
        record = json.loads(data)
        record["expires_at"] = datetime.fromisoformat(record["expires_at"])
        return NonceRecord(**record)

    async def issue(self, fid: int) -> str:
        """Create a nonce for fid, replacing any earlier one"""
        identifier = nonce_identifier(fid)
        record = NonceRecord(
            identifier=identifier,
            value=self.nonce_generator(),
            expires_at=datetime.now(timezone.utc) + self.ttl
        )

        try:
            redis_ttl = int(self.ttl.total_seconds()) + self.EXPIRY_GRACE_SECONDS
            await self.redis.setex(identifier, redis_ttl, self._serialize(record))
        except Exception as e:
            logger.error(
                "Error saving nonce",
                extra={"fid": fid, "error": str(e)}
            )
            raise

        logger.debug(
            "Issued nonce",
            extra={"fid": fid, "expires_at": record.expires_at.isoformat()}
        )
        return record.value

    async def consume_and_check(self, fid: int) -> NonceRecord:
        """
        Take the nonce for fid out of the store and check it is still fresh.

        Read and delete are one GETDEL so two concurrent verifications cannot
        both consume the same nonce. The record is gone after this call
        whatever the outcome.

        Raises:
            NonceNotFoundError: no nonce was issued for fid (or it was already used)
            NonceExpiredError: the nonce outlived its TTL
        """
        identifier = nonce_identifier(fid)
        data = await self.redis.getdel(identifier)

        if not data:
            logger.warning("Nonce not found", extra={"fid": fid})
            raise NonceNotFoundError(f"No nonce for fid {fid}")

        record = self._deserialize(data)
        if record.is_expired():
            logger.warning(
                "Expired nonce consumed",
                extra={"fid": fid, "expires_at": record.expires_at.isoformat()}
            )
            raise NonceExpiredError(f"Nonce for fid {fid} expired")

        logger.debug("Consumed nonce", extra={"fid": fid})
        return record
