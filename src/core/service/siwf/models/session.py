from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class SessionStatus(str, Enum):
    """User session status"""
    ACTIVE = "active"
    EXPIRED = "expired"
    INVALIDATED = "invalidated"


class DeviceInfo(BaseModel):
    """Information about the device used for authentication"""
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None


class UserSession(BaseModel):
    """User session information"""
    id: UUID = Field(default_factory=uuid4)
    token: str
    user_id: str
    fid: int
    device_info: DeviceInfo = Field(default_factory=DeviceInfo)
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    expires_at: datetime
    invalidated_at: Optional[datetime] = None
    invalidation_reason: Optional[str] = None

    def invalidate(self, reason: str) -> None:
        """Invalidate the session"""
        self.status = SessionStatus.INVALIDATED
        self.invalidated_at = datetime.now(timezone.utc)
        self.invalidation_reason = reason

    def is_expired(self) -> bool:
        return datetime.now(timezone.utc) > self.expires_at

    @property
    def is_active(self) -> bool:
        """Check if session is active"""
        return self.status == SessionStatus.ACTIVE and not self.is_expired()
