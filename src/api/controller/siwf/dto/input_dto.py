"""
Input DTOs for Sign In With Farcaster endpoints.
"""

from pydantic import BaseModel, Field, field_validator
from typing import Optional

from src.core.service.siwf.models.user import ClaimedProfile


class NotificationDetailsDto(BaseModel):
    """Mini app notification target reported by the Farcaster client."""

    url: str = Field(..., min_length=1, description="Notification delivery URL")
    token: str = Field(..., min_length=1, description="Notification token")


class NonceRequestDto(BaseModel):
    """DTO for nonce request."""

    fid: int = Field(..., description="Farcaster ID the nonce is bound to")


class FarcasterUserDto(BaseModel):
    """Profile the client claims for the signing fid."""

    fid: int = Field(..., ge=1, description="Farcaster ID")
    username: Optional[str] = Field(None, description="Farcaster username")
    displayName: Optional[str] = Field(None, description="Display name")
    pfpUrl: Optional[str] = Field(None, description="Profile picture URL")
    notificationDetails: Optional[NotificationDetailsDto] = Field(
        None,
        description="Mini app notification details"
    )

    def to_claimed_profile(self) -> ClaimedProfile:
        return ClaimedProfile(
            fid=self.fid,
            username=self.username,
            display_name=self.displayName,
            pfp_url=self.pfpUrl,
            notification_details=self.notificationDetails.model_dump() if self.notificationDetails else None
        )


class VerifyRequestDto(BaseModel):
    """DTO for Quick Auth token verification request."""

    token: str = Field(..., min_length=1, description="Quick Auth JWT")
    user: FarcasterUserDto

    @field_validator('token')
    @classmethod
    def validate_token(cls, v):
        if not v.strip():
            raise ValueError('Token cannot be empty')
        return v.strip()


class SignOutRequestDto(BaseModel):
    """DTO for sign-out request."""

    all_devices: bool = Field(False, description="Invalidate every session of the user")
