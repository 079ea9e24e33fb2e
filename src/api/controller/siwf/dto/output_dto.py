"""
Output DTOs for Sign In With Farcaster endpoints.
"""

from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime


class NonceResponseDto(BaseModel):
    """DTO for nonce response."""

    nonce: str = Field(..., description="Single-use nonce to embed in the Quick Auth request")


class SignedInUserDto(BaseModel):
    id: str = Field(..., description="Local user ID")
    fid: int = Field(..., description="Farcaster ID")
    name: str = Field(..., description="Display name of the local user")
    image: Optional[str] = Field(None, description="Avatar URL")


class VerifyResponseDto(BaseModel):
    """DTO for successful sign-in."""

    success: bool = Field(True, description="Sign-in result")
    token: str = Field(..., description="Session token")
    user: SignedInUserDto


class SessionStatusResponseDto(BaseModel):
    """DTO for session status response."""

    valid: bool = Field(..., description="Whether the session is valid")
    user_id: Optional[str] = Field(None, description="Session owner")
    fid: Optional[int] = Field(None, description="Farcaster ID verified at sign-in")
    expires_at: Optional[datetime] = Field(None, description="Session expiration time")


class SignOutResponseDto(BaseModel):
    """DTO for sign-out response."""

    success: bool = Field(True, description="Sign-out status")
    invalidated_sessions: int = Field(0, description="Number of sessions invalidated")
