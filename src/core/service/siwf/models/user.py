"""
User, account and Farcaster identity entities
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


FARCASTER_PROVIDER_ID = "farcaster"


def farcaster_account_id(fid: int) -> str:
    return f"{FARCASTER_PROVIDER_ID}:{fid}"


class User(BaseModel):
    """Local user"""
    id: str
    name: str
    email: str
    email_verified: bool = False
    image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class FarcasterIdentity(BaseModel):
    """Farcaster profile linked to a local user"""
    user_id: str
    fid: int
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    notification_details: Optional[Dict[str, Any]] = None
    created_at: datetime
    updated_at: datetime


class ClaimedProfile(BaseModel):
    """Profile fields the client claims for the fid; only trusted after the token checks out"""
    fid: int = Field(..., ge=1)
    username: Optional[str] = None
    display_name: Optional[str] = None
    pfp_url: Optional[str] = None
    notification_details: Optional[Dict[str, Any]] = None
