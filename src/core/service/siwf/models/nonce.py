from datetime import datetime, timezone
from pydantic import BaseModel, Field


NONCE_KEY_PREFIX = "siwf:"


def nonce_identifier(fid: int) -> str:
    """Key a nonce is stored under; issue and consume must agree on it"""
    return f"{NONCE_KEY_PREFIX}{fid}"


class NonceRecord(BaseModel):
    """Single-use nonce bound to a claimed fid"""
    identifier: str = Field(..., description="Storage key, siwf:<fid>")
    value: str = Field(..., description="Opaque nonce value")
    expires_at: datetime

    def is_expired(self) -> bool:
        """Check if the nonce has expired"""
        return datetime.now(timezone.utc) > self.expires_at

    class Config:
        json_schema_extra = {
            "example": {
                "identifier": "siwf:42",
                "value": "9f1c2b7a0e4d4c3a8b6f5e1d2c3b4a59",
                "expires_at": "2024-02-06T10:15:00Z"
            }
        }
