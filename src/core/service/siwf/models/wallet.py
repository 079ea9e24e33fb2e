from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


CUSTODY_CHAIN_ID = 10  # Optimism, where Farcaster custody lives
VERIFIED_CHAIN_ID = 1  # Ethereum mainnet


class PrimaryAddresses(BaseModel):
    eth_address: Optional[str] = None
    sol_address: Optional[str] = None


class VerifiedAddresses(BaseModel):
    primary: PrimaryAddresses = Field(default_factory=PrimaryAddresses)
    eth_addresses: List[str] = Field(default_factory=list)
    sol_addresses: List[str] = Field(default_factory=list)


class FarcasterProfile(BaseModel):
    """Profile data resolved from a Farcaster data provider"""
    fid: int
    username: Optional[str] = None
    display_name: Optional[str] = None
    avatar_url: Optional[str] = None
    custody_address: Optional[str] = None
    verified_addresses: Optional[VerifiedAddresses] = None

    @property
    def primary_eth_address(self) -> Optional[str]:
        """Verified primary address, falling back to the custody address"""
        if self.verified_addresses and self.verified_addresses.primary.eth_address:
            return self.verified_addresses.primary.eth_address
        return self.custody_address


class WalletAddress(BaseModel):
    user_id: str
    address: str
    chain_id: Optional[int] = None
    is_primary: bool = False
    created_at: Optional[datetime] = None
