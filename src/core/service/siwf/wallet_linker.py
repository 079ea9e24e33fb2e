from typing import List, Optional

from src.core.logger.logger import get_logger
from src.core.service.siwf.models.wallet import (
    CUSTODY_CHAIN_ID, VERIFIED_CHAIN_ID, FarcasterProfile, WalletAddress
)
from src.core.service.siwf.profile_client import ProfileResolver
from src.infra.config.settings import get_settings
from src.infra.repository.wallet_address_repository import WalletAddressRepository

logger = get_logger(__name__)
settings = get_settings()


def build_wallet_addresses(
    user_id: str,
    profile: FarcasterProfile,
    dedupe_custody: bool = True
) -> List[WalletAddress]:
    """
    Wallet rows for a resolved profile.

    The custody address goes on chain 10, verified ETH addresses on chain 1.
    Exactly the address equal to the primary wallet (verified primary, else
    custody) is marked primary. Nothing is linked unless both a primary and a
    custody address are known.
    """
    primary = profile.primary_eth_address
    custody = profile.custody_address
    if not primary or not custody:
        return []

    addresses = [
        WalletAddress(
            user_id=user_id,
            address=custody,
            chain_id=CUSTODY_CHAIN_ID,
            is_primary=primary == custody
        )
    ]

    verified = profile.verified_addresses.eth_addresses if profile.verified_addresses else []
    for address in verified:
        if dedupe_custody and address == custody:
            continue
        addresses.append(
            WalletAddress(
                user_id=user_id,
                address=address,
                chain_id=VERIFIED_CHAIN_ID,
                is_primary=primary == address
            )
        )

    return addresses


class WalletLinker:
    """Best-effort import of a new Farcaster user's wallet addresses"""

    def __init__(
        self,
        repository: WalletAddressRepository,
        profile_resolver: Optional[ProfileResolver] = None,
        dedupe_custody: Optional[bool] = None
    ):
        self.repository = repository
        self.profile_resolver = profile_resolver
        self.dedupe_custody = settings.SIWF_DEDUPE_CUSTODY_ADDRESS if dedupe_custody is None else dedupe_custody

    async def link(self, user_id: str, fid: int) -> int:
        """
        Resolve the fid's addresses and store them for user_id.

        Failures are logged and swallowed: a sign-in never fails because
        wallet data could not be fetched or stored.

        Returns:
            Number of address rows written
        """
        if self.profile_resolver is None:
            return 0

        try:
            profile = await self.profile_resolver(fid)
            if profile is None:
                logger.info("No Farcaster profile to link", extra={"fid": fid, "user_id": user_id})
                return 0

            addresses = build_wallet_addresses(user_id, profile, self.dedupe_custody)
            if not addresses:
                logger.info("No primary or custody address, skipping wallet link", extra={"fid": fid})
                return 0

            written = await self.repository.add_many(addresses)
            if written == 0:
                logger.warning(
                    "No new wallet addresses linked",
                    extra={"fid": fid, "user_id": user_id, "candidates": len(addresses)}
                )
                return 0

            logger.info(
                "Linked wallet addresses",
                extra={
                    "fid": fid,
                    "user_id": user_id,
                    "written": written,
                    "primary": next((a.address for a in addresses if a.is_primary), None)
                }
            )
            return written

        except Exception as e:
            logger.error(
                "Wallet linking failed, continuing sign-in",
                extra={"fid": fid, "user_id": user_id, "error_type": type(e).__name__, "error": str(e)}
            )
            return 0
