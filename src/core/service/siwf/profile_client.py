"""
Farcaster profile lookup through the Neynar API
"""

from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from src.core.http_client import create_client
from src.core.logger.logger import get_logger
from src.core.service.siwf.models.wallet import FarcasterProfile, PrimaryAddresses, VerifiedAddresses
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()

ProfileResolver = Callable[[int], Awaitable[Optional[FarcasterProfile]]]


class FarcasterProfileClient:
    """Resolves custody and verified addresses for an fid"""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.NEYNAR_API_KEY
        self.base_url = (base_url or settings.NEYNAR_API_URL).rstrip("/")
        self._http_client = http_client

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _parse_user(self, user: Dict[str, Any]) -> FarcasterProfile:
        verified = user.get("verified_addresses") or {}
        primary = verified.get("primary") or {}
        return FarcasterProfile(
            fid=user["fid"],
            username=user.get("username"),
            display_name=user.get("display_name"),
            avatar_url=user.get("pfp_url"),
            custody_address=user.get("custody_address"),
            verified_addresses=VerifiedAddresses(
                primary=PrimaryAddresses(
                    eth_address=primary.get("eth_address"),
                    sol_address=primary.get("sol_address"),
                ),
                eth_addresses=verified.get("eth_addresses") or [],
                sol_addresses=verified.get("sol_addresses") or [],
            ) if verified else None,
        )

    async def _get(self, url: str, params: Dict[str, Any]) -> httpx.Response:
        headers = {"x-api-key": self.api_key}
        if self._http_client is not None:
            return await self._http_client.get(url, params=params, headers=headers)
        async with create_client("profile") as client:
            return await client.get(url, params=params, headers=headers)

    async def resolve(self, fid: int) -> Optional[FarcasterProfile]:
        """
        Look up a Farcaster user.

        Returns None when lookups are not configured or the fid is unknown.
        HTTP and payload errors propagate to the caller.
        """
        if not self.enabled:
            logger.debug("Profile lookup not configured, skipping", extra={"fid": fid})
            return None

        response = await self._get(f"{self.base_url}/v2/farcaster/user/bulk", {"fids": str(fid)})
        if response.status_code == 404:
            return None
        response.raise_for_status()

        users = response.json().get("users") or []
        if not users:
            logger.info("Farcaster user not found", extra={"fid": fid})
            return None

        return self._parse_user(users[0])
