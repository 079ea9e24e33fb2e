"""
Farcaster Quick Auth token verification.

Quick Auth tokens are JWTs signed by the Farcaster auth server. The public
keys are published as a JWKS; the token's `aud` is the app domain and its
`sub` is the fid.
"""

import asyncio
import time
from typing import Any, Dict, Optional

import httpx
import jwt

from src.core.http_client import create_client
from src.core.logger.logger import get_logger
from src.core.service.siwf.exceptions import TokenVerificationError
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class QuickAuthVerifier:
    """Verifies Quick Auth JWTs against the issuer's JWKS"""

    REQUIRED_CLAIMS = ["exp", "iat", "sub", "aud", "iss"]

    def __init__(
        self,
        issuer: Optional[str] = None,
        jwks_url: Optional[str] = None,
        cache_seconds: Optional[int] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.issuer = issuer or settings.QUICK_AUTH_ISSUER
        self.jwks_url = jwks_url or settings.QUICK_AUTH_JWKS_URL
        self.cache_seconds = cache_seconds if cache_seconds is not None else settings.QUICK_AUTH_JWKS_CACHE_SECONDS
        self._http_client = http_client
        self._jwk_set: Optional[jwt.PyJWKSet] = None
        self._fetched_at = 0.0
        self._lock = asyncio.Lock()

    async def _fetch_jwks(self) -> Dict[str, Any]:
        if self._http_client is not None:
            response = await self._http_client.get(self.jwks_url)
        else:
            async with create_client("quick_auth") as client:
                response = await client.get(self.jwks_url)
        response.raise_for_status()
        return response.json()

    async def _get_jwk_set(self, force_refresh: bool = False) -> jwt.PyJWKSet:
        async with self._lock:
            fresh = time.monotonic() - self._fetched_at < self.cache_seconds
            if self._jwk_set is not None and fresh and not force_refresh:
                return self._jwk_set

            self._jwk_set = jwt.PyJWKSet.from_dict(await self._fetch_jwks())
            self._fetched_at = time.monotonic()
            logger.info(
                "Fetched Quick Auth JWKS",
                extra={"jwks_url": self.jwks_url, "keys": len(self._jwk_set.keys)}
            )
            return self._jwk_set

    def _select_key(self, jwk_set: jwt.PyJWKSet, kid: Optional[str]) -> Optional[jwt.PyJWK]:
        if kid is None:
            return jwk_set.keys[0] if len(jwk_set.keys) == 1 else None
        for key in jwk_set.keys:
            if key.key_id == kid:
                return key
        return None

    async def _signing_key(self, token: str) -> jwt.PyJWK:
        kid = jwt.get_unverified_header(token).get("kid")

        key = self._select_key(await self._get_jwk_set(), kid)
        if key is None:
            # Unknown kid: the issuer may have rotated keys since the last fetch
            key = self._select_key(await self._get_jwk_set(force_refresh=True), kid)
        if key is None:
            raise TokenVerificationError(f"No signing key for kid {kid!r}")
        return key

    async def verify(self, domain: str, token: str) -> int:
        """
        Verify a Quick Auth token issued for domain.

        Args:
            domain: Trust domain the token must be issued for (its audience)
            token: Bearer token from the client

        Returns:
            int: The verified fid (token subject)

        Raises:
            TokenVerificationError: For any reason the token cannot be trusted
        """
        try:
            key = await self._signing_key(token)
            payload = jwt.decode(
                token,
                key.key,
                algorithms=[key.algorithm_name],
                audience=domain,
                issuer=self.issuer,
                options={
                    "require": self.REQUIRED_CLAIMS,
                    # Quick Auth puts the fid in sub as a number
                    "verify_sub": False,
                },
            )
        except TokenVerificationError:
            raise
        except (jwt.PyJWTError, httpx.HTTPError, ValueError) as e:
            logger.warning(
                "Quick Auth token rejected",
                extra={"domain": domain, "error_type": type(e).__name__, "error": str(e)}
            )
            raise TokenVerificationError(str(e)) from e

        subject = payload["sub"]
        if isinstance(subject, bool) or not str(subject).isdigit():
            raise TokenVerificationError(f"Token subject is not an fid: {subject!r}")

        return int(subject)
