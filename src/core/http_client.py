"""
Outbound HTTP clients for the Quick Auth JWKS and the Farcaster profile API.
No retries: a slow dependency costs at most one timeout per sign-in.
"""

from typing import Any, Dict

import httpx

from src.infra.config.settings import get_settings

settings = get_settings()


class HTTPClientConfig:
    """Per-service client settings"""

    @classmethod
    def get_timeout(cls, service: str) -> httpx.Timeout:
        seconds = {
            "quick_auth": settings.HTTP_QUICK_AUTH_TIMEOUT,
            "profile": settings.HTTP_PROFILE_TIMEOUT,
        }.get(service, settings.HTTP_DEFAULT_TIMEOUT)
        return httpx.Timeout(seconds, connect=min(seconds, settings.HTTP_CONNECT_TIMEOUT))

    @classmethod
    def get_base_headers(cls) -> Dict[str, str]:
        return {
            "User-Agent": f"{settings.APP_NAME}/{settings.APP_VERSION}",
            "Accept": "application/json",
        }

    @classmethod
    def create_client_config(cls, service: str = "default") -> Dict[str, Any]:
        return {
            "timeout": cls.get_timeout(service),
            "limits": httpx.Limits(
                max_connections=settings.HTTP_MAX_CONNECTIONS,
                max_keepalive_connections=settings.HTTP_MAX_KEEPALIVE_CONNECTIONS
            ),
            "headers": cls.get_base_headers(),
            # JWKS and profile endpoints are fixed URLs
            "follow_redirects": False,
        }


def create_client(service: str = "default", **kwargs) -> httpx.AsyncClient:
    """
    New client for service; the caller closes it (use as an async context manager).

    Keyword arguments override the service defaults, e.g. transport in tests.
    """
    config = HTTPClientConfig.create_client_config(service)
    config.update(kwargs)
    return httpx.AsyncClient(**config)
