"""
Shared fixtures: in-memory Redis, a throwaway SQLite database and a
Quick Auth issuer whose JWKS is served through an httpx mock transport.
"""

import json
import time
from typing import Any, Dict, Optional

import fakeredis
import httpx
import jwt
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey

from src.core.service.siwf.token_verifier import QuickAuthVerifier
from src.infra.database import DatabaseManager


class QuickAuthIssuer:
    """Signs Quick Auth style tokens and serves the matching JWKS"""

    domain = "miniapp.example.com"
    issuer_url = "https://auth.farcaster.xyz"
    jwks_url = "https://auth.farcaster.xyz/.well-known/jwks.json"

    def __init__(self, kid: str = "test-key-1"):
        self.kid = kid
        self.private_key = Ed25519PrivateKey.generate()
        self.jwks_requests = 0

    def jwk(self) -> Dict[str, Any]:
        data = json.loads(jwt.algorithms.OKPAlgorithm.to_jwk(self.private_key.public_key()))
        data["kid"] = self.kid
        data["use"] = "sig"
        return data

    def sign(
        self,
        payload: Dict[str, Any],
        private_key: Optional[Ed25519PrivateKey] = None,
        kid: Optional[str] = None
    ) -> str:
        return jwt.encode(
            payload,
            private_key or self.private_key,
            algorithm="EdDSA",
            headers={"kid": kid or self.kid},
        )

    def claims(self, fid: Any, domain: Optional[str] = None, issuer: Optional[str] = None, lifetime: int = 300) -> Dict[str, Any]:
        now = int(time.time())
        return {
            "iss": issuer or self.issuer_url,
            "sub": fid,
            "aud": domain or self.domain,
            "iat": now,
            "exp": now + lifetime,
        }

    def token(
        self,
        fid: Any,
        domain: Optional[str] = None,
        issuer: Optional[str] = None,
        lifetime: int = 300,
        kid: Optional[str] = None,
        private_key: Optional[Ed25519PrivateKey] = None,
    ) -> str:
        return self.sign(self.claims(fid, domain, issuer, lifetime), private_key=private_key, kid=kid)

    def transport(self) -> httpx.MockTransport:
        def handler(request: httpx.Request) -> httpx.Response:
            if str(request.url) == self.jwks_url:
                self.jwks_requests += 1
                return httpx.Response(200, json={"keys": [self.jwk()]})
            return httpx.Response(404)

        return httpx.MockTransport(handler)

    def verifier(self, client: httpx.AsyncClient) -> QuickAuthVerifier:
        return QuickAuthVerifier(
            issuer=self.issuer_url,
            jwks_url=self.jwks_url,
            cache_seconds=3600,
            http_client=client,
        )


@pytest.fixture
async def redis_client():
    client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer(), decode_responses=True)
    try:
        yield client
    finally:
        await client.flushall()
        await client.aclose()


@pytest.fixture
async def database(tmp_path):
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'siwf.db'}")
    await manager.create_all()
    try:
        yield manager
    finally:
        await manager.close()


@pytest.fixture
async def db_session(database):
    async with database.get_session_factory()() as session:
        yield session


@pytest.fixture
def issuer_factory():
    return QuickAuthIssuer


@pytest.fixture
def issuer(issuer_factory):
    return issuer_factory()


@pytest.fixture
async def verifier(issuer):
    async with httpx.AsyncClient(transport=issuer.transport()) as client:
        yield issuer.verifier(client)
