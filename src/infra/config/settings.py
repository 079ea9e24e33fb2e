from typing import List, Optional
from pydantic_settings import BaseSettings
from functools import lru_cache

class Settings(BaseSettings):
    # App Settings
    APP_NAME: str = "SIWF-Auth"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"  # DEBUG=true forces debug logging

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # CORS
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",  # Frontend development
        "https://farcaster.xyz",  # Mini app host
        "https://warpcast.com",
    ]

    # Redis Settings
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 10
    REDIS_SOCKET_TIMEOUT: float = 2.0

    # Database Settings
    DATABASE_URL: Optional[str] = None  # Overrides the POSTGRES_* parts when set
    POSTGRES_HOST: str = "localhost"
    POSTGRES_PORT: int = 5432
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "siwf"
    POSTGRES_MIN_POOL_SIZE: int = 5
    POSTGRES_MAX_POOL_SIZE: int = 20
    DB_LOGGING_ENABLED: bool = False

    # Sign In With Farcaster
    SIWF_DOMAIN: str = "localhost:3000"  # Trust domain the Quick Auth token must be issued for
    SIWF_NONCE_TTL_MINUTES: int = 15
    SIWF_EMAIL_DOMAIN: str = "farcaster.emails"
    SIWF_DEDUPE_CUSTODY_ADDRESS: bool = True  # Skip custody address in the chain 1 set

    # Farcaster Quick Auth
    QUICK_AUTH_ISSUER: str = "https://auth.farcaster.xyz"
    QUICK_AUTH_JWKS_URL: str = "https://auth.farcaster.xyz/.well-known/jwks.json"
    QUICK_AUTH_JWKS_CACHE_SECONDS: int = 3600

    # Farcaster profile lookup (Neynar)
    NEYNAR_API_URL: str = "https://api.neynar.com"
    NEYNAR_API_KEY: Optional[str] = None  # Wallet linking is skipped when unset

    # Session Settings
    SESSION_EXPIRE_DAYS: int = 7
    SESSION_COOKIE_NAME: str = "siwf.session_token"

    # HTTP client Settings
    HTTP_DEFAULT_TIMEOUT: float = 10.0
    HTTP_QUICK_AUTH_TIMEOUT: float = 5.0
    HTTP_PROFILE_TIMEOUT: float = 5.0
    HTTP_CONNECT_TIMEOUT: float = 2.0
    HTTP_MAX_CONNECTIONS: int = 100
    HTTP_MAX_KEEPALIVE_CONNECTIONS: int = 20

    class Config:
        env_file = ".env"
        case_sensitive = True

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
