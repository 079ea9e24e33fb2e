from fastapi import APIRouter, status
from datetime import datetime
from typing import Dict

from src.infra.config.redis import get_redis
from src.infra.config.settings import settings
from src.infra.database import get_database_manager

router = APIRouter()


async def check_redis_health() -> Dict[str, str]:
    """Nonces and sessions live in Redis; sign-in is down without it."""
    try:
        redis_client = await get_redis()
        await redis_client.ping()
        return {"status": "healthy", "message": "Connected"}
    except Exception as e:
        return {"status": "unhealthy", "message": f"Connection failed: {str(e)}"}


async def check_database_health() -> Dict[str, str]:
    """Users, identities and wallet addresses live in the database."""
    try:
        await get_database_manager().ping()
        return {"status": "healthy", "message": "Connected"}
    except Exception as e:
        return {"status": "unhealthy", "message": f"Connection failed: {str(e)}"}


@router.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """
    Health check endpoint.
    Reports the nonce/session store and the user database.
    """
    services = {
        "redis": (await check_redis_health())["status"],
        "database": (await check_database_health())["status"],
        "api": "healthy"
    }

    overall_status = "healthy"
    if any(service_status == "unhealthy" for service_status in services.values()):
        overall_status = "degraded"

    return {
        "status": overall_status,
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "services": services,
        "timestamp": datetime.utcnow().isoformat() + "Z"
    }
