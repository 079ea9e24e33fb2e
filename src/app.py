import json
from datetime import datetime
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError

from src.infra.config.settings import settings
from src.infra.config.redis import close_redis_pool
from src.infra.database import get_database_manager
from src.core.logger.logger import logger
from src.api.router import health, siwf
from src.api.middleware.logging.request_logging import RequestLoggingMiddleware
from src.core.exceptions.handler import ServiceError, GlobalErrorHandler

DESCRIPTION = """
Sign In With Farcaster for mini apps.

1. `POST /api/auth/siwf/nonce` binds a single-use nonce to the user's fid
2. The Farcaster client issues a Quick Auth token for that nonce
3. `POST /api/auth/siwf/verify` checks the token, signs the user in and sets the session cookie
"""


def _lifecycle_event(message: str) -> str:
    return json.dumps({
        "message": message,
        "timestamp": datetime.utcnow().isoformat() + "Z",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "domain": settings.SIWF_DOMAIN
    })


def _register_middleware(app: FastAPI) -> None:
    # Mini apps are served from the Farcaster client's origin and send the session cookie
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID"],
        max_age=600,
    )
    app.add_middleware(RequestLoggingMiddleware)


def _register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ServiceError, GlobalErrorHandler.service_error_handler)
    app.add_exception_handler(RequestValidationError, GlobalErrorHandler.validation_error_handler)
    app.add_exception_handler(Exception, GlobalErrorHandler.general_exception_handler)


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.APP_NAME,
        description=DESCRIPTION,
        version=settings.APP_VERSION,
        docs_url="/",
        redoc_url="/redoc",
    )

    _register_middleware(app)
    _register_error_handlers(app)

    app.include_router(health.router, prefix="/api/v1")
    app.include_router(siwf.router, prefix="/api/auth")

    @app.on_event("startup")
    async def startup_event():
        logger.info(_lifecycle_event("Starting SIWF auth service"))
        try:
            await get_database_manager().create_all()
        except Exception as e:
            # Sign-in requests will retry the connection; health reports it meanwhile
            logger.error("Database not ready on startup", extra={"error": str(e)})

    @app.on_event("shutdown")
    async def shutdown_event():
        await get_database_manager().close()
        await close_redis_pool()
        logger.info(_lifecycle_event("SIWF auth service stopped"))

    return app
