"""
Centralized error handling.

Every failure leaves the API in one envelope:

    {"success": false, "error": {"code", "message", "timestamp", "request_id"?, "details"?}}

ServiceError carries a public code and message plus a private context that
is only logged, so sign-in failures never leak why a token was rejected.
"""

import traceback
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.core.logger.logger import get_logger
from src.infra.config.settings import get_settings

logger = get_logger(__name__)
settings = get_settings()


class ServiceErrorCode:
    """Error codes exposed to API clients"""

    INVALID_INPUT = "INVALID_INPUT"

    # Sign In With Farcaster
    UNAUTHORIZED = "UNAUTHORIZED"
    UNAUTHORIZED_INVALID_OR_EXPIRED_NONCE = "UNAUTHORIZED_INVALID_OR_EXPIRED_NONCE"
    UNAUTHORIZED_VERIFICATION_FAILED = "UNAUTHORIZED_VERIFICATION_FAILED"
    UNAUTHORIZED_IDENTITY_MISMATCH = "UNAUTHORIZED_IDENTITY_MISMATCH"

    # Sessions
    SESSION_CREATION_FAILED = "SESSION_CREATION_FAILED"
    SESSION_NOT_FOUND = "SESSION_NOT_FOUND"

    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"


class ServiceError(Exception):
    """
    Classified failure raised by services and turned into a response by
    GlobalErrorHandler.

    Args:
        code: ServiceErrorCode value returned to the client
        message: Client-facing message
        status_code: HTTP status of the response
        details: Extra client-facing data
        context: Diagnostics for the logs only
    """

    def __init__(
        self,
        code: str,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
        context: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.context = context or {}

    @classmethod
    def unauthorized(cls, code: str, message: str, **context: Any) -> "ServiceError":
        return cls(code=code, message=message, status_code=401, context=context)

    def __repr__(self) -> str:
        return f"ServiceError(code={self.code!r}, status_code={self.status_code})"


class ErrorResponseBuilder:
    """Builds the error envelope"""

    @staticmethod
    def build_error_response(
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        error: Dict[str, Any] = {
            "code": error_code,
            "message": message,
            "timestamp": datetime.utcnow().isoformat() + "Z"
        }
        if request_id:
            error["request_id"] = request_id
        if details:
            error["details"] = details

        return {"success": False, "error": error}

    @staticmethod
    def build_validation_error_response(
        validation_errors: List[Dict[str, Any]],
        request_id: Optional[str] = None
    ) -> Dict[str, Any]:
        return ErrorResponseBuilder.build_error_response(
            error_code=ServiceErrorCode.INVALID_INPUT,
            message="Validation failed",
            details={"validation_errors": validation_errors},
            request_id=request_id
        )


def _request_id(request: Request) -> str:
    return request.headers.get("X-Request-ID", "unknown")


def _request_context(request: Request) -> Dict[str, Any]:
    return {
        "request_id": _request_id(request),
        "path": request.url.path,
        "method": request.method
    }


class GlobalErrorHandler:
    """Exception handlers registered on the FastAPI app"""

    @staticmethod
    async def service_error_handler(request: Request, exc: ServiceError) -> JSONResponse:
        log_extra = {
            "error_code": exc.code,
            "status_code": exc.status_code,
            "context": exc.context,
            **_request_context(request)
        }
        # Rejected sign-ins are expected traffic; only server faults are errors
        if exc.status_code >= 500:
            logger.error(f"Service error: {exc.code}", extra=log_extra)
        else:
            logger.warning(f"Request rejected: {exc.code}", extra=log_extra)

        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponseBuilder.build_error_response(
                error_code=exc.code,
                message=exc.message,
                details=exc.details,
                request_id=_request_id(request)
            )
        )

    @staticmethod
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        validation_errors = [
            {
                "field": ".".join(str(loc) for loc in error["loc"]),
                "message": error["msg"],
                "input": error.get("input")
            }
            for error in exc.errors()
        ]

        logger.warning(
            f"Validation error: {len(validation_errors)} errors",
            extra={"validation_errors": validation_errors, **_request_context(request)}
        )

        response = ErrorResponseBuilder.build_validation_error_response(
            validation_errors=validation_errors,
            request_id=_request_id(request)
        )
        return JSONResponse(status_code=422, content=jsonable_encoder(response))

    @staticmethod
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        trace = traceback.format_exc()
        logger.error(
            f"Unexpected error: {type(exc).__name__}",
            extra={
                "error_type": type(exc).__name__,
                "error": str(exc),
                "traceback": trace,
                **_request_context(request)
            }
        )

        if settings.DEBUG:
            message = f"Internal error: {str(exc)}"
            details = {"traceback": trace}
        else:
            message = "An unexpected error occurred. Please try again."
            details = None

        return JSONResponse(
            status_code=500,
            content=ErrorResponseBuilder.build_error_response(
                error_code=ServiceErrorCode.INTERNAL_ERROR,
                message=message,
                details=details,
                request_id=_request_id(request)
            )
        )
