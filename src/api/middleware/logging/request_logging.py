import json
import logging
import time
import traceback
from datetime import datetime
from uuid import uuid4

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from src.core.logger.logger import logger
from src.infra.config.settings import settings

# Polled by load balancers; not worth an info line each
QUIET_PATHS = {"/api/v1/health"}


def _level_for(status_code: int, path: str) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    if path in QUIET_PATHS:
        return logging.DEBUG
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    One structured log line per request, tagged with X-Request-ID.

    Records whether the caller presented a session (cookie or bearer) but
    never the token itself.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        started = time.perf_counter()
        request_id = request.headers.get("X-Request-ID") or str(uuid4())

        entry = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
            "user_agent": request.headers.get("User-Agent"),
            "has_session": settings.SESSION_COOKIE_NAME in request.cookies
                or request.headers.get("Authorization", "").lower().startswith("bearer "),
            "timestamp": datetime.utcnow().isoformat() + "Z"
        }

        try:
            response = await call_next(request)
        except Exception as e:
            entry.update({
                "error": str(e),
                "error_type": type(e).__name__,
                "stack_trace": traceback.format_exc(),
                "duration_ms": round((time.perf_counter() - started) * 1000, 2)
            })
            logger.error(json.dumps(entry))
            raise

        entry.update({
            "status_code": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2)
        })
        response.headers["X-Request-ID"] = request_id

        level = _level_for(response.status_code, entry["path"])
        if level == logging.ERROR:
            logger.error(json.dumps(entry))
        elif level == logging.WARNING:
            logger.warning(json.dumps(entry))
        elif level == logging.INFO:
            logger.info(json.dumps(entry))
        else:
            logger.debug(json.dumps(entry))

        return response
