import json
import logging
import sys
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from src.infra.config.settings import settings

# Attributes every LogRecord carries; anything else came in through `extra`
_RESERVED_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", None, None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line.

    A message that is itself a JSON object is merged into the line, so
    `logger.info(json.dumps({...}))` and `logger.info("text", extra={...})`
    produce the same shape.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name
        }

        message = record.getMessage()
        parsed = None
        if message.startswith("{"):
            try:
                parsed = json.loads(message)
            except json.JSONDecodeError:
                parsed = None
        if isinstance(parsed, dict):
            log_data.update(parsed)
        else:
            log_data["message"] = message

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith("_"):
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def _configured_level() -> int:
    if settings.DEBUG:
        return logging.DEBUG
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    return level if isinstance(level, int) else logging.INFO


class Logger:
    """Structured logger: JSON lines on stdout, context passed as `extra`"""

    def __init__(self, name: str = "SIWF"):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(_configured_level())
        self.logger.propagate = True

        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stdout)
            handler.setFormatter(JsonFormatter())
            self.logger.addHandler(handler)

    def _log(
        self,
        level: int,
        message: Any,
        extra: Optional[Dict[str, Any]] = None,
        exc_info: bool = False
    ) -> None:
        if isinstance(message, dict):
            message = json.dumps(message, default=str)
        self.logger.log(level, message, extra=extra or {}, exc_info=exc_info)

    def debug(self, message: Any, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.DEBUG, message, extra)

    def info(self, message: Any, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.INFO, message, extra)

    def warning(self, message: Any, extra: Optional[Dict[str, Any]] = None) -> None:
        self._log(logging.WARNING, message, extra)

    def error(self, message: Any, extra: Optional[Dict[str, Any]] = None, exc_info: bool = False) -> None:
        self._log(logging.ERROR, message, extra, exc_info)


# Global logger instance
logger = Logger()


@lru_cache()
def get_logger(name: Optional[str] = None) -> Logger:
    """Named logger, or the global one"""
    return Logger(name) if name else logger
