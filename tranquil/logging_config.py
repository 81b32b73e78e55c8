"""
Logging configuration for the Tranquil API.

- Health check requests are dropped from the uvicorn access log
- Access credentials passed in the query string are redacted from it
- The auth and gate loggers can run at their own level (AUTH_LOG_LEVEL)
"""

import logging
import logging.config
import re
from typing import Any, Dict, Optional

REDACTED = "[REDACTED]"

# Loggers that see credential verification outcomes
AUTH_LOGGERS = ("tranquil.modules.auth", "tranquil.modules.middleware")


class HealthCheckFilter(logging.Filter):
    """Filter to suppress health check endpoint logs."""

    def filter(self, record: logging.LogRecord) -> bool:
        if record.name == "uvicorn.access":
            message = record.getMessage()
            if "/health" in message and "GET" in message:
                return False
        return True


class QueryTokenFilter(logging.Filter):
    """Mask the query-string token on direct-link downloads in access log lines."""

    def __init__(self, param: str = "token"):
        super().__init__()
        self.pattern = re.compile(rf"([?&]{re.escape(param)}=)[^&\s\"]*")

    def redact(self, value: Any) -> Any:
        if isinstance(value, str):
            return self.pattern.sub(rf"\g<1>{REDACTED}", value)
        return value

    def filter(self, record: logging.LogRecord) -> bool:
        # uvicorn passes the request path as a format argument
        if isinstance(record.args, tuple):
            record.args = tuple(self.redact(arg) for arg in record.args)
        elif isinstance(record.msg, str):
            record.msg = self.redact(record.msg)
        return True


def get_logging_config(
    level: str = "INFO",
    auth_level: Optional[str] = None,
    query_token_param: str = "token",
) -> Dict[str, Any]:
    """
    Build the dictConfig for uvicorn and the tranquil loggers.

    Args:
        level: Level for uvicorn and the application
        auth_level: Level for the auth and gate loggers (defaults to level)
        query_token_param: Query parameter whose value is redacted from access logs
    """
    handler = {"handlers": ["default"], "level": level, "propagate": False}
    loggers: Dict[str, Any] = {
        "uvicorn": dict(handler),
        "uvicorn.error": dict(handler),
        "uvicorn.access": {"handlers": ["access"], "level": level, "propagate": False},
        "tranquil": dict(handler),
    }
    for name in AUTH_LOGGERS:
        loggers[name] = dict(handler, level=auth_level or level)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "health_check_filter": {"()": HealthCheckFilter},
            "query_token_filter": {"()": QueryTokenFilter, "param": query_token_param},
        },
        "formatters": {
            "default": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
            "access": {"format": "%(message)s"},
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
                "filters": ["health_check_filter", "query_token_filter"],
            },
        },
        "loggers": loggers,
        "root": {"level": level, "handlers": ["default"]},
    }


def configure_logging(
    level: str = "INFO",
    auth_level: Optional[str] = None,
    query_token_param: str = "token",
) -> None:
    """Apply the logging configuration to the running process."""
    logging.config.dictConfig(get_logging_config(level, auth_level, query_token_param))
