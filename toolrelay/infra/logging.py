"""Structured logging configuration.

Every record emitted under the "toolrelay" logger carries the service name
and, inside an HTTP request, the request id bound by RequestIDMiddleware,
so the log lines of one tool turn (parsing, external calls, model calls)
can be correlated.
"""

import logging
import sys
from contextvars import ContextVar, Token
from typing import Optional

from pythonjsonlogger import jsonlogger
from toolrelay.infra.config import config

SERVICE_NAME = "toolrelay"

_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def bind_request_id(request_id: str) -> Token:
    """Bind a request id to the current context. Returns the token for reset_request_id."""
    return _request_id.set(request_id)


def reset_request_id(token: Token) -> None:
    _request_id.reset(token)


def get_request_id() -> Optional[str]:
    return _request_id.get()


class RequestContextFilter(logging.Filter):
    """Attach the service name and the current request id to each record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.service = SERVICE_NAME
        if not getattr(record, "request_id", None):
            record.request_id = get_request_id()
        return True


def setup_logging():
    """Setup structured JSON logging."""
    logger = logging.getLogger(SERVICE_NAME)
    logger.setLevel(logging.DEBUG if config.DEBUG else logging.INFO)

    # Remove existing handlers
    logger.handlers = []

    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    console_handler.addFilter(RequestContextFilter())
    logger.addHandler(console_handler)

    # Set levels for third-party loggers
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)

    return logger


# Initialize logging
app_logger = setup_logging()
