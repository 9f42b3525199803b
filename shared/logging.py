"""
Structured logging for the Vara catalog backend.

Every log line is a JSON object carrying the service name and, while a
request is being handled, its request id and authenticated user id.
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any, Callable, Dict, Optional

import structlog


request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
user_id_var: ContextVar[Optional[str]] = ContextVar("user_id", default=None)

# Log field -> context variable holding its per-request value
CORRELATION_FIELDS: Dict[str, ContextVar] = {
    "request_id": request_id_var,
    "user_id": user_id_var,
}

Processor = Callable[[Any, str, Dict[str, Any]], Dict[str, Any]]


def service_context(service_name: str) -> Processor:
    """Processor stamping ``service`` on every event."""

    def add_service(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return add_service


def add_correlation_context(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Copy the current request's correlation ids into the event."""
    for field, var in CORRELATION_FIELDS.items():
        value = var.get()
        if value:
            event_dict[field] = value
    return event_dict


def configure_logging(service_name: str, log_level: str = "info") -> None:
    """Route structlog through stdlib logging with JSON rendering."""
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            service_context(service_name),
            add_correlation_context,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger().setLevel(level)


def set_request_id(request_id: Optional[str] = None) -> str:
    """Bind a request id (generated when absent) to the current context."""
    request_id = request_id or uuid.uuid4().hex
    request_id_var.set(request_id)
    return request_id


def set_user_context(user_id: Optional[str] = None):
    """Bind the authenticated user's id to the current context."""
    if user_id:
        user_id_var.set(str(user_id))


def clear_context():
    """Forget the correlation ids of the finished request."""
    for var in CORRELATION_FIELDS.values():
        var.set(None)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Named logger, by convention ``catalog.<component>``."""
    return structlog.get_logger(name)
