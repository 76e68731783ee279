"""
truleado.observability.logging

Structured logging configuration for the service.

Responsibilities:
- Configure `structlog` for JSON logs through the stdlib logging bridge.
- Provide a small wrapper for obtaining bound loggers.
- Bind the authenticated actor into the request log context.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog


def configure_logging(*, service_name: str, level: str) -> None:
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )
    # SQLAlchemy echoes every statement at INFO when the root logger is verbose.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            _add_service_name(service_name),
            _stringify_ids,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def _add_service_name(service_name: str):
    def processor(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
        event_dict.setdefault("service", service_name)
        return event_dict

    return processor


def _stringify_ids(_: Any, __: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    # UUID values are not JSON serializable; every `*_id` field is logged as text.
    for key, value in event_dict.items():
        if key.endswith("_id") and value is not None and not isinstance(value, str):
            event_dict[key] = str(value)
    return event_dict


def bind_actor(*, user_id: str, agency_id: str | None = None) -> None:
    structlog.contextvars.bind_contextvars(actor_id=user_id)
    if agency_id:
        structlog.contextvars.bind_contextvars(agency_id=agency_id)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


# --- Module Notes -----------------------------------------------------------
# Request-scoped metadata is bound via contextvars in `observability.middleware`;
# the actor is added once authentication resolves (see `auth.deps`).
