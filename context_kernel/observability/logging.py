"""Structured logging setup for the context kernel."""

import logging
import os
import sys
from typing import Any, Dict, Optional

import structlog


def setup_logging(
    log_level: str = "INFO",
    log_format: str = "json",
    service_name: str = "context-kernel",
) -> None:
    """Configure stdlib logging and structlog processors."""

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        add_session_context,
    ]

    if log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(
        service=service_name,
        environment=os.getenv("ENVIRONMENT", "development"),
    )


def add_session_context(
    logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]
) -> Dict[str, Any]:
    """Make sure the conversation session id travels with every entry."""
    session_id = structlog.contextvars.get_contextvars().get("session_id")
    if session_id and "session_id" not in event_dict:
        event_dict["session_id"] = session_id
    return event_dict


def bind_session(session_id: str) -> None:
    """Bind a session id to every log entry of the current context (one session per process or task)."""
    structlog.contextvars.bind_contextvars(session_id=session_id)


def session_logger(name: str, session_id: Optional[str] = None) -> Any:
    """
    Module logger carrying one engine's session id. Unlike bind_session,
    the id lives on the logger, so engines sharing a context stay apart.
    """
    log = structlog.get_logger(name)
    if session_id:
        log = log.bind(session_id=session_id)
    return log
