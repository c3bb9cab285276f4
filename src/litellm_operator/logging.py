"""Structured logging configuration for the LiteLLM Operator."""

import json
import logging
import sys
from typing import Any

from .utils.context import get_context_dict

CONTROLLER_NAME = "litellm-operator"


def setup_structured_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def log_resource_event(
    logger: logging.Logger,
    controller: str,
    resource_kind: str,
    resource_name: str,
    uid: str,
    event: str,
    reason: str,
    message: str,
    level: int = logging.INFO,
    **kwargs: Any,
) -> None:
    """Log a structured resource event."""
    log_data = {
        "controller": controller,
        "resource": resource_kind,
        "name": resource_name,
        "uid": uid,
        "event": event,
        "reason": reason,
        "message": message,
    }
    log_data.update(get_context_dict())
    log_data.update(sanitize_secrets(kwargs))
    logger.log(level, json.dumps(log_data, default=str))


def sanitize_secrets(log_data: dict[str, Any]) -> dict[str, Any]:
    """Remove secret fields from log data."""
    secret_fields = {"api_key", "key", "token", "credentials", "password", "connection_details"}
    sanitized = log_data.copy()
    for field in secret_fields:
        if field in sanitized:
            sanitized[field] = "***REDACTED***"
    return sanitized
