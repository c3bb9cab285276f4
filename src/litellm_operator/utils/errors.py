"""Error sanitization utilities to prevent information leakage."""

import re
from typing import Any


# Patterns that might expose sensitive information
SENSITIVE_PATTERNS = [
    r"(Bearer)\s+[A-Za-z0-9\-_\.=]+",
    r"\b(sk)-[A-Za-z0-9\-_]{3,}",
    r"(api[_\-\s]?key)[=:\s]+[^\s,;\)]+",
    r"(master[_\-\s]?key)[=:\s]+[^\s,;\)]+",
]

# Fields to redact completely
SENSITIVE_FIELDS = {
    "api_key",
    "apikey",
    "master_key",
    "password",
    "secret",
    "credentials",
    "token",
    "key",
}


def sanitize_error_message(message: str) -> str:
    """Sanitize error message to remove sensitive information.

    Args:
        message: Original error message

    Returns:
        Sanitized error message with sensitive data redacted
    """
    sanitized = message

    for pattern in SENSITIVE_PATTERNS:
        sanitized = re.sub(pattern, r"\1 [REDACTED]", sanitized, flags=re.IGNORECASE)

    return sanitized


def sanitize_exception(error: Exception) -> str:
    """Sanitize exception message.

    Args:
        error: Exception object

    Returns:
        Sanitized error message
    """
    return sanitize_error_message(str(error))


def sanitize_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """Sanitize dictionary by redacting sensitive fields.

    Args:
        data: Dictionary to sanitize
        sensitive_keys: Additional keys to redact (merged with SENSITIVE_FIELDS)

    Returns:
        Sanitized dictionary with sensitive values redacted
    """
    all_sensitive = SENSITIVE_FIELDS | (sensitive_keys or set())
    sanitized = {}

    for key, value in data.items():
        if key.lower() in all_sensitive:
            sanitized[key] = "[REDACTED]"
        elif isinstance(value, dict):
            sanitized[key] = sanitize_dict(value, sensitive_keys)
        elif isinstance(value, str):
            sanitized[key] = sanitize_error_message(value)
        else:
            sanitized[key] = value

    return sanitized
