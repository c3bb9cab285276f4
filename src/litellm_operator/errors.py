"""Error taxonomy for reconciliation failures.

Every failure raised by the connector, the external clients or the record
store is a ``ReconcileError``. The ``kind`` attribute is the machine-readable
reason written to record conditions; ``retry`` tells the scheduler how to
requeue the record.
"""

from __future__ import annotations

# Retry policies
RETRY_NEVER = "never"
RETRY_POLL = "poll"
RETRY_BACKOFF = "backoff"
RETRY_IMMEDIATE = "immediate"


class ReconcileError(Exception):
    """Base class for all classified reconciliation failures."""

    kind = "ReconcileError"
    retry = RETRY_BACKOFF

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is not None:
            return f"{self.message}: {self.cause}"
        return self.message


class ContractViolation(ReconcileError):
    """A programming contract was broken; retrying will not help."""

    kind = "ContractViolation"
    retry = RETRY_NEVER


class NotManagedRecord(ContractViolation):
    """A record of an unexpected kind was handed to a connector or client."""

    def __init__(self, expected: str, actual: str) -> None:
        super().__init__(f"managed resource is not a {expected} custom resource (got {actual})")
        self.expected = expected
        self.actual = actual


class ConfigurationError(ReconcileError):
    """Configuration another actor may still fix (missing config or credentials)."""

    kind = "ConfigurationError"
    retry = RETRY_POLL


class ProviderConfigNotFound(ConfigurationError):
    """The referenced ProviderConfig does not exist."""

    def __init__(self, name: str, cause: Exception | None = None) -> None:
        super().__init__(f"cannot get ProviderConfig {name}", cause)
        self.name = name


class CredentialUnavailable(ConfigurationError):
    """Credentials could not be resolved from their source."""


class ClientConstructionFailed(ConfigurationError):
    """A client could not be built from the ProviderConfig and credentials."""


class CredentialRejected(ConfigurationError):
    """The external API refused the resolved credentials."""


class TransientTransportError(ReconcileError):
    """Network, timeout or server-side failure; retried with backoff."""

    kind = "TransientTransportError"
    retry = RETRY_BACKOFF


class TrackFailed(TransientTransportError):
    """ProviderConfig usage could not be recorded."""


class ExternalAPIError(TransientTransportError):
    """The external API answered with an unexpected HTTP status."""

    def __init__(self, message: str, status_code: int, cause: Exception | None = None) -> None:
        super().__init__(message, cause)
        self.status_code = status_code


class DecodeError(ReconcileError):
    """The external API returned a response that could not be decoded."""

    kind = "DecodeError"
    retry = RETRY_BACKOFF


class ConflictError(ReconcileError):
    """The stored record changed since it was read."""

    kind = "ConflictError"
    retry = RETRY_IMMEDIATE


class CreateIncomplete(ReconcileError):
    """An earlier Create was issued but its outcome was never recorded."""

    kind = "CreateIncomplete"
    retry = RETRY_NEVER


class ExternalNotFound(Exception):
    """The external resource does not exist.

    Raised by the HTTP client and handled by the external clients: Observe
    turns it into ``exists=False``, Delete into success, and Create or Update
    into an ``ExternalAPIError``.
    """

    def __init__(self, message: str, status_code: int = 404) -> None:
        super().__init__(message)
        self.status_code = status_code
