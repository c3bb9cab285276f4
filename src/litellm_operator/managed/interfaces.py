"""Interfaces between the reconciler and the kind-specific adapters."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from ..apis.managed import Managed
from ..apis.provider_config import ProviderConfig

# Named secret values produced by an external resource.
ConnectionDetails = dict[str, bytes]


@dataclass
class ExternalObservation:
    """The result of observing an external resource.

    ``at_provider`` carries the observed fields that are written to
    ``status.atProvider``; ``connection_details`` carries secret values and is
    only ever handed to the connection publisher.
    """

    exists: bool
    up_to_date: bool = False
    at_provider: dict[str, Any] = field(default_factory=dict)
    connection_details: ConnectionDetails = field(default_factory=dict)


@dataclass
class ExternalCreation:
    at_provider: dict[str, Any] = field(default_factory=dict)
    connection_details: ConnectionDetails = field(default_factory=dict)


@dataclass
class ExternalUpdate:
    at_provider: dict[str, Any] = field(default_factory=dict)
    connection_details: ConnectionDetails = field(default_factory=dict)


class ExternalClient(Protocol):
    """Observe/Create/Update/Delete for one external resource kind."""

    def observe(self, record: Managed) -> ExternalObservation: ...

    def create(self, record: Managed) -> ExternalCreation: ...

    def update(self, record: Managed) -> ExternalUpdate: ...

    def delete(self, record: Managed) -> None: ...


class ExternalConnector(Protocol):
    """Produces an external client bound to a record's ProviderConfig."""

    def connect(self, record: Managed) -> ExternalClient: ...


class CredentialResolver(Protocol):
    def resolve(self, credentials: dict[str, Any]) -> bytes: ...


class UsageTracker(Protocol):
    def track(self, record: Managed) -> None: ...


class ProviderConfigGetter(Protocol):
    def get_provider_config(self, name: str) -> ProviderConfig: ...


class ConnectionPublisher(Protocol):
    def publish(self, record: Managed, details: ConnectionDetails) -> bool: ...

    def unpublish(self, record: Managed) -> None: ...


class EventRecorder(Protocol):
    def normal(self, body: dict[str, Any], reason: str, message: str) -> None: ...

    def warning(self, body: dict[str, Any], reason: str, message: str) -> None: ...


class RecordStore(Protocol):
    """Desired-state store: get by name and conditional writes."""

    def get(self, cls: type[Managed], name: str) -> Managed | None: ...

    def update(self, record: Managed) -> Managed: ...

    def update_status(self, record: Managed) -> Managed: ...
