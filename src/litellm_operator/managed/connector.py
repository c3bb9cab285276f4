"""Generic connector producing bound external clients."""

from __future__ import annotations

import logging
from typing import Any, Callable, Type

from ..apis.managed import Managed
from ..apis.provider_config import ProviderConfig
from ..errors import ClientConstructionFailed, NotManagedRecord, ReconcileError
from ..tracing import trace_span
from .interfaces import CredentialResolver, ExternalClient, ProviderConfigGetter, UsageTracker

logger = logging.getLogger(__name__)

# Builds the service client from a ProviderConfig and resolved credential bytes.
NewServiceFn = Callable[[ProviderConfig, bytes], Any]


class Connector:
    """Connects records of one kind to their external API.

    Each step of ``connect`` fails with its own error: the kind check
    (``NotManagedRecord``), usage tracking (``TrackFailed``), the
    ProviderConfig lookup (``ProviderConfigNotFound``), credential resolution
    (``CredentialUnavailable``) and client construction
    (``ClientConstructionFailed``).
    """

    def __init__(
        self,
        kind: Type[Managed],
        usage: UsageTracker,
        configs: ProviderConfigGetter,
        resolver: CredentialResolver,
        new_service: NewServiceFn,
        external: Callable[[Any], ExternalClient],
    ) -> None:
        self.kind = kind
        self.usage = usage
        self.configs = configs
        self.resolver = resolver
        self.new_service = new_service
        self.external = external

    def connect(self, record: Managed) -> ExternalClient:
        if not isinstance(record, self.kind):
            raise NotManagedRecord(self.kind.kind, type(record).__name__)

        with trace_span("connect", kind=record.kind, attributes={"resource.name": record.name}):
            self.usage.track(record)

            pc = self.configs.get_provider_config(record.provider_config_name)
            credentials = self.resolver.resolve(pc.credentials)

            try:
                service = self.new_service(pc, credentials)
            except ReconcileError:
                raise
            except Exception as e:
                raise ClientConstructionFailed("cannot create new service", e) from e

            return self.external(service)
