"""Desired-state store backed by the Kubernetes API."""

from __future__ import annotations

import logging
import time
from typing import Any, Type, TypeVar

from kubernetes import client

from .. import metrics
from ..apis.managed import Managed
from ..apis.provider_config import ProviderConfig
from ..constants import API_GROUP, API_VERSION, FIELD_MANAGER
from ..errors import ConflictError, ProviderConfigNotFound, TransientTransportError
from ..handlers.shared import get_provider_config_with_cache
from ..utils.rate_limit import rate_limit_k8s

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=Managed)


class KubernetesRecordStore:
    """Reads and conditionally writes managed resources.

    Writes carry the resourceVersion the record was read at; a concurrent
    change surfaces as ``ConflictError``.
    """

    def __init__(self, api: client.CustomObjectsApi) -> None:
        self.api = api

    def _call(self, operation: str, fn: Any, **kwargs: Any) -> Any:
        start_time = time.time()
        try:
            result = rate_limit_k8s(fn)(group=API_GROUP, version=API_VERSION, **kwargs)
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except client.exceptions.ApiException:
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
            raise
        finally:
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(
                time.time() - start_time
            )

    def get(self, cls: Type[M], name: str) -> M | None:
        """Get a managed resource by name, or None if it no longer exists."""
        try:
            body = self._call(
                f"get_{cls.plural}", self.api.get_cluster_custom_object, plural=cls.plural, name=name
            )
        except client.exceptions.ApiException as e:
            if e.status == 404:
                return None
            raise TransientTransportError(f"cannot get {cls.kind} {name}", e) from e
        return cls(body)

    def update(self, record: M) -> M:
        """Write metadata and spec changes (finalizers, annotations)."""
        try:
            body = self._call(
                f"update_{record.plural}",
                self.api.replace_cluster_custom_object,
                plural=record.plural,
                name=record.name,
                body=record.to_body(),
                field_manager=FIELD_MANAGER,
            )
        except client.exceptions.ApiException as e:
            raise self._classify(record, e) from e
        return type(record)(body)

    def update_status(self, record: M) -> M:
        """Write the status subresource."""
        try:
            body = self._call(
                f"update_{record.plural}_status",
                self.api.replace_cluster_custom_object_status,
                plural=record.plural,
                name=record.name,
                body=record.to_body(),
                field_manager=FIELD_MANAGER,
            )
        except client.exceptions.ApiException as e:
            raise self._classify(record, e) from e
        return type(record)(body)

    def get_provider_config(self, name: str) -> ProviderConfig:
        """Get a ProviderConfig by name.

        Raises:
            ProviderConfigNotFound: If it does not exist
            TransientTransportError: On any other API failure
        """
        try:
            return ProviderConfig(get_provider_config_with_cache(self.api, name))
        except client.exceptions.ApiException as e:
            if e.status == 404:
                raise ProviderConfigNotFound(name, e) from e
            raise TransientTransportError(f"cannot get ProviderConfig {name}", e) from e

    @staticmethod
    def _classify(record: Managed, e: client.exceptions.ApiException) -> Exception:
        if e.status == 409:
            return ConflictError(f"{record.kind} {record.name} was modified concurrently", e)
        return TransientTransportError(f"cannot write {record.kind} {record.name}", e)
