"""Publishes connection details to Kubernetes secrets."""

from __future__ import annotations

import logging

from kubernetes import client

from .. import metrics
from ..apis.managed import Managed
from ..constants import (
    API_GROUP_VERSION,
    LABEL_MANAGED_BY,
    LABEL_RESOURCE_KIND,
    LABEL_RESOURCE_NAME,
)
from ..errors import TransientTransportError
from ..utils.rate_limit import rate_limit_k8s
from ..utils.secrets import create_secret, delete_secret, read_secret_data, update_secret
from .interfaces import ConnectionDetails

logger = logging.getLogger(__name__)


class APISecretPublisher:
    """Writes connection details of a managed resource to a Secret.

    The secret is named by ``spec.writeConnectionSecretToRef``, or
    ``<record>-connection`` in the default namespace when the record names no
    secret. New details are merged into existing data; publishing identical
    details again does not touch the API.
    """

    def __init__(self, api: client.CoreV1Api, default_namespace: str = "default") -> None:
        self.api = api
        self.default_namespace = default_namespace

    def secret_ref(self, record: Managed) -> tuple[str, str]:
        """Return (namespace, name) of the connection secret for ``record``."""
        ref = record.connection_secret_ref
        if ref is None:
            return self.default_namespace, f"{record.name}-connection"
        return ref.get("namespace") or self.default_namespace, ref["name"]

    def publish(self, record: Managed, details: ConnectionDetails) -> bool:
        """Publish connection details.

        Returns:
            True if the secret was created or changed

        Raises:
            TransientTransportError: If the secret cannot be read or written
        """
        if not details:
            return False

        namespace, name = self.secret_ref(record)
        try:
            existing = rate_limit_k8s(read_secret_data)(self.api, namespace, name)
            if existing is None:
                rate_limit_k8s(create_secret)(
                    self.api,
                    namespace,
                    name,
                    dict(details),
                    labels={
                        LABEL_MANAGED_BY: "litellm-operator",
                        LABEL_RESOURCE_KIND: record.kind,
                        LABEL_RESOURCE_NAME: record.name,
                    },
                    owner_references=[
                        {
                            "apiVersion": API_GROUP_VERSION,
                            "kind": record.kind,
                            "name": record.name,
                            "uid": record.uid,
                        }
                    ],
                )
                metrics.connection_secret_operations_total.labels(operation="create", result="success").inc()
                logger.debug(f"Created connection secret {namespace}/{name}")
                return True

            merged = {**existing, **details}
            if merged == existing:
                metrics.connection_secret_operations_total.labels(operation="publish", result="unchanged").inc()
                return False

            rate_limit_k8s(update_secret)(self.api, namespace, name, merged)
            metrics.connection_secret_operations_total.labels(operation="update", result="success").inc()
            logger.debug(f"Updated connection secret {namespace}/{name}")
            return True
        except client.exceptions.ApiException as e:
            metrics.connection_secret_operations_total.labels(operation="publish", result="error").inc()
            raise TransientTransportError(f"cannot publish connection secret {namespace}/{name}", e) from e

    def unpublish(self, record: Managed) -> None:
        """Delete the connection secret of ``record``, if any.

        Raises:
            TransientTransportError: If the secret cannot be deleted
        """
        namespace, name = self.secret_ref(record)
        try:
            deleted = rate_limit_k8s(delete_secret)(self.api, namespace, name)
        except client.exceptions.ApiException as e:
            metrics.connection_secret_operations_total.labels(operation="delete", result="error").inc()
            raise TransientTransportError(f"cannot delete connection secret {namespace}/{name}", e) from e
        metrics.connection_secret_operations_total.labels(
            operation="delete", result="success" if deleted else "absent"
        ).inc()
