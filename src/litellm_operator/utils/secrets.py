"""Utilities for managing Kubernetes secrets."""

from __future__ import annotations

import base64
import logging
from typing import Any

from kubernetes import client

from ..constants import FIELD_MANAGER

logger = logging.getLogger(__name__)


def _decode(value: str | bytes) -> bytes:
    """Decode a value from V1Secret.data."""
    if isinstance(value, bytes):
        return value
    return base64.b64decode(value)


def get_secret_bytes(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
    key: str,
) -> bytes:
    """Get a raw value from a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret
        key: Key in the secret

    Returns:
        Secret value bytes

    Raises:
        ValueError: If secret or key not found
    """
    try:
        secret = api.read_namespaced_secret(name=secret_name, namespace=namespace)
    except client.exceptions.ApiException as e:
        if e.status == 404:
            raise ValueError(f"Secret '{secret_name}' not found in namespace '{namespace}'") from e
        raise

    data = secret.data or {}
    if key not in data:
        raise ValueError(f"Key '{key}' not found in secret '{secret_name}'")
    return _decode(data[key])


def read_secret_data(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
) -> dict[str, bytes] | None:
    """Read all data from a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret

    Returns:
        Dictionary of secret data (decoded), or None if the secret does not exist
    """
    try:
        secret = api.read_namespaced_secret(name=secret_name, namespace=namespace)
    except client.exceptions.ApiException as e:
        if e.status == 404:
            return None
        raise
    return {key: _decode(value) for key, value in (secret.data or {}).items()}


def build_secret(
    namespace: str,
    secret_name: str,
    data: dict[str, bytes],
    labels: dict[str, str] | None = None,
    owner_references: list[dict[str, Any]] | None = None,
) -> client.V1Secret:
    """Build an Opaque secret body with base64-encoded data."""
    return client.V1Secret(
        metadata=client.V1ObjectMeta(
            name=secret_name,
            namespace=namespace,
            labels=labels or {},
            owner_references=owner_references or [],
        ),
        type="Opaque",
        data={k: base64.b64encode(v).decode("utf-8") for k, v in data.items()},
    )


def create_secret(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
    data: dict[str, bytes],
    labels: dict[str, str] | None = None,
    owner_references: list[dict[str, Any]] | None = None,
) -> None:
    """Create a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace for the secret
        secret_name: Name of the secret
        data: Secret data (will be base64 encoded)
        labels: Labels for the secret
        owner_references: Owner references for the secret
    """
    api.create_namespaced_secret(
        namespace=namespace,
        body=build_secret(namespace, secret_name, data, labels, owner_references),
        field_manager=FIELD_MANAGER,
    )


def update_secret(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
    data: dict[str, bytes],
) -> None:
    """Patch the data of a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret
        data: Secret data (will be base64 encoded)
    """
    api.patch_namespaced_secret(
        name=secret_name,
        namespace=namespace,
        body={"data": {k: base64.b64encode(v).decode("utf-8") for k, v in data.items()}},
        field_manager=FIELD_MANAGER,
    )


def delete_secret(
    api: client.CoreV1Api,
    namespace: str,
    secret_name: str,
) -> bool:
    """Delete a Kubernetes secret.

    Args:
        api: Kubernetes API client
        namespace: Namespace of the secret
        secret_name: Name of the secret

    Returns:
        True if the secret was deleted, False if it did not exist
    """
    try:
        api.delete_namespaced_secret(name=secret_name, namespace=namespace)
    except client.exceptions.ApiException as e:
        if e.status == 404:
            logger.debug(f"Secret {namespace}/{secret_name} already absent")
            return False
        raise
    return True
