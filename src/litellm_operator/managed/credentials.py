"""Credential resolution for ProviderConfigs."""

from __future__ import annotations

import logging
import os
from typing import Any

from kubernetes import client

from ..constants import (
    CREDENTIALS_SOURCE_ENVIRONMENT,
    CREDENTIALS_SOURCE_FILESYSTEM,
    CREDENTIALS_SOURCE_INJECTED_IDENTITY,
    CREDENTIALS_SOURCE_INLINE,
    CREDENTIALS_SOURCE_NONE,
    CREDENTIALS_SOURCE_SECRET,
)
from ..errors import CredentialUnavailable
from ..utils.rate_limit import rate_limit_k8s
from ..utils.secrets import get_secret_bytes

logger = logging.getLogger(__name__)

DEFAULT_INJECTED_IDENTITY_TOKEN_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/token"


class CredentialResolver:
    """Extracts credential bytes from the source a ProviderConfig names.

    Every call reads the source again; nothing is cached between calls.
    """

    def __init__(
        self,
        core_api: client.CoreV1Api | None = None,
        environ: dict[str, str] | None = None,
    ) -> None:
        self.core_api = core_api
        self.environ = environ if environ is not None else os.environ

    def resolve(self, credentials: dict[str, Any]) -> bytes:
        """Resolve a credentials descriptor to raw bytes.

        Args:
            credentials: The ``spec.credentials`` block of a ProviderConfig

        Returns:
            Credential bytes (empty for the ``None`` source)

        Raises:
            CredentialUnavailable: If the source cannot produce a value
        """
        source = credentials.get("source") or CREDENTIALS_SOURCE_NONE

        if source == CREDENTIALS_SOURCE_NONE:
            return b""
        if source == CREDENTIALS_SOURCE_INLINE:
            return self._from_inline(credentials)
        if source == CREDENTIALS_SOURCE_SECRET:
            return self._from_secret(credentials)
        if source == CREDENTIALS_SOURCE_ENVIRONMENT:
            return self._from_environment(credentials)
        if source == CREDENTIALS_SOURCE_FILESYSTEM:
            path = (credentials.get("fs") or {}).get("path")
            if not path:
                raise CredentialUnavailable("credentials source Filesystem requires fs.path")
            return self._read_file(path)
        if source == CREDENTIALS_SOURCE_INJECTED_IDENTITY:
            path = self.environ.get(
                "LITELLM_INJECTED_IDENTITY_TOKEN_FILE", DEFAULT_INJECTED_IDENTITY_TOKEN_FILE
            )
            return self._read_file(path)

        raise CredentialUnavailable(f"credentials source {source} is not supported")

    def _from_inline(self, credentials: dict[str, Any]) -> bytes:
        value = credentials.get("inline")
        if value is None:
            raise CredentialUnavailable("credentials source Inline requires an inline value")
        return value.encode("utf-8")

    def _from_secret(self, credentials: dict[str, Any]) -> bytes:
        ref = credentials.get("secretRef") or {}
        name, namespace, key = ref.get("name"), ref.get("namespace"), ref.get("key")
        if not name or not namespace or not key:
            raise CredentialUnavailable("credentials source Secret requires secretRef name, namespace and key")
        if self.core_api is None:
            raise CredentialUnavailable("no Kubernetes client available to read credentials secret")
        try:
            return rate_limit_k8s(get_secret_bytes)(self.core_api, namespace, name, key)
        except ValueError as e:
            raise CredentialUnavailable("cannot get credentials secret", e) from e
        except client.exceptions.ApiException as e:
            raise CredentialUnavailable(f"cannot read secret {namespace}/{name}", e) from e

    def _from_environment(self, credentials: dict[str, Any]) -> bytes:
        var = (credentials.get("env") or {}).get("name")
        if not var:
            raise CredentialUnavailable("credentials source Environment requires env.name")
        value = self.environ.get(var)
        if value is None:
            raise CredentialUnavailable(f"environment variable {var} is not set")
        return value.encode("utf-8")

    def _read_file(self, path: str) -> bytes:
        try:
            with open(path, "rb") as f:
                return f.read()
        except OSError as e:
            raise CredentialUnavailable(f"cannot read credentials file {path}", e) from e
