"""ProviderConfig and ProviderConfigUsage resources."""

from __future__ import annotations

from typing import Any

from ..constants import (
    API_GROUP_VERSION,
    CREDENTIALS_SOURCE_NONE,
    KIND_PROVIDER_CONFIG,
    KIND_PROVIDER_CONFIG_USAGE,
    LABEL_MANAGED_BY,
    LABEL_PROVIDER_CONFIG,
    LABEL_RESOURCE_KIND,
    LABEL_RESOURCE_NAME,
    PLURAL_PROVIDER_CONFIGS,
    PLURAL_PROVIDER_CONFIG_USAGES,
)
from .managed import Managed


class ProviderConfig:
    """Connection settings for a LiteLLM proxy. Read-only to reconcilers."""

    kind = KIND_PROVIDER_CONFIG
    plural = PLURAL_PROVIDER_CONFIGS

    def __init__(self, body: dict[str, Any]) -> None:
        self.body = body

    @property
    def name(self) -> str:
        return self.body.get("metadata", {}).get("name", "")

    @property
    def spec(self) -> dict[str, Any]:
        return self.body.get("spec") or {}

    @property
    def api_base(self) -> str:
        return self.spec.get("apiBase", "")

    @property
    def credentials(self) -> dict[str, Any]:
        return self.spec.get("credentials") or {"source": CREDENTIALS_SOURCE_NONE}

    @property
    def credentials_source(self) -> str:
        return self.credentials.get("source") or CREDENTIALS_SOURCE_NONE


class ProviderConfigUsage:
    """Records that one managed resource uses one ProviderConfig."""

    kind = KIND_PROVIDER_CONFIG_USAGE
    plural = PLURAL_PROVIDER_CONFIG_USAGES

    @staticmethod
    def build_body(record: Managed) -> dict[str, Any]:
        """Build the usage object for a managed resource.

        The usage is named after the record UID, labelled with the
        ProviderConfig name and owned by the record so it is garbage collected
        together with it.
        """
        return {
            "apiVersion": API_GROUP_VERSION,
            "kind": KIND_PROVIDER_CONFIG_USAGE,
            "metadata": {
                "name": record.uid,
                "labels": {
                    LABEL_MANAGED_BY: "litellm-operator",
                    LABEL_PROVIDER_CONFIG: record.provider_config_name,
                    LABEL_RESOURCE_KIND: record.kind,
                    LABEL_RESOURCE_NAME: record.name,
                },
                "ownerReferences": [
                    {
                        "apiVersion": API_GROUP_VERSION,
                        "kind": record.kind,
                        "name": record.name,
                        "uid": record.uid,
                        "controller": True,
                        "blockOwnerDeletion": True,
                    }
                ],
            },
            "providerConfigRef": {"name": record.provider_config_name},
            "resourceRef": {
                "apiVersion": API_GROUP_VERSION,
                "kind": record.kind,
                "name": record.name,
            },
        }
