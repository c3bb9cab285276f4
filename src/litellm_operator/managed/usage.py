"""ProviderConfig usage tracking."""

from __future__ import annotations

import logging
import time
from typing import Any

from kubernetes import client

from .. import metrics
from ..apis.managed import Managed
from ..apis.provider_config import ProviderConfigUsage
from ..constants import (
    API_GROUP,
    API_VERSION,
    FIELD_MANAGER,
    LABEL_PROVIDER_CONFIG,
    PLURAL_PROVIDER_CONFIG_USAGES,
)
from ..errors import TrackFailed
from ..utils.rate_limit import rate_limit_k8s

logger = logging.getLogger(__name__)


class ProviderConfigUsageTracker:
    """Ensures a ProviderConfigUsage exists for every connected record."""

    def __init__(self, api: client.CustomObjectsApi) -> None:
        self.api = api

    def track(self, record: Managed) -> None:
        """Create or repoint the usage for ``record``.

        Raises:
            TrackFailed: If the usage cannot be written
        """
        desired = ProviderConfigUsage.build_body(record)
        start_time = time.time()
        try:
            try:
                rate_limit_k8s(self.api.create_cluster_custom_object)(
                    group=API_GROUP,
                    version=API_VERSION,
                    plural=PLURAL_PROVIDER_CONFIG_USAGES,
                    body=desired,
                    field_manager=FIELD_MANAGER,
                )
                metrics.api_call_total.labels(api_type="k8s", operation="track_usage", result="created").inc()
                return
            except client.exceptions.ApiException as e:
                if e.status != 409:
                    raise

            existing = rate_limit_k8s(self.api.get_cluster_custom_object)(
                group=API_GROUP,
                version=API_VERSION,
                plural=PLURAL_PROVIDER_CONFIG_USAGES,
                name=record.uid,
            )
            labels = existing.get("metadata", {}).get("labels") or {}
            if labels.get(LABEL_PROVIDER_CONFIG) == record.provider_config_name:
                metrics.api_call_total.labels(api_type="k8s", operation="track_usage", result="unchanged").inc()
                return

            desired["metadata"]["resourceVersion"] = existing["metadata"].get("resourceVersion")
            rate_limit_k8s(self.api.replace_cluster_custom_object)(
                group=API_GROUP,
                version=API_VERSION,
                plural=PLURAL_PROVIDER_CONFIG_USAGES,
                name=record.uid,
                body=desired,
                field_manager=FIELD_MANAGER,
            )
            metrics.api_call_total.labels(api_type="k8s", operation="track_usage", result="replaced").inc()
        except client.exceptions.ApiException as e:
            metrics.api_call_total.labels(api_type="k8s", operation="track_usage", result="error").inc()
            raise TrackFailed("cannot apply ProviderConfigUsage", e) from e
        finally:
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation="track_usage").observe(
                time.time() - start_time
            )


def list_usages(api: client.CustomObjectsApi, provider_config_name: str) -> list[dict[str, Any]]:
    """List the usages that reference a ProviderConfig.

    Args:
        api: Kubernetes CustomObjectsApi instance
        provider_config_name: Name of the ProviderConfig

    Returns:
        Usage objects labelled with the ProviderConfig name
    """
    result = rate_limit_k8s(api.list_cluster_custom_object)(
        group=API_GROUP,
        version=API_VERSION,
        plural=PLURAL_PROVIDER_CONFIG_USAGES,
        label_selector=f"{LABEL_PROVIDER_CONFIG}={provider_config_name}",
    )
    return result.get("items", [])
