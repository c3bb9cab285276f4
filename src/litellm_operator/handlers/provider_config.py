"""Handler for ProviderConfig CRD."""

from __future__ import annotations

from typing import Any, Callable

import kopf
from kubernetes import client

from .. import metrics
from ..constants import (
    API_GROUP,
    API_VERSION,
    CREDENTIALS_SOURCE_ENVIRONMENT,
    CREDENTIALS_SOURCE_FILESYSTEM,
    CREDENTIALS_SOURCE_INJECTED_IDENTITY,
    CREDENTIALS_SOURCE_INLINE,
    CREDENTIALS_SOURCE_NONE,
    CREDENTIALS_SOURCE_SECRET,
    EVENT_REASON_PROVIDER_CONFIG_IN_USE,
    KIND_PROVIDER_CONFIG,
    PLURAL_PROVIDER_CONFIGS,
)
from ..managed.usage import list_usages
from ..tracing import trace_span
from ..utils.cache import invalidate_cache, make_cache_key
from ..utils.conditions import set_ready_condition
from ..utils.events import emit_event
from .base import BaseHandler
from .shared import get_k8s_client

SUPPORTED_SOURCES = {
    CREDENTIALS_SOURCE_NONE,
    CREDENTIALS_SOURCE_SECRET,
    CREDENTIALS_SOURCE_ENVIRONMENT,
    CREDENTIALS_SOURCE_FILESYSTEM,
    CREDENTIALS_SOURCE_INLINE,
    CREDENTIALS_SOURCE_INJECTED_IDENTITY,
}


def validate_provider_config_spec(spec: dict[str, Any]) -> str | None:
    """Return a validation error message, or None if the spec is valid."""
    api_base = spec.get("apiBase")
    if not api_base:
        return "apiBase is required"
    if not api_base.startswith(("http://", "https://")):
        return "apiBase must be an http(s) URL"
    source = (spec.get("credentials") or {}).get("source", CREDENTIALS_SOURCE_NONE)
    if source not in SUPPORTED_SOURCES:
        return f"unsupported credentials source: {source}"
    return None


class ProviderConfigHandler(BaseHandler):
    """Tracks ProviderConfig users and protects in-use ProviderConfigs from deletion."""

    def __init__(
        self,
        api_getter: Callable[[], client.CustomObjectsApi] = get_k8s_client,
        check_interval: float = 60.0,
    ):
        """Initialize ProviderConfig handler."""
        super().__init__(KIND_PROVIDER_CONFIG)
        self.api_getter = api_getter
        self.check_interval = check_interval

    def count_users(self, name: str) -> int:
        users = len(list_usages(self.api_getter(), name))
        metrics.provider_config_users.labels(provider_config=name).set(users)
        return users

    def reconcile(
        self,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
    ) -> None:
        """Reconcile ProviderConfig resource."""
        name = meta.get("name", "unknown")

        with trace_span(
            "reconcile_provider_config",
            kind=KIND_PROVIDER_CONFIG,
            attributes={"provider_config.name": name},
        ):
            # Connectors must see the new spec on their next lookup.
            invalidate_cache(make_cache_key(KIND_PROVIDER_CONFIG, "", name))

            conditions = list(status.get("conditions", []))
            error_msg = validate_provider_config_spec(spec)
            if error_msg:
                self.log_error(meta, error_msg, reason="ValidationFailed")
                conditions = set_ready_condition(conditions, False, error_msg, meta.get("generation"))
                self.update_resource_status(patch, meta, False, {"conditions": conditions})
                return

            users = self.count_users(name)
            conditions = set_ready_condition(conditions, True, "ProviderConfig is ready", meta.get("generation"))
            self.update_resource_status(patch, meta, True, {"users": users, "conditions": conditions})

    def delete(self, body: dict[str, Any], meta: dict[str, Any]) -> None:
        """Block deletion while managed resources still use this ProviderConfig.

        Raises:
            kopf.TemporaryError: While usages remain
        """
        name = meta.get("name", "unknown")
        users = self.count_users(name)
        if users:
            message = f"ProviderConfig is still in use by {users} managed resource(s)"
            self.log_warning(meta, message, event="deletion_blocked", reason=EVENT_REASON_PROVIDER_CONFIG_IN_USE)
            emit_event(body, EVENT_REASON_PROVIDER_CONFIG_IN_USE, message, type_="Warning")
            raise kopf.TemporaryError(message, delay=self.check_interval)

        self.log_info(meta, "ProviderConfig is being deleted", event="deletion", reason="Deletion")
        invalidate_cache(make_cache_key(KIND_PROVIDER_CONFIG, "", name))
        metrics.provider_config_users.remove(name)


def register_provider_config_handlers(registry: kopf.OperatorRegistry, handler: ProviderConfigHandler) -> None:
    """Register the ProviderConfig handlers on ``registry``."""

    def handle_provider_config(
        body: kopf.Body,
        spec: dict[str, Any],
        meta: dict[str, Any],
        status: dict[str, Any],
        patch: kopf.Patch,
        **kwargs: Any,
    ) -> None:
        """Handle ProviderConfig resource reconciliation."""
        handler.reconcile_with_metrics(dict(body), lambda: handler.reconcile(spec, meta, status, patch))

    def handle_provider_config_delete(body: kopf.Body, meta: dict[str, Any], **kwargs: Any) -> None:
        """Handle ProviderConfig resource deletion."""
        handler.delete(dict(body), meta)

    resource = (API_GROUP, API_VERSION, PLURAL_PROVIDER_CONFIGS)
    kopf.on.create(*resource, registry=registry)(handle_provider_config)
    kopf.on.update(*resource, registry=registry)(handle_provider_config)
    kopf.on.resume(*resource, registry=registry)(handle_provider_config)
    kopf.on.timer(*resource, interval=handler.check_interval, registry=registry)(
        handle_provider_config
    )
    kopf.on.delete(*resource, registry=registry)(handle_provider_config_delete)
