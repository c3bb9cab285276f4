"""Utilities for emitting Kubernetes events."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import EVENT_REASON_RECONCILE_FAILED, EVENT_REASON_RECONCILE_STARTED


def emit_event(
    body: dict[str, Any],
    reason: str,
    message: str,
    type_: str = "Normal",
) -> None:
    """Emit a Kubernetes event.

    Args:
        body: Resource body (apiVersion, kind and metadata are required)
        reason: Event reason
        message: Event message
        type_: Event type (Normal or Warning)
    """
    kopf.event(
        body,
        reason=reason,
        message=message,
        type=type_,
    )


def emit_reconcile_started(body: dict[str, Any]) -> None:
    """Emit reconcile started event."""
    emit_event(body, EVENT_REASON_RECONCILE_STARTED, "Reconciliation started")


def emit_reconcile_failed(body: dict[str, Any], message: str) -> None:
    """Emit reconcile failed event."""
    emit_event(body, EVENT_REASON_RECONCILE_FAILED, message, type_="Warning")


class KopfEventRecorder:
    """Records reconciler events on the managed record through kopf."""

    def normal(self, body: dict[str, Any], reason: str, message: str) -> None:
        emit_event(body, reason, message)

    def warning(self, body: dict[str, Any], reason: str, message: str) -> None:
        emit_event(body, reason, message, type_="Warning")
