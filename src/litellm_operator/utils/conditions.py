"""Utilities for managing Kubernetes conditions."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from ..constants import (
    COND_READY,
    COND_SYNCED,
    REASON_AVAILABLE,
    REASON_CREATING,
    REASON_DELETING,
    REASON_RECONCILE_SUCCESS,
    REASON_UNAVAILABLE,
)


def update_condition(
    conditions: list[dict[str, Any]],
    condition_type: str,
    status: str,
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Update or add a condition to the conditions list.

    Args:
        conditions: List of existing conditions
        condition_type: Type of condition
        status: Status of condition ("True", "False", "Unknown")
        reason: Reason for the condition
        message: Human-readable message
        observed_generation: Generation when condition was observed

    Returns:
        Updated list of conditions
    """
    now = datetime.now(timezone.utc).isoformat()

    existing_idx = None
    for idx, cond in enumerate(conditions):
        if cond.get("type") == condition_type:
            existing_idx = idx
            break

    new_condition = {
        "type": condition_type,
        "status": status,
        "reason": reason,
        "message": message,
        "lastTransitionTime": now,
    }

    if observed_generation is not None:
        new_condition["observedGeneration"] = observed_generation

    if existing_idx is not None:
        existing = conditions[existing_idx]
        # Only update lastTransitionTime if status changed
        if existing.get("status") == status:
            new_condition["lastTransitionTime"] = existing.get("lastTransitionTime", now)
        conditions[existing_idx] = new_condition
    else:
        conditions.append(new_condition)

    return conditions


def get_condition(conditions: list[dict[str, Any]], condition_type: str) -> dict[str, Any] | None:
    """Return the condition of the given type, if present."""
    for cond in conditions:
        if cond.get("type") == condition_type:
            return cond
    return None


def is_condition_true(conditions: list[dict[str, Any]], condition_type: str) -> bool:
    """Check whether a condition is present with status "True"."""
    cond = get_condition(conditions, condition_type)
    return cond is not None and cond.get("status") == "True"


def set_available(
    conditions: list[dict[str, Any]],
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Ready=True: the external resource exists and matches the desired state."""
    return update_condition(
        conditions,
        COND_READY,
        "True",
        REASON_AVAILABLE,
        "External resource is available",
        observed_generation,
    )


def set_unavailable(
    conditions: list[dict[str, Any]],
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Ready=False with a machine-readable reason."""
    return update_condition(
        conditions,
        COND_READY,
        "False",
        reason or REASON_UNAVAILABLE,
        message,
        observed_generation,
    )


def set_creating(
    conditions: list[dict[str, Any]],
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Ready=False while the external resource is being created."""
    return update_condition(
        conditions,
        COND_READY,
        "False",
        REASON_CREATING,
        "External resource is being created",
        observed_generation,
    )


def set_deleting(
    conditions: list[dict[str, Any]],
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Ready=False while the external resource is being deleted."""
    return update_condition(
        conditions,
        COND_READY,
        "False",
        REASON_DELETING,
        "External resource is being deleted",
        observed_generation,
    )


def set_reconcile_success(
    conditions: list[dict[str, Any]],
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Synced=True: the last reconciliation completed without error."""
    return update_condition(
        conditions,
        COND_SYNCED,
        "True",
        REASON_RECONCILE_SUCCESS,
        "Reconciliation succeeded",
        observed_generation,
    )


def set_reconcile_error(
    conditions: list[dict[str, Any]],
    reason: str,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Synced=False with the classified error kind as reason."""
    return update_condition(
        conditions,
        COND_SYNCED,
        "False",
        reason,
        message,
        observed_generation,
    )


def set_ready_condition(
    conditions: list[dict[str, Any]],
    status: bool,
    message: str,
    observed_generation: int | None = None,
) -> list[dict[str, Any]]:
    """Set the Ready condition."""
    return update_condition(
        conditions,
        COND_READY,
        "True" if status else "False",
        "Ready" if status else "NotReady",
        message,
        observed_generation,
    )
