"""Raw watch handlers feeding managed resource controllers."""

from __future__ import annotations

from typing import Any

import kopf

from ..constants import API_GROUP, API_VERSION
from ..managed.controller import Controller


def register_managed_watch(registry: kopf.OperatorRegistry, controller: Controller) -> None:
    """Route raw watch events of the controller's kind into its work queue.

    kopf only observes here; all reconciliation happens on the controller's
    worker threads, so no kopf finalizers or progress annotations are used
    for managed resources.
    """
    plural = controller.kind.plural

    def watch_managed(event: kopf.RawEvent, **kwargs: Any) -> None:
        controller.handle_event(event.get("type"), dict(event.get("object") or {}))

    kopf.on.event(API_GROUP, API_VERSION, plural, id=f"watch-{plural}", registry=registry)(watch_managed)
