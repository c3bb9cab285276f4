"""Shared behaviour of the kopf handlers for cluster-scoped resources."""

from __future__ import annotations

import logging
import time
from typing import Any, Callable

import kopf

from .. import metrics
from ..logging import CONTROLLER_NAME, log_resource_event
from ..utils.errors import sanitize_exception
from ..utils.events import emit_reconcile_failed, emit_reconcile_started


class BaseHandler:
    """Structured logging, metrics and status helpers for one resource kind."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        self.logger = logging.getLogger(__name__)

    def _log(
        self,
        level: int,
        meta: dict[str, Any],
        message: str,
        event: str,
        reason: str,
        **fields: Any,
    ) -> None:
        log_resource_event(
            self.logger,
            controller=CONTROLLER_NAME,
            resource_kind=self.kind,
            resource_name=meta.get("name", "unknown"),
            uid=meta.get("uid", "unknown"),
            event=event,
            reason=reason,
            message=message,
            level=level,
            **fields,
        )

    def log_info(
        self, meta: dict[str, Any], message: str, event: str = "info", reason: str = "Info", **fields: Any
    ) -> None:
        self._log(logging.INFO, meta, message, event, reason, **fields)

    def log_warning(
        self, meta: dict[str, Any], message: str, event: str = "warning", reason: str = "Warning", **fields: Any
    ) -> None:
        self._log(logging.WARNING, meta, message, event, reason, **fields)

    def log_error(
        self,
        meta: dict[str, Any],
        message: str,
        error: Exception | None = None,
        event: str = "error",
        reason: str = "Error",
        **fields: Any,
    ) -> None:
        """Log at error level; ``error`` is added sanitized with its type name."""
        if error is not None:
            fields.update(error=sanitize_exception(error), error_type=type(error).__name__)
        self._log(logging.ERROR, meta, message, event, reason, **fields)

    def reconcile_with_metrics(self, body: dict[str, Any], reconcile_fn: Callable[[], None]) -> None:
        """Run ``reconcile_fn`` for ``body``, counting and timing the outcome.

        ``kopf.TemporaryError`` counts as a retry and propagates untouched. Any
        other exception is logged, reported as a Warning event and re-raised
        for kopf to retry.
        """
        emit_reconcile_started(body)
        result = "error"
        start_time = time.time()
        try:
            reconcile_fn()
            result = "success"
        except kopf.TemporaryError:
            result = "retry"
            raise
        except Exception as e:
            metrics.error_total.labels(kind=self.kind, error_type=type(e).__name__).inc()
            self.log_error(body.get("metadata", {}), "Reconciliation failed", error=e, reason="ReconciliationFailed")
            emit_reconcile_failed(body, f"Reconciliation failed: {sanitize_exception(e)}")
            raise
        finally:
            metrics.reconcile_duration_seconds.labels(kind=self.kind).observe(time.time() - start_time)
            metrics.reconcile_total.labels(kind=self.kind, result=result).inc()

    def update_resource_status(
        self,
        patch: kopf.Patch,
        meta: dict[str, Any],
        ready: bool,
        status_data: dict[str, Any] | None = None,
    ) -> None:
        """Write ``status_data`` and the observed generation to the kopf patch."""
        patch.status["observedGeneration"] = meta.get("generation", 0)
        patch.status.update(status_data or {})
        metrics.resource_status_total.labels(kind=self.kind, status="ready" if ready else "not_ready").inc()
