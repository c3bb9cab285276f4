"""Generic managed resource reconciler.

One call to ``Reconciler.reconcile`` runs one level-triggered cycle for one
record: connect, observe, then at most one of create, update or delete. The
reconciler never sleeps or requeues by itself; it reports the next action as
a ``ReconcileResult`` and leaves scheduling to the work queue.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Type

from .. import metrics
from ..apis.managed import Managed
from ..constants import (
    ANNOTATION_EXTERNAL_CREATE_FAILED,
    ANNOTATION_EXTERNAL_CREATE_PENDING,
    ANNOTATION_EXTERNAL_CREATE_SUCCEEDED,
    DELETION_POLICY_ORPHAN,
    EVENT_REASON_CANNOT_CONNECT,
    EVENT_REASON_CANNOT_CREATE,
    EVENT_REASON_CANNOT_DELETE,
    EVENT_REASON_CANNOT_OBSERVE,
    EVENT_REASON_CANNOT_PUBLISH,
    EVENT_REASON_CANNOT_UPDATE,
    EVENT_REASON_CREATED,
    EVENT_REASON_DELETED,
    EVENT_REASON_UPDATED,
    FINALIZER,
    REASON_CREATING,
)
from ..errors import (
    RETRY_IMMEDIATE,
    RETRY_NEVER,
    RETRY_POLL,
    ConflictError,
    CreateIncomplete,
    ReconcileError,
)
from ..logging import CONTROLLER_NAME, log_resource_event
from ..tracing import add_span_attribute, trace_span
from ..utils.conditions import (
    set_available,
    set_creating,
    set_deleting,
    set_reconcile_error,
    set_reconcile_success,
    set_unavailable,
)
from ..utils.errors import sanitize_exception
from .interfaces import ConnectionPublisher, EventRecorder, ExternalConnector, RecordStore

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """What the work queue should do with the record after a cycle.

    ``requeue_after`` schedules the next cycle after that many seconds,
    ``backoff`` asks for a rate-limited requeue, and neither means the record
    is only reconciled again when it changes.
    """

    requeue_after: float | None = None
    backoff: bool = False
    error_kind: str | None = None


class Deadline:
    """Cancellation signal for one reconcile cycle."""

    def __init__(
        self,
        timeout: float | None = None,
        cancelled: threading.Event | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._clock = clock
        self._expires_at = None if timeout is None else clock() + timeout
        self._cancelled = cancelled

    def expired(self) -> bool:
        if self._cancelled is not None and self._cancelled.is_set():
            return True
        return self._expires_at is not None and self._clock() >= self._expires_at


def _timestamp(now: datetime) -> str:
    return now.isoformat()


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


class Reconciler:
    """Drives records of one kind toward their desired external state."""

    def __init__(
        self,
        kind: Type[Managed],
        store: RecordStore,
        connector: ExternalConnector,
        publisher: ConnectionPublisher,
        recorder: EventRecorder,
        poll_interval: float = 60.0,
        creation_grace_period: float = 30.0,
        conflict_retries: int = 3,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ) -> None:
        self.kind = kind
        self.store = store
        self.connector = connector
        self.publisher = publisher
        self.recorder = recorder
        self.poll_interval = poll_interval
        self.creation_grace_period = creation_grace_period
        self.conflict_retries = conflict_retries
        self._now = now

    # Logging and events

    def _log(
        self,
        record: Managed,
        event: str,
        reason: str,
        message: str,
        level: int = logging.INFO,
        **kwargs: Any,
    ) -> None:
        log_resource_event(
            logger,
            controller=CONTROLLER_NAME,
            resource_kind=record.kind,
            resource_name=record.name,
            uid=record.uid,
            event=event,
            reason=reason,
            message=message,
            level=level,
            **kwargs,
        )

    def _normal(self, record: Managed, reason: str, message: str) -> None:
        self.recorder.normal(record.event_body(), reason, message)

    def _warning(self, record: Managed, reason: str, message: str) -> None:
        self.recorder.warning(record.event_body(), reason, message)

    # Scheduling

    def _schedule(self, error: ReconcileError) -> ReconcileResult:
        if error.retry == RETRY_NEVER:
            return ReconcileResult(error_kind=error.kind)
        if error.retry == RETRY_POLL:
            return ReconcileResult(requeue_after=self.poll_interval, error_kind=error.kind)
        if error.retry == RETRY_IMMEDIATE:
            return ReconcileResult(requeue_after=0, error_kind=error.kind)
        return ReconcileResult(backoff=True, error_kind=error.kind)

    def _requeue_now(self) -> ReconcileResult:
        return ReconcileResult(requeue_after=0)

    def _fail(
        self,
        record: Managed,
        error: ReconcileError,
        event_reason: str,
        ready: bool = True,
    ) -> ReconcileResult:
        """Report a classified failure on the record and schedule a retry.

        With ``ready`` the Ready condition is set to False as well, carrying
        the error kind as reason.
        """
        message = sanitize_exception(error)
        level = logging.ERROR if error.retry == RETRY_NEVER else logging.WARNING
        self._log(record, "reconcile_failed", error.kind, message, level=level, phase=event_reason)
        self._warning(record, event_reason, message)
        metrics.error_total.labels(kind=record.kind, error_type=error.kind).inc()

        if ready:
            record.conditions = set_unavailable(record.conditions, error.kind, message, record.generation)
        record.conditions = set_reconcile_error(record.conditions, error.kind, message, record.generation)
        try:
            self.store.update_status(record)
        except ConflictError:
            return self._requeue_now()
        except ReconcileError as e:
            self._log(record, "status_update_failed", e.kind, sanitize_exception(e), level=logging.WARNING)
        return self._schedule(error)

    def _persist(
        self,
        record: Managed,
        annotations: dict[str, str] | None,
        apply_status: Callable[[Managed], None],
    ) -> Managed:
        """Write the outcome of a mutating call, retrying on conflicts.

        The outcome of an external call must not be lost to a concurrent
        record change, so conflicts re-read the record and re-apply the
        annotations and status.
        """
        pending = dict(annotations or {})
        for attempt in range(self.conflict_retries + 1):
            try:
                if pending:
                    record.annotations.update(pending)
                    record = self.store.update(record)
                    pending = {}
                apply_status(record)
                return self.store.update_status(record)
            except ConflictError:
                if attempt == self.conflict_retries:
                    raise
                fresh = self.store.get(type(record), record.name)
                if fresh is None:
                    raise
                record = fresh
        raise ConflictError(f"{record.kind} {record.name} kept changing")

    # Create bookkeeping

    def _create_incomplete(self, record: Managed) -> bool:
        """True if a Create was issued but neither outcome was recorded."""
        annotations = record.annotations
        pending = _parse_timestamp(annotations.get(ANNOTATION_EXTERNAL_CREATE_PENDING))
        if pending is None:
            return False
        succeeded = _parse_timestamp(annotations.get(ANNOTATION_EXTERNAL_CREATE_SUCCEEDED))
        failed = _parse_timestamp(annotations.get(ANNOTATION_EXTERNAL_CREATE_FAILED))
        if succeeded is not None and succeeded >= pending:
            return False
        if failed is not None and failed >= pending:
            return False
        return True

    def _within_creation_grace(self, record: Managed) -> float | None:
        """Seconds left in the grace period after a successful Create, if any."""
        succeeded = _parse_timestamp(record.annotations.get(ANNOTATION_EXTERNAL_CREATE_SUCCEEDED))
        if succeeded is None:
            return None
        remaining = self.creation_grace_period - (self._now() - succeeded).total_seconds()
        return remaining if remaining > 0 else None

    # Reconciliation

    def reconcile(self, name: str, deadline: Deadline | None = None) -> ReconcileResult:
        """Run one reconcile cycle for the record called ``name``."""
        deadline = deadline or Deadline()
        start_time = time.time()
        result = ReconcileResult()
        try:
            with trace_span("reconcile", kind=self.kind.kind, attributes={"resource.name": name}):
                result = self._reconcile(name, deadline)
        except ReconcileError as e:
            # Store failures outside the phases that report on the record.
            logger.warning(f"Reconcile of {self.kind.kind} {name} failed: {sanitize_exception(e)}")
            metrics.error_total.labels(kind=self.kind.kind, error_type=e.kind).inc()
            result = self._schedule(e)
        finally:
            metrics.reconcile_duration_seconds.labels(kind=self.kind.kind).observe(time.time() - start_time)

        outcome = "error" if result.error_kind else "success"
        metrics.reconcile_total.labels(kind=self.kind.kind, result=outcome).inc()
        return result

    def _reconcile(self, name: str, deadline: Deadline) -> ReconcileResult:
        record = self.store.get(self.kind, name)
        if record is None:
            logger.debug(f"{self.kind.kind} {name} no longer exists")
            return ReconcileResult()

        if record.deleting and FINALIZER not in record.finalizers:
            return ReconcileResult()

        if record.deleting and record.deletion_policy == DELETION_POLICY_ORPHAN:
            return self._orphan(record)

        if not record.deleting and FINALIZER not in record.finalizers:
            record.finalizers.append(FINALIZER)
            record = self.store.update(record)

        if deadline.expired():
            return self._requeue_now()

        try:
            external = self.connector.connect(record)
        except ReconcileError as e:
            return self._fail(record, e, EVENT_REASON_CANNOT_CONNECT)

        if record.deleting:
            return self._delete(record, external, deadline)

        if deadline.expired():
            return self._requeue_now()

        try:
            with trace_span("observe", kind=record.kind):
                observation = external.observe(record)
                add_span_attribute("external.exists", observation.exists)
                add_span_attribute("external.up_to_date", observation.up_to_date)
            metrics.external_operations_total.labels(kind=record.kind, operation="observe", result="success").inc()
        except ReconcileError as e:
            metrics.external_operations_total.labels(kind=record.kind, operation="observe", result="error").inc()
            return self._fail(record, e, EVENT_REASON_CANNOT_OBSERVE)

        if not observation.exists:
            if self._create_incomplete(record):
                error = CreateIncomplete(
                    "cannot determine creation result: remove the "
                    f"{ANNOTATION_EXTERNAL_CREATE_PENDING} annotation if it is safe to proceed"
                )
                return self._fail(record, error, EVENT_REASON_CANNOT_CREATE)

            remaining = self._within_creation_grace(record)
            if remaining is not None:
                logger.debug(f"{record.kind} {record.name} not observed yet after create, waiting {remaining:.1f}s")
                return ReconcileResult(requeue_after=remaining)

            if deadline.expired():
                return self._requeue_now()
            return self._create(record, external, deadline)

        if not observation.up_to_date:
            if deadline.expired():
                return self._requeue_now()
            return self._update(record, external, observation, deadline)

        return self._available(record, observation)

    def _orphan(self, record: Managed) -> ReconcileResult:
        """Release a record whose external resource is left behind."""
        try:
            self.publisher.unpublish(record)
        except ReconcileError as e:
            return self._fail(record, e, EVENT_REASON_CANNOT_PUBLISH)
        record.finalizers.remove(FINALIZER)
        self.store.update(record)
        self._log(record, "orphaned", "Orphan", "Released record without deleting the external resource")
        return ReconcileResult()

    def _delete(self, record: Managed, external, deadline: Deadline) -> ReconcileResult:
        if deadline.expired():
            return self._requeue_now()

        record.conditions = set_deleting(record.conditions, record.generation)
        try:
            with trace_span("delete", kind=record.kind):
                external.delete(record)
            metrics.external_operations_total.labels(kind=record.kind, operation="delete", result="success").inc()
        except ReconcileError as e:
            metrics.external_operations_total.labels(kind=record.kind, operation="delete", result="error").inc()
            return self._fail(record, e, EVENT_REASON_CANNOT_DELETE)

        self._normal(record, EVENT_REASON_DELETED, "Deleted external resource")
        self._log(record, "deleted", EVENT_REASON_DELETED, "Deleted external resource")

        try:
            self.publisher.unpublish(record)
        except ReconcileError as e:
            return self._fail(record, e, EVENT_REASON_CANNOT_PUBLISH)

        record.finalizers.remove(FINALIZER)
        self.store.update(record)
        return ReconcileResult()

    def _create(self, record: Managed, external, deadline: Deadline) -> ReconcileResult:
        record.annotations[ANNOTATION_EXTERNAL_CREATE_PENDING] = _timestamp(self._now())
        record = self.store.update(record)

        try:
            with trace_span("create", kind=record.kind):
                creation = external.create(record)
        except Exception as e:
            # Any exception from Create is a failed outcome.
            error = e if isinstance(e, ReconcileError) else ReconcileError(f"create failed: {type(e).__name__}", e)
            metrics.external_operations_total.labels(kind=record.kind, operation="create", result="error").inc()
            failed_at = _timestamp(self._now())
            message = sanitize_exception(error)

            def apply_failure(r: Managed) -> None:
                r.conditions = set_unavailable(r.conditions, REASON_CREATING, message, r.generation)
                r.conditions = set_reconcile_error(r.conditions, error.kind, message, r.generation)

            record = self._persist(record, {ANNOTATION_EXTERNAL_CREATE_FAILED: failed_at}, apply_failure)
            self._log(record, "create_failed", error.kind, message, level=logging.WARNING)
            self._warning(record, EVENT_REASON_CANNOT_CREATE, message)
            metrics.error_total.labels(kind=record.kind, error_type=error.kind).inc()
            return self._schedule(error)

        metrics.external_operations_total.labels(kind=record.kind, operation="create", result="success").inc()
        succeeded_at = _timestamp(self._now())

        def apply_success(r: Managed) -> None:
            r.at_provider = creation.at_provider
            r.conditions = set_creating(r.conditions, r.generation)
            r.conditions = set_reconcile_success(r.conditions, r.generation)

        # The outcome is recorded even when the cycle was cancelled meanwhile.
        record = self._persist(record, {ANNOTATION_EXTERNAL_CREATE_SUCCEEDED: succeeded_at}, apply_success)
        self._normal(record, EVENT_REASON_CREATED, "Created external resource")
        self._log(record, "created", EVENT_REASON_CREATED, "Created external resource")

        if deadline.expired():
            return self._requeue_now()

        try:
            self.publisher.publish(record, creation.connection_details)
        except ReconcileError as e:
            return self._fail(record, e, EVENT_REASON_CANNOT_PUBLISH, ready=False)

        return self._requeue_now()

    def _update(self, record: Managed, external, observation, deadline: Deadline) -> ReconcileResult:
        try:
            with trace_span("update", kind=record.kind):
                update = external.update(record)
        except ReconcileError as e:
            metrics.external_operations_total.labels(kind=record.kind, operation="update", result="error").inc()
            record.at_provider = observation.at_provider
            return self._fail(record, e, EVENT_REASON_CANNOT_UPDATE, ready=False)

        metrics.external_operations_total.labels(kind=record.kind, operation="update", result="success").inc()

        def apply_success(r: Managed) -> None:
            r.at_provider = update.at_provider or observation.at_provider
            r.conditions = set_reconcile_success(r.conditions, r.generation)

        record = self._persist(record, None, apply_success)
        self._normal(record, EVENT_REASON_UPDATED, "Updated external resource")
        self._log(record, "updated", EVENT_REASON_UPDATED, "Updated external resource")

        if deadline.expired():
            return self._requeue_now()

        details = {**observation.connection_details, **update.connection_details}
        try:
            self.publisher.publish(record, details)
        except ReconcileError as e:
            return self._fail(record, e, EVENT_REASON_CANNOT_PUBLISH, ready=False)

        return ReconcileResult(requeue_after=self.poll_interval)

    def _available(self, record: Managed, observation) -> ReconcileResult:
        try:
            self.publisher.publish(record, observation.connection_details)
        except ReconcileError as e:
            record.at_provider = observation.at_provider
            return self._fail(record, e, EVENT_REASON_CANNOT_PUBLISH, ready=False)

        before = record.to_body()["status"]
        record.at_provider = observation.at_provider
        record.conditions = set_available(record.conditions, record.generation)
        record.conditions = set_reconcile_success(record.conditions, record.generation)
        if record.to_body()["status"] != before:
            self.store.update_status(record)
            metrics.resource_status_total.labels(kind=record.kind, status="ready").inc()

        return ReconcileResult(requeue_after=self.poll_interval)
