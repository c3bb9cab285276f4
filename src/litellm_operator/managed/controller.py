"""Work-queue driven controller running reconcilers on worker threads."""

from __future__ import annotations

import contextvars
import logging
import threading
from typing import Any, Type

from .. import metrics
from ..apis.managed import Managed
from ..utils.context import with_correlation_id
from ..utils.errors import sanitize_exception
from .ratelimiter import BucketRateLimiter, default_controller_rate_limiter
from .reconciler import Deadline, Reconciler, ReconcileResult
from .workqueue import RateLimitingQueue

logger = logging.getLogger(__name__)


def desired_state_fingerprint(body: dict[str, Any]) -> tuple[Any, ...]:
    """The parts of a record whose change calls for a reconcile.

    Status-only writes (including our own) leave the fingerprint unchanged.
    """
    meta = body.get("metadata", {})
    return (
        meta.get("generation"),
        tuple(sorted((meta.get("annotations") or {}).items())),
        tuple(sorted((meta.get("labels") or {}).items())),
        meta.get("deletionTimestamp"),
    )


class Controller:
    """Feeds record names of one kind from watch events to a reconciler.

    At most one worker handles a given record at a time; the queue's
    processing set guarantees it. Every reconcile first reserves a token from
    the process-wide bucket shared by all controllers. A record deferred for
    its token runs on its next attempt without reserving another one.
    """

    def __init__(
        self,
        kind: Type[Managed],
        reconciler: Reconciler,
        bucket: BucketRateLimiter,
        workers: int = 4,
        reconcile_timeout: float | None = 60.0,
        min_retry_delay: float = 1.0,
        max_retry_delay: float = 60.0,
    ) -> None:
        self.kind = kind
        self.reconciler = reconciler
        self.bucket = bucket
        self.workers = workers
        self.reconcile_timeout = reconcile_timeout
        self.queue = RateLimitingQueue(
            default_controller_rate_limiter(min_retry_delay, max_retry_delay, bucket),
            name=kind.plural,
        )
        self._stopping = threading.Event()
        self._threads: list[threading.Thread] = []
        self._seen: dict[str, tuple[Any, ...]] = {}
        self._seen_lock = threading.Lock()
        # Records deferred by the bucket that already hold their token.
        self._reserved: set[str] = set()
        self._reserved_lock = threading.Lock()

    @property
    def running(self) -> bool:
        return bool(self._threads) and not self._stopping.is_set() and all(t.is_alive() for t in self._threads)

    # Watch side

    def handle_event(self, event_type: str | None, body: dict[str, Any]) -> None:
        """Enqueue a record for a raw watch event if its desired state changed."""
        name = body.get("metadata", {}).get("name")
        if not name:
            return

        if event_type == "DELETED":
            with self._seen_lock:
                self._seen.pop(name, None)
            with self._reserved_lock:
                self._reserved.discard(name)
            self.queue.forget(name)
            return

        fingerprint = desired_state_fingerprint(body)
        with self._seen_lock:
            if self._seen.get(name) == fingerprint:
                return
            self._seen[name] = fingerprint
        self.queue.add(name)

    # Worker side

    def start(self) -> None:
        """Start the worker threads.

        Each worker runs in a copy of the caller's context so that kopf
        event posting keeps working from the threads.
        """
        for i in range(self.workers):
            ctx = contextvars.copy_context()
            thread = threading.Thread(
                target=ctx.run,
                args=(self._worker,),
                name=f"{self.kind.plural}-worker-{i}",
                daemon=True,
            )
            thread.start()
            self._threads.append(thread)
        logger.info(f"Started {self.workers} workers for {self.kind.kind}")

    def stop(self, timeout: float | None = 10.0) -> None:
        """Cancel in-flight cycles and join the workers."""
        self._stopping.set()
        self.queue.shut_down()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []
        logger.info(f"Stopped workers for {self.kind.kind}")

    def _worker(self) -> None:
        while True:
            name = self.queue.get()
            if name is None:
                return
            try:
                self.process(name)
            finally:
                self.queue.done(name)

    def process(self, name: str) -> None:
        """Run one reconcile for ``name`` and requeue it as the result asks."""
        with self._reserved_lock:
            reserved = name in self._reserved
            self._reserved.discard(name)
        if not reserved:
            delay = self.bucket.when(name)
            if delay > 0:
                # The token is already taken; the next attempt runs without asking again.
                with self._reserved_lock:
                    self._reserved.add(name)
                metrics.rate_limit_hits_total.labels(api_type="reconcile").inc()
                self.queue.add_after(name, delay)
                return

        with with_correlation_id():
            try:
                result = self.reconciler.reconcile(
                    name, Deadline(self.reconcile_timeout, cancelled=self._stopping)
                )
            except Exception as e:
                logger.exception(
                    f"Unexpected error reconciling {self.kind.kind} {name}: {sanitize_exception(e)}"
                )
                metrics.error_total.labels(kind=self.kind.kind, error_type=type(e).__name__).inc()
                self.queue.add_rate_limited(name)
                return

        self.apply_result(name, result)

    def apply_result(self, name: str, result: ReconcileResult) -> None:
        if result.backoff:
            self.queue.add_rate_limited(name)
        elif result.requeue_after is not None:
            self.queue.forget(name)
            self.queue.add_after(name, result.requeue_after)
        else:
            self.queue.forget(name)
