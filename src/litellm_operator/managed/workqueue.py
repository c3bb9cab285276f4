"""Rate-limited work queue of record keys.

Follows the client-go work queue contract:

* an item is queued at most once however often it is added (dirty set);
* an item handed to a worker is not handed to another worker until ``done``
  is called for it; adds in the meantime are replayed by ``done``;
* delayed adds for the same item keep only the earliest ready time.
"""

from __future__ import annotations

import heapq
import threading
import time
from collections import deque
from typing import Callable, Hashable

from .. import metrics
from .ratelimiter import RateLimiter


class RateLimitingQueue:
    """FIFO work queue with delayed and rate-limited adds."""

    def __init__(
        self,
        rate_limiter: RateLimiter,
        name: str = "",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self.rate_limiter = rate_limiter
        self._clock = clock
        self._queue: deque[Hashable] = deque()
        self._dirty: set[Hashable] = set()
        self._processing: set[Hashable] = set()
        # Delayed items: heap of (ready_at, seq, item) plus the live ready_at per item.
        self._waiting: list[tuple[float, int, Hashable]] = []
        self._ready_at: dict[Hashable, float] = {}
        self._seq = 0
        self._shutting_down = False
        self._cond = threading.Condition()

    def __len__(self) -> int:
        with self._cond:
            return len(self._queue)

    @property
    def shutting_down(self) -> bool:
        with self._cond:
            return self._shutting_down

    def add(self, item: Hashable) -> None:
        """Queue ``item`` unless it is already queued."""
        with self._cond:
            self._add_locked(item)

    def _add_locked(self, item: Hashable) -> None:
        if self._shutting_down or item in self._dirty:
            return
        metrics.workqueue_adds_total.labels(name=self.name).inc()
        self._dirty.add(item)
        if item in self._processing:
            return
        self._queue.append(item)
        metrics.workqueue_depth.labels(name=self.name).set(len(self._queue))
        self._cond.notify()

    def add_after(self, item: Hashable, delay: float) -> None:
        """Queue ``item`` once ``delay`` seconds have passed."""
        if delay <= 0:
            self.add(item)
            return
        with self._cond:
            if self._shutting_down:
                return
            ready_at = self._clock() + delay
            current = self._ready_at.get(item)
            if current is not None and current <= ready_at:
                return
            self._ready_at[item] = ready_at
            self._seq += 1
            heapq.heappush(self._waiting, (ready_at, self._seq, item))
            self._cond.notify()

    def add_rate_limited(self, item: Hashable) -> None:
        """Queue ``item`` after the delay the rate limiter asks for."""
        metrics.workqueue_retries_total.labels(name=self.name).inc()
        self.add_after(item, self.rate_limiter.when(item))

    def forget(self, item: Hashable) -> None:
        """Stop tracking failures of ``item``."""
        self.rate_limiter.forget(item)

    def num_requeues(self, item: Hashable) -> int:
        return self.rate_limiter.num_requeues(item)

    def _promote_due_locked(self) -> float | None:
        """Move due delayed items into the queue; return seconds until the next one."""
        now = self._clock()
        while self._waiting:
            ready_at, _, item = self._waiting[0]
            if self._ready_at.get(item) != ready_at:
                # Superseded by an earlier add_after.
                heapq.heappop(self._waiting)
                continue
            if ready_at > now:
                return ready_at - now
            heapq.heappop(self._waiting)
            del self._ready_at[item]
            self._add_locked(item)
        return None

    def get(self, timeout: float | None = None) -> Hashable | None:
        """Block until an item is available.

        Returns:
            The next item, or None once the queue is shut down (or the
            timeout expires)
        """
        deadline = None if timeout is None else self._clock() + timeout
        with self._cond:
            while True:
                next_delay = self._promote_due_locked()
                if self._queue:
                    item = self._queue.popleft()
                    self._processing.add(item)
                    self._dirty.discard(item)
                    metrics.workqueue_depth.labels(name=self.name).set(len(self._queue))
                    return item
                if self._shutting_down:
                    return None

                wait = next_delay
                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        return None
                    wait = remaining if wait is None else min(wait, remaining)
                self._cond.wait(wait)

    def done(self, item: Hashable) -> None:
        """Mark ``item`` as processed, re-queueing it if it was added meanwhile."""
        with self._cond:
            self._processing.discard(item)
            if item in self._dirty and not self._shutting_down:
                self._queue.append(item)
                metrics.workqueue_depth.labels(name=self.name).set(len(self._queue))
                self._cond.notify()

    def shut_down(self) -> None:
        """Stop accepting items and wake every waiting worker."""
        with self._cond:
            self._shutting_down = True
            self._cond.notify_all()
