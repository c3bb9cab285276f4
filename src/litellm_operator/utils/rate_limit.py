"""Client-side rate limiting for outgoing API calls.

These throttles bound the rate of individual HTTP calls. They are additive to
the reconcile rate limiter of the work queue, which bounds how often
reconciliations start.
"""

from __future__ import annotations

import os
import threading
import time
from functools import wraps
from typing import Any, Callable, TypeVar

from .. import metrics

_F = TypeVar("_F", bound=Callable[..., Any])

# Rate limit configuration
_K8S_RATE_LIMIT_PER_SECOND = float(os.getenv("K8S_RATE_LIMIT_PER_SECOND", "10.0"))
_LITELLM_RATE_LIMIT_PER_SECOND = float(os.getenv("LITELLM_RATE_LIMIT_PER_SECOND", "5.0"))

# Track last call times
_k8s_last_call_time: float = 0.0
_litellm_last_call_time: float = 0.0
_k8s_lock = threading.Lock()
_litellm_lock = threading.Lock()


def rate_limit_k8s(func: _F) -> _F:
    """Decorator to rate limit Kubernetes API calls.

    Enforces a minimum interval between calls across all worker threads.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        global _k8s_last_call_time
        with _k8s_lock:
            min_interval = 1.0 / _K8S_RATE_LIMIT_PER_SECOND
            time_since_last_call = time.time() - _k8s_last_call_time
            if time_since_last_call < min_interval:
                metrics.rate_limit_hits_total.labels(api_type="k8s").inc()
                time.sleep(min_interval - time_since_last_call)
            _k8s_last_call_time = time.time()
        return func(*args, **kwargs)

    return wrapper  # type: ignore


def rate_limit_litellm(func: _F) -> _F:
    """Decorator to rate limit LiteLLM API calls.

    Enforces a minimum interval between calls across all worker threads.
    """
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        global _litellm_last_call_time
        with _litellm_lock:
            min_interval = 1.0 / _LITELLM_RATE_LIMIT_PER_SECOND
            time_since_last_call = time.time() - _litellm_last_call_time
            if time_since_last_call < min_interval:
                metrics.rate_limit_hits_total.labels(api_type="litellm").inc()
                time.sleep(min_interval - time_since_last_call)
            _litellm_last_call_time = time.time()
        return func(*args, **kwargs)

    return wrapper  # type: ignore
