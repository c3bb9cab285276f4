"""Utility functions for the LiteLLM Operator."""

from .cache import (
    get_cached_object,
    invalidate_cache,
    make_cache_key,
    set_cached_object,
)
from .conditions import (
    get_condition,
    is_condition_true,
    set_available,
    set_reconcile_error,
    set_reconcile_success,
    set_unavailable,
    update_condition,
)
from .context import (
    get_context_dict,
    get_correlation_id,
    new_correlation_id,
    with_correlation_id,
)
from .events import KopfEventRecorder, emit_event
from .rate_limit import rate_limit_k8s, rate_limit_litellm
from .secrets import get_secret_bytes, read_secret_data

__all__ = [
    "update_condition",
    "get_condition",
    "is_condition_true",
    "set_available",
    "set_unavailable",
    "set_reconcile_success",
    "set_reconcile_error",
    "emit_event",
    "KopfEventRecorder",
    "get_secret_bytes",
    "read_secret_data",
    "get_cached_object",
    "set_cached_object",
    "invalidate_cache",
    "make_cache_key",
    "rate_limit_k8s",
    "rate_limit_litellm",
    "new_correlation_id",
    "get_correlation_id",
    "with_correlation_id",
    "get_context_dict",
]
