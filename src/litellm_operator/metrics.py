"""Prometheus metrics for the LiteLLM Operator."""

from prometheus_client import Counter, Gauge, Histogram

# Reconciliation metrics
reconcile_total = Counter(
    "litellm_operator_reconcile_total",
    "Total number of reconciliations",
    ["kind", "result"],
)

reconcile_duration_seconds = Histogram(
    "litellm_operator_reconcile_duration_seconds",
    "Duration of reconciliations in seconds",
    ["kind"],
    buckets=[0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0],
)

error_total = Counter(
    "litellm_operator_error_total",
    "Total number of classified reconciliation errors",
    ["kind", "error_type"],
)

resource_status_total = Counter(
    "litellm_operator_resource_status_total",
    "Resource status transitions observed at the end of a reconciliation",
    ["kind", "status"],
)

# External resource operation metrics
external_operations_total = Counter(
    "litellm_operator_external_operations_total",
    "Total number of external resource operations",
    ["kind", "operation", "result"],
)

# API call metrics
api_call_total = Counter(
    "litellm_operator_api_call_total",
    "Total number of API calls",
    ["api_type", "operation", "result"],
)

api_call_duration_seconds = Histogram(
    "litellm_operator_api_call_duration_seconds",
    "Duration of API calls in seconds",
    ["api_type", "operation"],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.5, 5.0],
)

rate_limit_hits_total = Counter(
    "litellm_operator_rate_limit_hits_total",
    "Total number of rate limit hits",
    ["api_type"],
)

# Connection details metrics
connection_secret_operations_total = Counter(
    "litellm_operator_connection_secret_operations_total",
    "Connection secret publish/unpublish operations",
    ["operation", "result"],
)

# ProviderConfig metrics
provider_config_users = Gauge(
    "litellm_operator_provider_config_users",
    "Number of managed resources using a ProviderConfig",
    ["provider_config"],
)

# Work queue metrics
workqueue_depth = Gauge(
    "litellm_operator_workqueue_depth",
    "Number of keys waiting in the work queue",
    ["name"],
)

workqueue_adds_total = Counter(
    "litellm_operator_workqueue_adds_total",
    "Total number of keys added to the work queue",
    ["name"],
)

workqueue_retries_total = Counter(
    "litellm_operator_workqueue_retries_total",
    "Total number of rate-limited re-adds",
    ["name"],
)
