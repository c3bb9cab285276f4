"""
Configuration for the LiteLLM Operator.

Loaded from environment variables at start-up; CLI flags may override
individual fields.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass
class OperatorConfig:
    """Reconciliation, scheduling and serving configuration."""

    poll_interval: float = 60.0
    max_concurrent_reconciles: int = 4

    # Process-wide reconcile rate limit (token bucket)
    max_reconcile_rate: float = 10.0
    reconcile_burst: int = 100

    # Per-record exponential backoff
    min_retry_delay: float = 1.0
    max_retry_delay: float = 60.0

    reconcile_timeout: float = 60.0
    creation_grace_period: float = 30.0
    provider_config_check_interval: float = 60.0

    connection_secret_namespace: str = "default"
    request_timeout: float = 30.0

    metrics_port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "OperatorConfig":
        """Load from environment variables."""
        return cls(
            poll_interval=float(os.getenv("POLL_INTERVAL_SECONDS", "60")),
            max_concurrent_reconciles=int(os.getenv("MAX_CONCURRENT_RECONCILES", "4")),
            max_reconcile_rate=float(os.getenv("MAX_RECONCILE_RATE", "10")),
            reconcile_burst=int(os.getenv("RECONCILE_BURST", "100")),
            min_retry_delay=float(os.getenv("MIN_RETRY_DELAY", "1")),
            max_retry_delay=float(os.getenv("MAX_RETRY_DELAY", "60")),
            reconcile_timeout=float(os.getenv("RECONCILE_TIMEOUT_SECONDS", "60")),
            creation_grace_period=float(os.getenv("CREATION_GRACE_PERIOD_SECONDS", "30")),
            provider_config_check_interval=float(
                os.getenv("PROVIDER_CONFIG_CHECK_INTERVAL_SECONDS", "60")
            ),
            connection_secret_namespace=os.getenv("CONNECTION_SECRET_NAMESPACE", "default"),
            request_timeout=float(os.getenv("LITELLM_REQUEST_TIMEOUT_SECONDS", "30")),
            metrics_port=int(os.getenv("METRICS_PORT", "8080")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> None:
        """Reject settings the scheduler cannot work with.

        Raises:
            ValueError: If a setting is out of range
        """
        if self.poll_interval <= 0:
            raise ValueError("POLL_INTERVAL_SECONDS must be positive")
        if self.max_concurrent_reconciles < 1:
            raise ValueError("MAX_CONCURRENT_RECONCILES must be at least 1")
        if self.max_reconcile_rate <= 0:
            raise ValueError("MAX_RECONCILE_RATE must be positive")
        if self.min_retry_delay <= 0 or self.max_retry_delay < self.min_retry_delay:
            raise ValueError("retry delays must satisfy 0 < MIN_RETRY_DELAY <= MAX_RETRY_DELAY")
        if self.reconcile_timeout <= 0:
            raise ValueError("RECONCILE_TIMEOUT_SECONDS must be positive")
