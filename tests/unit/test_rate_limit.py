"""Tests for API call rate limiting utilities."""

from __future__ import annotations

from unittest.mock import patch

import litellm_operator.utils.rate_limit as rl
from litellm_operator.utils.rate_limit import rate_limit_k8s, rate_limit_litellm


class TestRateLimitK8s:
    """Test cases for Kubernetes API rate limiting."""

    def test_passes_through_result_and_args(self):
        """The decorated function is called with its arguments."""
        @rate_limit_k8s
        def test_func(a, b, c=None):
            return f"{a}-{b}-{c}"

        assert test_func("x", "y", c="z") == "x-y-z"

    @patch("litellm_operator.utils.rate_limit.metrics")
    @patch("litellm_operator.utils.rate_limit.time.sleep")
    def test_sleeps_when_calls_are_too_fast(self, mock_sleep, mock_metrics):
        """A second call inside the minimum interval sleeps for the remainder."""
        with patch("litellm_operator.utils.rate_limit._K8S_RATE_LIMIT_PER_SECOND", 1.0):
            rl._k8s_last_call_time = 0.0

            @rate_limit_k8s
            def test_func():
                return "ok"

            with patch("litellm_operator.utils.rate_limit.time.time", return_value=10.0):
                test_func()
            mock_sleep.assert_not_called()

            with patch("litellm_operator.utils.rate_limit.time.time", return_value=10.25):
                test_func()

        mock_sleep.assert_called_once()
        assert abs(mock_sleep.call_args[0][0] - 0.75) < 1e-6
        mock_metrics.rate_limit_hits_total.labels.assert_called_with(api_type="k8s")

    @patch("litellm_operator.utils.rate_limit.time.sleep")
    def test_no_sleep_after_interval(self, mock_sleep):
        """Calls spaced beyond the interval do not sleep."""
        with patch("litellm_operator.utils.rate_limit._K8S_RATE_LIMIT_PER_SECOND", 2.0):
            rl._k8s_last_call_time = 0.0

            @rate_limit_k8s
            def test_func():
                return "ok"

            with patch("litellm_operator.utils.rate_limit.time.time", return_value=10.0):
                test_func()
            with patch("litellm_operator.utils.rate_limit.time.time", return_value=11.0):
                test_func()

        mock_sleep.assert_not_called()


class TestRateLimitLiteLLM:
    """Test cases for LiteLLM API rate limiting."""

    def test_passes_through_result(self):
        """Test that LiteLLM rate limiting decorator returns the result."""
        @rate_limit_litellm
        def test_func(x, y):
            return x + y

        assert test_func(5, 10) == 15

    @patch("litellm_operator.utils.rate_limit.metrics")
    @patch("litellm_operator.utils.rate_limit.time.sleep")
    def test_limits_independently_of_k8s(self, mock_sleep, mock_metrics):
        """A recent Kubernetes call does not delay a LiteLLM call."""
        with patch("litellm_operator.utils.rate_limit._LITELLM_RATE_LIMIT_PER_SECOND", 1.0):
            rl._litellm_last_call_time = 0.0
            rl._k8s_last_call_time = 10.0

            @rate_limit_litellm
            def test_func():
                return "ok"

            with patch("litellm_operator.utils.rate_limit.time.time", return_value=10.0):
                test_func()

        mock_sleep.assert_not_called()
