"""Tests for rate limiting utilities."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from kubernetes.client.exceptions import ApiException

import appsync_operator.utils.rate_limit as rl
from appsync_operator.utils.rate_limit import configure_k8s_rate_limit, is_rate_limit_error, rate_limit_k8s


class TestRateLimitK8s:
    """Test cases for Kubernetes API rate limiting."""

    def test_rate_limit_k8s_with_args(self):
        """Test rate limiting with function arguments."""
        @rate_limit_k8s
        def test_func(a, b, c=None):
            return f"{a}-{b}-{c}"

        assert test_func("x", "y", c="z") == "x-y-z"

    @patch("appsync_operator.utils.rate_limit.time.sleep")
    def test_rate_limit_k8s_sleeps_when_needed(self, mock_sleep):
        """Test that rate limiter sleeps when calls are too fast."""
        with patch("appsync_operator.utils.rate_limit._K8S_RATE_LIMIT_PER_SECOND", 1.0):
            rl._k8s_last_call_time = 0.0

            @rate_limit_k8s
            def test_func():
                return "ok"

            with patch("appsync_operator.utils.rate_limit.time.time", return_value=10.0):
                test_func()
            mock_sleep.assert_not_called()

            with patch("appsync_operator.utils.rate_limit.time.time", return_value=10.25):
                test_func()

        mock_sleep.assert_called_once()
        assert abs(mock_sleep.call_args[0][0] - 0.75) < 1e-9


class TestConfigureK8sRateLimit:
    """Test cases for setting the API rate limit."""

    def test_sets_rate(self):
        """Test that the configured rate drives the decorator."""
        with patch("appsync_operator.utils.rate_limit._K8S_RATE_LIMIT_PER_SECOND", 10.0):
            configure_k8s_rate_limit(4.0)

            assert rl._K8S_RATE_LIMIT_PER_SECOND == 4.0

    def test_rejects_non_positive(self):
        """Test that a non-positive rate is rejected."""
        with pytest.raises(ValueError):
            configure_k8s_rate_limit(0)


class TestIsRateLimitError:
    """Test cases for recognizing rate limit rejections."""

    def test_429(self):
        """Test that 429 is a rate limit error."""
        assert is_rate_limit_error(ApiException(status=429, reason="Too Many Requests"))

    def test_503_with_rate_limit(self):
        """Test that a 503 mentioning rate limits is a rate limit error."""
        assert is_rate_limit_error(ApiException(status=503, reason="Service Unavailable: rate limit exceeded"))

    def test_503_without_rate_limit(self):
        """Test that a plain 503 is not a rate limit error."""
        assert not is_rate_limit_error(ApiException(status=503, reason="Service Unavailable"))

    def test_non_api_exception(self):
        """Test that other exceptions are not rate limit errors."""
        assert not is_rate_limit_error(ValueError("429"))
