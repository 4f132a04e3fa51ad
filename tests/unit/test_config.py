"""Tests for convergence configuration.

Covers:
- Default values
- Loading from environment variables
- Type coercion (string env vars → numeric fields)
- Fail-fast range validation
"""

from __future__ import annotations

import os
from unittest.mock import patch

import pytest

from arm_convergence.core.config import ConfigValidationError, ConvergenceConfig
from arm_convergence.models.status import DependencyRetryPolicy, Operation


class TestConvergenceConfigDefaults:
    """Verify default configuration values."""

    def test_default_endpoint(self) -> None:
        assert ConvergenceConfig().arm_endpoint == "https://management.azure.com"

    def test_default_poll_interval(self) -> None:
        assert ConvergenceConfig().poll_interval_seconds == 10

    def test_default_timeouts(self) -> None:
        cfg = ConvergenceConfig()
        assert cfg.create_timeout_seconds == 1800
        assert cfg.update_timeout_seconds == 1800
        assert cfg.delete_timeout_seconds == 1800
        assert cfg.read_timeout_seconds == 300

    def test_default_thresholds(self) -> None:
        cfg = ConvergenceConfig()
        assert cfg.continuous_target_occurrence == 1
        assert cfg.max_transient_errors == 3

    def test_default_retry_policy(self) -> None:
        assert ConvergenceConfig().dependency_retry_policy is DependencyRetryPolicy.REISSUE_DELETE

    def test_frozen(self) -> None:
        cfg = ConvergenceConfig()
        with pytest.raises(AttributeError):
            cfg.poll_interval_seconds = 1  # type: ignore[misc]


class TestTimeoutFor:
    def test_per_operation(self) -> None:
        cfg = ConvergenceConfig(
            create_timeout_seconds=10, update_timeout_seconds=20, delete_timeout_seconds=30
        )
        assert cfg.timeout_for(Operation.CREATE) == 10
        assert cfg.timeout_for(Operation.UPDATE) == 20
        assert cfg.timeout_for(Operation.DELETE) == 30


class TestConvergenceConfigFromEnv:
    """Verify loading from environment variables."""

    def test_loads_from_environment(self) -> None:
        env = {
            "ARM_ENDPOINT": "https://management.usgovcloudapi.net/",
            "AZURE_SUBSCRIPTION_ID": "sub-123",
            "POLL_INTERVAL_SECONDS": "2.5",
            "CREATE_TIMEOUT_SECONDS": "600",
            "UPDATE_TIMEOUT_SECONDS": "700",
            "DELETE_TIMEOUT_SECONDS": "800",
            "READ_TIMEOUT_SECONDS": "60",
            "CONTINUOUS_TARGET_OCCURRENCE": "4",
            "MAX_TRANSIENT_ERRORS": "0",
            "DEPENDENCY_RETRY_POLICY": " RePoll ",
            "HTTP_TIMEOUT_SECONDS": "15",
        }
        with patch.dict(os.environ, env, clear=False):
            cfg = ConvergenceConfig.from_env()

        assert cfg.arm_endpoint == "https://management.usgovcloudapi.net"
        assert cfg.subscription_id == "sub-123"
        assert cfg.poll_interval_seconds == 2.5
        assert cfg.create_timeout_seconds == 600.0
        assert cfg.update_timeout_seconds == 700.0
        assert cfg.delete_timeout_seconds == 800.0
        assert cfg.read_timeout_seconds == 60.0
        assert cfg.continuous_target_occurrence == 4
        assert cfg.max_transient_errors == 0
        assert cfg.dependency_retry_policy is DependencyRetryPolicy.REPOLL
        assert cfg.http_timeout_seconds == 15.0

    def test_defaults_when_unset(self) -> None:
        with patch.dict(os.environ, {}, clear=True):
            cfg = ConvergenceConfig.from_env()
        assert cfg == ConvergenceConfig(
            poll_interval_seconds=10.0,
            create_timeout_seconds=1800.0,
            update_timeout_seconds=1800.0,
            delete_timeout_seconds=1800.0,
            read_timeout_seconds=300.0,
        )

    def test_unparseable_number_raises_value_error(self) -> None:
        with (
            patch.dict(os.environ, {"POLL_INTERVAL_SECONDS": "abc"}, clear=False),
            pytest.raises(ValueError),
        ):
            ConvergenceConfig.from_env()


class TestConfigValidation:
    """Fail-fast range validation."""

    @pytest.mark.parametrize(
        ("key", "value"),
        [
            ("POLL_INTERVAL_SECONDS", "0"),
            ("CREATE_TIMEOUT_SECONDS", "-1"),
            ("UPDATE_TIMEOUT_SECONDS", "0"),
            ("DELETE_TIMEOUT_SECONDS", "0"),
            ("READ_TIMEOUT_SECONDS", "0"),
            ("HTTP_TIMEOUT_SECONDS", "0"),
            ("CONTINUOUS_TARGET_OCCURRENCE", "0"),
            ("MAX_TRANSIENT_ERRORS", "-1"),
        ],
    )
    def test_out_of_range_rejected(self, key: str, value: str) -> None:
        with (
            patch.dict(os.environ, {key: value}, clear=False),
            pytest.raises(ConfigValidationError) as exc_info,
        ):
            ConvergenceConfig.from_env()
        assert exc_info.value.key == key
        assert exc_info.value.code == "CONFIG_VALIDATION_FAILED"

    def test_unknown_retry_policy_rejected(self) -> None:
        with (
            patch.dict(os.environ, {"DEPENDENCY_RETRY_POLICY": "panic"}, clear=False),
            pytest.raises(ConfigValidationError, match="reissue_delete, repoll"),
        ):
            ConvergenceConfig.from_env()

    def test_empty_endpoint_rejected(self) -> None:
        with (
            patch.dict(os.environ, {"ARM_ENDPOINT": "/"}, clear=False),
            pytest.raises(ConfigValidationError) as exc_info,
        ):
            ConvergenceConfig.from_env()
        assert exc_info.value.key == "ARM_ENDPOINT"

    def test_zero_transient_bound_allowed(self) -> None:
        with patch.dict(os.environ, {"MAX_TRANSIENT_ERRORS": "0"}, clear=False):
            assert ConvergenceConfig.from_env().max_transient_errors == 0
