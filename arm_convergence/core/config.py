"""Convergence configuration loaded from environment variables.

All configuration values have defaults matching the management API's
usual operation windows.  Azure Functions app settings (or
``local.settings.json`` for local dev) are the source of truth.

Fail-fast validation:
    ``from_env()`` raises ``ConfigValidationError`` if any numeric
    value is out of its valid range or the dependency retry policy is
    unknown, so bad configuration is caught at startup instead of in
    the middle of a half-finished delete.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from arm_convergence.core.constants import (
    DEFAULT_ARM_ENDPOINT,
    DEFAULT_CONTINUOUS_TARGET_OCCURRENCE,
    DEFAULT_CREATE_TIMEOUT_SECONDS,
    DEFAULT_DELETE_TIMEOUT_SECONDS,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_MAX_TRANSIENT_ERRORS,
    DEFAULT_POLL_INTERVAL_SECONDS,
    DEFAULT_READ_TIMEOUT_SECONDS,
    DEFAULT_UPDATE_TIMEOUT_SECONDS,
)
from arm_convergence.core.exceptions import ConvergenceError
from arm_convergence.models.status import DependencyRetryPolicy, Operation


class ConfigValidationError(ConvergenceError):
    """Raised when configuration values are out of valid range.

    Attributes:
        key: The configuration key that failed validation.
        value: The invalid value.
        message: Human-readable description of the valid range.
    """

    default_stage = "config"
    default_code = "CONFIG_VALIDATION_FAILED"

    def __init__(self, key: str, value: object, message: str) -> None:
        self.key = key
        self.value = value
        super().__init__(f"Invalid configuration {key}={value!r}: {message}")


@dataclass(frozen=True, slots=True)
class ConvergenceConfig:
    """Immutable convergence configuration.

    Loaded once at startup and threaded through every handler inside a
    ``ClientContext``.

    Attributes:
        arm_endpoint: Base URL of the Azure Resource Manager API.
        subscription_id: Default subscription for resources declared by name.
        poll_interval_seconds: Minimum delay between status reads.
        create_timeout_seconds: Overall budget for create convergence.
        update_timeout_seconds: Overall budget for update convergence.
        delete_timeout_seconds: Overall budget for delete convergence.
        read_timeout_seconds: Budget for a plain read.
        continuous_target_occurrence: Consecutive target reads required.
        max_transient_errors: Consecutive transient errors tolerated
            (``0`` means only the timeout bounds retries).
        dependency_retry_policy: What to do when a delete poll reports a
            nested-resource dependency violation.
        http_timeout_seconds: Per-request timeout for the management client.
    """

    arm_endpoint: str = DEFAULT_ARM_ENDPOINT
    subscription_id: str = ""
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    create_timeout_seconds: float = DEFAULT_CREATE_TIMEOUT_SECONDS
    update_timeout_seconds: float = DEFAULT_UPDATE_TIMEOUT_SECONDS
    delete_timeout_seconds: float = DEFAULT_DELETE_TIMEOUT_SECONDS
    read_timeout_seconds: float = DEFAULT_READ_TIMEOUT_SECONDS
    continuous_target_occurrence: int = DEFAULT_CONTINUOUS_TARGET_OCCURRENCE
    max_transient_errors: int = DEFAULT_MAX_TRANSIENT_ERRORS
    dependency_retry_policy: DependencyRetryPolicy = DependencyRetryPolicy.REISSUE_DELETE
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS

    def timeout_for(self, operation: Operation) -> float:
        """Return the overall convergence budget for *operation*."""
        if operation is Operation.CREATE:
            return self.create_timeout_seconds
        if operation is Operation.UPDATE:
            return self.update_timeout_seconds
        return self.delete_timeout_seconds

    @classmethod
    def from_env(cls) -> ConvergenceConfig:
        """Load and validate configuration from environment variables.

        Raises:
            ConfigValidationError: If a numeric value is out of range,
                the endpoint is empty, or the retry policy is unknown.
            ValueError: If a numeric environment variable cannot be
                parsed (e.g. ``POLL_INTERVAL_SECONDS=abc``).
        """
        raw_policy = os.getenv(
            "DEPENDENCY_RETRY_POLICY", DependencyRetryPolicy.REISSUE_DELETE.value
        )
        try:
            policy = DependencyRetryPolicy(raw_policy.strip().lower())
        except ValueError:
            allowed = ", ".join(p.value for p in DependencyRetryPolicy)
            raise ConfigValidationError(
                "DEPENDENCY_RETRY_POLICY", raw_policy, f"must be one of: {allowed}"
            ) from None

        config = cls(
            arm_endpoint=os.getenv("ARM_ENDPOINT", DEFAULT_ARM_ENDPOINT).rstrip("/"),
            subscription_id=os.getenv("AZURE_SUBSCRIPTION_ID", ""),
            poll_interval_seconds=float(
                os.getenv("POLL_INTERVAL_SECONDS", str(DEFAULT_POLL_INTERVAL_SECONDS))
            ),
            create_timeout_seconds=float(
                os.getenv("CREATE_TIMEOUT_SECONDS", str(DEFAULT_CREATE_TIMEOUT_SECONDS))
            ),
            update_timeout_seconds=float(
                os.getenv("UPDATE_TIMEOUT_SECONDS", str(DEFAULT_UPDATE_TIMEOUT_SECONDS))
            ),
            delete_timeout_seconds=float(
                os.getenv("DELETE_TIMEOUT_SECONDS", str(DEFAULT_DELETE_TIMEOUT_SECONDS))
            ),
            read_timeout_seconds=float(
                os.getenv("READ_TIMEOUT_SECONDS", str(DEFAULT_READ_TIMEOUT_SECONDS))
            ),
            continuous_target_occurrence=int(
                os.getenv(
                    "CONTINUOUS_TARGET_OCCURRENCE", str(DEFAULT_CONTINUOUS_TARGET_OCCURRENCE)
                )
            ),
            max_transient_errors=int(
                os.getenv("MAX_TRANSIENT_ERRORS", str(DEFAULT_MAX_TRANSIENT_ERRORS))
            ),
            dependency_retry_policy=policy,
            http_timeout_seconds=float(
                os.getenv("HTTP_TIMEOUT_SECONDS", str(DEFAULT_HTTP_TIMEOUT_SECONDS))
            ),
        )
        _validate(config)
        return config


def _validate(config: ConvergenceConfig) -> None:
    """Validate configuration ranges.  Raises ``ConfigValidationError``."""
    if not config.arm_endpoint:
        raise ConfigValidationError("ARM_ENDPOINT", config.arm_endpoint, "must not be empty")

    if config.poll_interval_seconds <= 0:
        raise ConfigValidationError(
            "POLL_INTERVAL_SECONDS",
            config.poll_interval_seconds,
            "must be > 0 (seconds)",
        )

    for key, value in (
        ("CREATE_TIMEOUT_SECONDS", config.create_timeout_seconds),
        ("UPDATE_TIMEOUT_SECONDS", config.update_timeout_seconds),
        ("DELETE_TIMEOUT_SECONDS", config.delete_timeout_seconds),
        ("READ_TIMEOUT_SECONDS", config.read_timeout_seconds),
        ("HTTP_TIMEOUT_SECONDS", config.http_timeout_seconds),
    ):
        if value <= 0:
            raise ConfigValidationError(key, value, "must be > 0 (seconds)")

    if config.continuous_target_occurrence < 1:
        raise ConfigValidationError(
            "CONTINUOUS_TARGET_OCCURRENCE",
            config.continuous_target_occurrence,
            "must be >= 1",
        )

    if config.max_transient_errors < 0:
        raise ConfigValidationError(
            "MAX_TRANSIENT_ERRORS",
            config.max_transient_errors,
            "must be >= 0 (0 disables the bound)",
        )
