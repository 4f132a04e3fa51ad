"""Unified exception taxonomy.

Provides a shared base exception hierarchy for the poller, the
management client and the resource handlers.  Every domain exception
inherits from ``ConvergenceError`` and carries structured context
fields that drive retry decisions inside the poll loop and give
operators enough to diagnose a stuck operation.

Taxonomy categories
-------------------
- ``ValidationError``   — input/contract violations, never retryable.
- ``TransientError``    — temporary failures (network, throttle), retryable.
- ``PermanentError``    — unrecoverable failures, not retryable.
- ``ContractError``     — payload/schema drift (malformed responses), never retryable.

Every exception exposes ``to_error_dict()`` for a stable structured
error payload suitable for orchestration history and logging.
"""

from __future__ import annotations


class ConvergenceError(Exception):
    """Base exception for all convergence-domain errors.

    Attributes:
        message: Human-readable error description.
        stage: Where the error occurred (e.g. ``"poller"``, ``"client"``).
        code: Machine-readable error code (e.g. ``"RESOURCE_NOT_FOUND"``).
        retryable: Whether the poll loop may retry after this error.
        correlation_id: Request/orchestration correlation identifier.
    """

    #: Default stage for subclasses (override via class attribute or kwarg).
    default_stage: str = ""
    #: Default code for subclasses (override via class attribute or kwarg).
    default_code: str = ""

    def __init__(
        self,
        message: str = "",
        *,
        stage: str = "",
        code: str = "",
        retryable: bool = False,
        correlation_id: str = "",
    ) -> None:
        self.message = message
        self.stage = stage or self.default_stage
        self.code = code or self.default_code
        self.retryable = retryable
        self.correlation_id = correlation_id
        super().__init__(message)

    @property
    def category(self) -> str:
        """Return the error category based on concrete class."""
        if isinstance(self, ContractError):
            return "contract"
        if isinstance(self, ValidationError):
            return "validation"
        if isinstance(self, TransientError):
            return "transient"
        if isinstance(self, PermanentError):
            return "permanent"
        return "transient" if self.retryable else "permanent"

    def to_error_dict(self) -> dict[str, object]:
        """Return a structured error payload with stable keys."""
        return {
            "category": self.category,
            "code": self.code,
            "stage": self.stage,
            "message": self.message,
            "retryable": self.retryable,
            "correlation_id": self.correlation_id,
        }

    @classmethod
    def from_error_dict(cls, error: dict[str, object], *, message: str = "") -> ConvergenceError:
        """Rebuild an error from its ``to_error_dict()`` form.

        Activity results cross the Durable Functions history as plain
        dicts; the ``category`` key selects the class so that retry
        classification survives the round trip.  Unknown categories fall
        back to ``ConvergenceError`` with the recorded ``retryable`` flag.
        """
        target = _CATEGORY_CLASSES.get(str(error.get("category", "")), ConvergenceError)
        return target(
            str(error.get("message", "")) or message,
            stage=str(error.get("stage", "")),
            code=str(error.get("code", "")),
            retryable=bool(error.get("retryable", False)),
            correlation_id=str(error.get("correlation_id", "")),
        )


# ---------------------------------------------------------------------------
# Category base classes
# ---------------------------------------------------------------------------


class ValidationError(ConvergenceError):
    """Input or domain-model validation failure. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class TransientError(ConvergenceError):
    """Temporary failure that may succeed on retry."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", True)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class PermanentError(ConvergenceError):
    """Unrecoverable failure. Not retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


class ContractError(ConvergenceError):
    """Payload or schema drift between components. Never retryable."""

    def __init__(self, message: str = "", **kwargs: object) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(message, **kwargs)  # type: ignore[arg-type]


_CATEGORY_CLASSES: dict[str, type[ConvergenceError]] = {
    "validation": ValidationError,
    "transient": TransientError,
    "permanent": PermanentError,
    "contract": ContractError,
}
