"""ManagementClient abstract base class.

Defines the contract every management-API client must implement.  The
poller and the resource handlers talk exclusively to this interface;
they never know which transport is behind it.

Operations:
    1. ``get(resource_id, api_version)``          — read the current representation.
    2. ``put(resource_id, api_version, body)``    — create or update.
    3. ``delete(resource_id, api_version)``       — request deletion.

A missing resource is always reported as ``ResourceNotFoundError``,
never as a generic failure, because the poller classifies absence
differently for create and delete convergence.
"""

from __future__ import annotations

import abc
from typing import Any

from arm_convergence.core.exceptions import ConvergenceError, TransientError


class ManagementClient(abc.ABC):
    """Abstract base class for management API clients.

    Example usage::

        client = ArmClient(endpoint="https://management.azure.com", credential=cred)
        body = client.get(descriptor.id, "2019-07-01")
    """

    @abc.abstractmethod
    def get(self, resource_id: str, api_version: str) -> dict[str, Any]:
        """Return the resource representation.

        Raises:
            ResourceNotFoundError: If the resource does not exist.
            ClientError: On any other API or transport failure.
        """

    @abc.abstractmethod
    def put(self, resource_id: str, api_version: str, body: dict[str, Any]) -> dict[str, Any]:
        """Create or update the resource and return the accepted representation.

        Raises:
            ClientError: On API or transport failure.
        """

    @abc.abstractmethod
    def delete(self, resource_id: str, api_version: str) -> None:
        """Request deletion of the resource.

        Raises:
            ResourceNotFoundError: If the resource is already gone.
            DependencyViolationError: If nested resources still exist.
            ClientError: On any other API or transport failure.
        """

    def close(self) -> None:  # noqa: B027 - optional hook
        """Release transport resources.  No-op unless overridden."""


# ---------------------------------------------------------------------------
# Client exceptions
# ---------------------------------------------------------------------------


class ClientError(ConvergenceError):
    """Base exception for management client errors.

    Attributes:
        resource_id: The resource the failing request addressed.
        status_code: HTTP status code, ``0`` for transport failures.
        message: Human-readable error description.
        retryable: Whether the caller should retry the operation.
    """

    default_stage = "client"
    default_code = "MANAGEMENT_API_ERROR"

    def __init__(
        self,
        resource_id: str,
        message: str,
        *,
        status_code: int = 0,
        retryable: bool = False,
    ) -> None:
        self.resource_id = resource_id
        self.status_code = status_code
        super().__init__(
            message,
            retryable=retryable,
            code=self.default_code,
            stage=self.default_stage,
        )

    def __str__(self) -> str:
        if self.status_code:
            return f"[{self.status_code}] {self.message}"
        return self.message


class ResourceNotFoundError(ClientError):
    """The addressed resource does not exist (HTTP 404)."""

    default_code = "RESOURCE_NOT_FOUND"

    def __init__(self, resource_id: str, message: str = "") -> None:
        super().__init__(
            resource_id,
            message or f"Resource {resource_id!r} was not found",
            status_code=404,
            retryable=False,
        )


class ClientAuthError(ClientError):
    """Authentication or authorisation failure against the management API."""

    default_code = "MANAGEMENT_AUTH_FAILED"

    def __init__(self, resource_id: str, message: str, *, status_code: int = 401) -> None:
        super().__init__(resource_id, message, status_code=status_code, retryable=False)


class ManagementApiError(ClientError):
    """Any other non-success response or transport failure."""


class DependencyViolationError(ClientError, TransientError):
    """Delete rejected because nested resources still exist.

    The service can report this for a parent whose child was deleted a
    moment ago; it clears once the child's cleanup completes, so it is
    always transient.
    """

    default_code = "DEPENDENCY_VIOLATION"

    def __init__(self, resource_id: str, message: str, *, status_code: int = 409) -> None:
        super().__init__(resource_id, message, status_code=status_code, retryable=True)
