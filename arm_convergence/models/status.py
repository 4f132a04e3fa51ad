"""Closed status and operation enums.

The management API reports operation progress as raw strings.  Each
resource kind gets its own ``WireStatus`` enum with an exhaustive
mapping from wire values; an unmapped value raises
``UnrecognizedStatusError`` instead of being treated as pending
forever.

- ``WireStatus``: base for per-kind status enums (``from_wire``)
- ``GatewayStatus``: Service Fabric Mesh resource status
- ``ProvisioningState``: Compute gallery provisioning state
- ``Operation``: the mutating call being converged
- ``DependencyRetryPolicy``: reaction to nested-resource delete conflicts
- ``ConvergenceState``: poller state machine states
"""

from __future__ import annotations

import enum

from arm_convergence.core.exceptions import ContractError


class UnrecognizedStatusError(ContractError):
    """Raised when the API reports a status value the enum does not map.

    Attributes:
        status_type: Name of the status enum that rejected the value.
        raw: The raw wire value.
    """

    default_stage = "status"
    default_code = "UNRECOGNIZED_STATUS"

    def __init__(self, status_type: str, raw: object) -> None:
        self.status_type = status_type
        self.raw = raw
        super().__init__(f"{status_type} does not recognise wire status {raw!r}")


class WireStatus(enum.Enum):
    """Base class for per-resource-kind status enums."""

    @classmethod
    def from_wire(cls, raw: object) -> WireStatus:
        """Map a raw wire value onto a member, failing loudly on unknowns.

        Matching is exact first, then case-insensitive, since some
        API versions lower-case their status strings.

        Raises:
            UnrecognizedStatusError: If *raw* maps to no member.
        """
        if isinstance(raw, str) and raw:
            try:
                return cls(raw)
            except ValueError:
                folded = raw.casefold()
                for member in cls:
                    if str(member.value).casefold() == folded:
                        return member
        raise UnrecognizedStatusError(cls.__name__, raw)


class GatewayStatus(WireStatus):
    """Service Fabric Mesh resource status (``properties.status``)."""

    UNKNOWN = "Unknown"
    READY = "Ready"
    UPGRADING = "Upgrading"
    CREATING = "Creating"
    DELETING = "Deleting"
    FAILED = "Failed"


class ProvisioningState(WireStatus):
    """Compute gallery provisioning state (``properties.provisioningState``)."""

    CREATING = "Creating"
    UPDATING = "Updating"
    FAILED = "Failed"
    SUCCEEDED = "Succeeded"
    DELETING = "Deleting"
    MIGRATING = "Migrating"


class Operation(enum.Enum):
    """The mutating call whose outcome is being converged."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class DependencyRetryPolicy(enum.Enum):
    """Reaction to a dependency-violation error while converging a delete.

    Values:
        REISSUE_DELETE: Re-send the delete request, then keep polling.
        REPOLL:         Keep polling without touching the resource.
    """

    REISSUE_DELETE = "reissue_delete"
    REPOLL = "repoll"


class ConvergenceState(enum.Enum):
    """States of the convergence state machine.

    ``POLLING`` is the only non-terminal state.
    """

    POLLING = "polling"
    CONVERGED = "converged"
    TIMED_OUT = "timed_out"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not ConvergenceState.POLLING
