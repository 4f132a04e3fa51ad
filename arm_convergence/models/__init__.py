"""Data models and schemas.

Defines the data structures used throughout the toolkit:
- ResourceDescriptor: Parsed ARM resource ID
- WireStatus: Closed status enums per resource kind
- GatewaySpec / SharedImageSpec: Declared resource state
- Payload TypedDicts: Durable Functions activity contracts
"""

from arm_convergence.models.resource_id import (
    ResourceDescriptor,
    ResourceIdError,
    parse_resource_id,
)
from arm_convergence.models.status import (
    ConvergenceState,
    DependencyRetryPolicy,
    GatewayStatus,
    Operation,
    ProvisioningState,
    UnrecognizedStatusError,
    WireStatus,
)

__all__ = [
    "ResourceDescriptor",
    "ResourceIdError",
    "parse_resource_id",
    "ConvergenceState",
    "DependencyRetryPolicy",
    "GatewayStatus",
    "Operation",
    "ProvisioningState",
    "UnrecognizedStatusError",
    "WireStatus",
]
