"""Management API clients.

Implements the client adapter pattern:
- ManagementClient: Abstract base class defining get / put / delete
- ArmClient: Azure Resource Manager REST adapter (httpx)
- ClientContext: Explicitly passed client + configuration bundle
"""

from arm_convergence.clients.arm import ArmClient
from arm_convergence.clients.base import (
    ClientAuthError,
    ClientError,
    DependencyViolationError,
    ManagementApiError,
    ManagementClient,
    ResourceNotFoundError,
)
from arm_convergence.clients.factory import ClientContext, build_client_context

__all__ = [
    "ArmClient",
    "ClientAuthError",
    "ClientContext",
    "ClientError",
    "DependencyViolationError",
    "ManagementApiError",
    "ManagementClient",
    "ResourceNotFoundError",
    "build_client_context",
]
