"""Resource handlers.

Each handler module exposes ``create_or_update``, ``read`` and
``delete`` over a ``ClientContext`` plus a ``KIND`` describing how its
status converges:
- gateway: Service Fabric Mesh gateway
- shared_image: Compute gallery image definition
"""

from arm_convergence.resources.base import ImportAsExistsError, ResourceKind
from arm_convergence.resources.registry import (
    SERVICE_FABRIC_MESH_GATEWAY,
    SHARED_IMAGE,
    UnknownResourceKindError,
    get_resource_kind,
    list_resource_kinds,
    register_resource_kind,
)

__all__ = [
    "SERVICE_FABRIC_MESH_GATEWAY",
    "SHARED_IMAGE",
    "ImportAsExistsError",
    "ResourceKind",
    "UnknownResourceKindError",
    "get_resource_kind",
    "list_resource_kinds",
    "register_resource_kind",
]
