"""Resource-kind registry — resolves a kind name to its ``ResourceKind``.

The registry maps names to lazy loaders so that a Durable Functions
activity can read the status of any supported kind from a plain string
in its payload.  It holds static type descriptions only; clients are
always passed explicitly through a ``ClientContext``.

Usage::

    from arm_convergence.resources.registry import get_resource_kind

    kind = get_resource_kind("shared_image")
    status = kind.fetcher(ctx.client, kind.parse_id(resource_id))()
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from arm_convergence.core.exceptions import ValidationError

if TYPE_CHECKING:
    from collections.abc import Callable

    from arm_convergence.resources.base import ResourceKind

logger = logging.getLogger(__name__)

SERVICE_FABRIC_MESH_GATEWAY = "service_fabric_mesh_gateway"
SHARED_IMAGE = "shared_image"

_KIND_REGISTRY: dict[str, Callable[[], ResourceKind]] = {}


class UnknownResourceKindError(ValidationError):
    """Raised when a kind name is not registered."""

    default_stage = "registry"
    default_code = "UNKNOWN_RESOURCE_KIND"


def _register_builtin_kinds() -> None:
    def _gateway() -> ResourceKind:
        from arm_convergence.resources.gateway import KIND

        return KIND

    def _shared_image() -> ResourceKind:
        from arm_convergence.resources.shared_image import KIND

        return KIND

    _KIND_REGISTRY[SERVICE_FABRIC_MESH_GATEWAY] = _gateway
    _KIND_REGISTRY[SHARED_IMAGE] = _shared_image


def _ensure_registry() -> None:
    if not _KIND_REGISTRY:
        _register_builtin_kinds()


def register_resource_kind(name: str, loader: Callable[[], ResourceKind]) -> None:
    """Register an additional resource kind.

    Raises:
        ValueError: If the name is empty.
    """
    if not name:
        msg = "Resource kind name must be non-empty"
        raise ValueError(msg)
    _ensure_registry()
    _KIND_REGISTRY[name] = loader
    logger.debug("Registered resource kind: %s", name)


def get_resource_kind(name: str) -> ResourceKind:
    """Return the ``ResourceKind`` registered under *name*.

    Raises:
        UnknownResourceKindError: If *name* is not registered.
    """
    _ensure_registry()
    loader = _KIND_REGISTRY.get(name)
    if loader is None:
        available = ", ".join(sorted(_KIND_REGISTRY))
        msg = f"Unknown resource kind: {name!r}. Available: {available}"
        raise UnknownResourceKindError(msg)
    return loader()


def list_resource_kinds() -> list[str]:
    """Return the names of all registered resource kinds."""
    _ensure_registry()
    return sorted(_KIND_REGISTRY)
