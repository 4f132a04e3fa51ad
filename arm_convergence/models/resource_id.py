"""Azure resource identifiers.

``ResourceDescriptor`` is the immutable composite key that addresses a
remotely managed object for every read, update, delete and status poll:
subscription, resource group, provider namespace and the ordered
``(type, name)`` segments below the provider (e.g. gallery then image).

``parse_resource_id`` splits a raw ARM ID into its parts; the typed
parsers (``gateway_id``, ``shared_image_id``, ``load_balancer_id``) pop
the segments they expect and reject anything left over.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from arm_convergence.core.exceptions import ValidationError

GATEWAY_PROVIDER = "Microsoft.ServiceFabricMesh"
COMPUTE_PROVIDER = "Microsoft.Compute"
NETWORK_PROVIDER = "Microsoft.Network"


class ResourceIdError(ValidationError):
    """Raised when a resource ID cannot be parsed or is missing segments.

    Attributes:
        resource_id: The offending input.
    """

    default_stage = "resource_id"
    default_code = "INVALID_RESOURCE_ID"

    def __init__(self, resource_id: str, message: str) -> None:
        self.resource_id = resource_id
        super().__init__(f"Unable to parse resource ID {resource_id!r}: {message}")


@dataclass(frozen=True, slots=True)
class ResourceDescriptor:
    """Identity of a single remotely managed resource.

    Attributes:
        subscription_id: Subscription scope.
        resource_group: Resource group (namespace) name.
        provider: Resource provider namespace (e.g. ``"Microsoft.Compute"``).
        segments: Ordered ``(type, name)`` pairs below the provider, the
            last pair being the leaf resource.
    """

    subscription_id: str
    resource_group: str
    provider: str
    segments: tuple[tuple[str, str], ...]

    def __post_init__(self) -> None:
        if not self.segments:
            msg = "descriptor needs at least one (type, name) segment"
            raise ResourceIdError("", msg)
        for key, value in self.segments:
            if not key or not value:
                raise ResourceIdError(self.id, f"segment {key!r} has an empty name")

    @classmethod
    def build(
        cls,
        subscription_id: str,
        resource_group: str,
        provider: str,
        *segments: tuple[str, str],
    ) -> ResourceDescriptor:
        return cls(subscription_id, resource_group, provider, tuple(segments))

    @property
    def name(self) -> str:
        """Leaf resource name."""
        return self.segments[-1][1]

    @property
    def parent_name(self) -> str:
        """Name of the parent collection (gallery, cluster), or ``""``."""
        return self.segments[-2][1] if len(self.segments) > 1 else ""

    @property
    def id(self) -> str:
        """Render the canonical ARM resource ID."""
        path = "/".join(f"{key}/{value}" for key, value in self.segments)
        return (
            f"/subscriptions/{self.subscription_id}"
            f"/resourceGroups/{self.resource_group}"
            f"/providers/{self.provider}/{path}"
        )

    def __str__(self) -> str:
        label = f"{self.name!r}"
        if self.parent_name:
            label += f" ({self.segments[-2][0]} {self.parent_name!r}"
            label += f" / Resource Group {self.resource_group!r})"
        else:
            label += f" (Resource Group {self.resource_group!r})"
        return label


@dataclass(slots=True)
class ParsedResourceId:
    """Mutable result of ``parse_resource_id`` used by the typed parsers.

    ``path`` preserves the order of segments as they appeared in the ID.
    """

    raw: str
    subscription_id: str
    resource_group: str
    provider: str
    path: dict[str, str] = field(default_factory=dict)
    _popped: list[tuple[str, str]] = field(default_factory=list)

    def pop_segment(self, key: str) -> str:
        """Remove and return the value for *key* from the path.

        Raises:
            ResourceIdError: If *key* is absent or has an empty value.
        """
        value = self.path.pop(key, "")
        if not value:
            raise ResourceIdError(self.raw, f"ID was missing the `{key}` element")
        self._popped.append((key, value))
        return value

    def validate_no_empty_segments(self) -> None:
        """Reject IDs that still have unconsumed path segments."""
        if self.path:
            leftover = ", ".join(sorted(self.path))
            raise ResourceIdError(self.raw, f"unexpected segment(s): {leftover}")

    def to_descriptor(self) -> ResourceDescriptor:
        """Freeze the popped segments into a ``ResourceDescriptor``."""
        return ResourceDescriptor(
            self.subscription_id,
            self.resource_group,
            self.provider,
            tuple(self._popped),
        )


def parse_resource_id(resource_id: str) -> ParsedResourceId:
    """Split an ARM resource ID into subscription, group, provider and path.

    Raises:
        ResourceIdError: If the ID has an odd number of segments or lacks
            a subscription or resource group.
    """
    trimmed = resource_id.strip("/")
    if not trimmed:
        raise ResourceIdError(resource_id, "ID is empty")

    components = trimmed.split("/")
    if len(components) % 2 != 0:
        raise ResourceIdError(resource_id, "the number of path segments is not divisible by 2")

    subscription_id = ""
    resource_group = ""
    provider = ""
    path: dict[str, str] = {}

    for i in range(0, len(components), 2):
        key, value = components[i], components[i + 1]
        if not key or not value:
            raise ResourceIdError(resource_id, f"key/value pair {key!r}/{value!r} is empty")
        lowered = key.lower()
        if lowered == "subscriptions" and not subscription_id:
            subscription_id = value
        elif lowered == "resourcegroups" and not resource_group:
            resource_group = value
        elif lowered == "providers" and not provider:
            provider = value
        else:
            path[key] = value

    if not subscription_id:
        raise ResourceIdError(resource_id, "no subscription ID found")
    if not resource_group:
        raise ResourceIdError(resource_id, "no resource group name found")

    return ParsedResourceId(
        raw=resource_id,
        subscription_id=subscription_id,
        resource_group=resource_group,
        provider=provider,
        path=path,
    )


# ---------------------------------------------------------------------------
# Typed parsers
# ---------------------------------------------------------------------------


def gateway_id(resource_id: str) -> ResourceDescriptor:
    """Parse a Service Fabric Mesh gateway ID."""
    parsed = parse_resource_id(resource_id)
    parsed.pop_segment("gateways")
    parsed.validate_no_empty_segments()
    return parsed.to_descriptor()


def shared_image_id(resource_id: str) -> ResourceDescriptor:
    """Parse a Shared Image ID (``galleries/{g}/images/{name}``)."""
    parsed = parse_resource_id(resource_id)
    parsed.pop_segment("galleries")
    parsed.pop_segment("images")
    parsed.validate_no_empty_segments()
    return parsed.to_descriptor()


def load_balancer_id(resource_id: str) -> ResourceDescriptor:
    """Parse a Load Balancer ID."""
    parsed = parse_resource_id(resource_id)
    parsed.pop_segment("loadBalancers")
    parsed.validate_no_empty_segments()
    return parsed.to_descriptor()


def new_gateway_id(subscription_id: str, resource_group: str, name: str) -> ResourceDescriptor:
    return ResourceDescriptor.build(
        subscription_id, resource_group, GATEWAY_PROVIDER, ("gateways", name)
    )


def new_shared_image_id(
    subscription_id: str, resource_group: str, gallery_name: str, name: str
) -> ResourceDescriptor:
    return ResourceDescriptor.build(
        subscription_id,
        resource_group,
        COMPUTE_PROVIDER,
        ("galleries", gallery_name),
        ("images", name),
    )


def new_load_balancer_id(
    subscription_id: str, resource_group: str, name: str
) -> ResourceDescriptor:
    return ResourceDescriptor.build(
        subscription_id, resource_group, NETWORK_PROVIDER, ("loadBalancers", name)
    )
