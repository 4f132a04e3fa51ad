"""Pydantic schema for a Service Fabric Mesh gateway.

``GatewaySpec`` is the declared state; ``expand_gateway`` turns it into
the ARM request body and ``flatten_gateway`` turns an ARM response back
into a ``GatewaySpec``.

The source network is addressed by *name* (``Open`` or ``Other``), the
destination network by full resource *ID*; on the wire both travel in
a ``NetworkRef.name`` field.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from arm_convergence.core.exceptions import ContractError
from arm_convergence.models.resource_id import ResourceIdError, parse_resource_id
from arm_convergence.utils.helpers import expand_tags, flatten_tags, normalize_location


class SourceNetwork(BaseModel):
    """Network the gateway accepts traffic from."""

    name: Literal["Open", "Other"]
    endpoint_references: list[str] = Field(default_factory=list)

    @field_validator("endpoint_references")
    @classmethod
    def _non_empty_refs(cls, value: list[str]) -> list[str]:
        return _validate_endpoint_refs(value)


class DestinationNetwork(BaseModel):
    """Network the gateway forwards traffic to."""

    id: str
    endpoint_references: list[str] = Field(default_factory=list)

    @field_validator("id")
    @classmethod
    def _valid_resource_id(cls, value: str) -> str:
        try:
            parse_resource_id(value)
        except ResourceIdError as exc:
            raise ValueError(exc.message) from exc
        return value

    @field_validator("endpoint_references")
    @classmethod
    def _non_empty_refs(cls, value: list[str]) -> list[str]:
        return _validate_endpoint_refs(value)


class GatewaySpec(BaseModel):
    """Declared state of a Service Fabric Mesh gateway."""

    name: str = Field(min_length=1)
    resource_group_name: str = Field(min_length=1)
    location: str
    source_network: SourceNetwork
    destination_network: DestinationNetwork
    description: str | None = None
    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("location")
    @classmethod
    def _normalize_location(cls, value: str) -> str:
        normalized = normalize_location(value)
        if not normalized:
            msg = "location must not be empty"
            raise ValueError(msg)
        return normalized

    @field_validator("description")
    @classmethod
    def _non_empty_description(cls, value: str | None) -> str | None:
        if value is not None and not value.strip():
            msg = "description must not be empty when set"
            raise ValueError(msg)
        return value


def _validate_endpoint_refs(value: list[str]) -> list[str]:
    if any(not ref.strip() for ref in value):
        msg = "endpoint_references must not contain empty names"
        raise ValueError(msg)
    # declared as a set: order is irrelevant, duplicates collapse
    return sorted(set(value))


# ---------------------------------------------------------------------------
# Expand / flatten
# ---------------------------------------------------------------------------


def _expand_network_ref(name: str, endpoint_references: list[str]) -> dict[str, Any]:
    return {
        "name": name,
        "endpointRefs": [{"name": ref} for ref in endpoint_references],
    }


def expand_gateway(spec: GatewaySpec) -> dict[str, Any]:
    """Build the ARM request body for *spec*."""
    properties: dict[str, Any] = {
        "sourceNetwork": _expand_network_ref(
            spec.source_network.name, spec.source_network.endpoint_references
        ),
        "destinationNetwork": _expand_network_ref(
            spec.destination_network.id, spec.destination_network.endpoint_references
        ),
    }
    if spec.description is not None:
        properties["description"] = spec.description
    return {
        "location": spec.location,
        "tags": expand_tags(spec.tags),
        "properties": properties,
    }


def _flatten_endpoint_refs(network: dict[str, Any]) -> list[str]:
    refs = network.get("endpointRefs") or []
    return [str(ref["name"]) for ref in refs if isinstance(ref, dict) and ref.get("name")]


def flatten_gateway(body: dict[str, Any], *, name: str, resource_group: str) -> GatewaySpec:
    """Rebuild declared state from an ARM response body.

    Raises:
        ContractError: If the body lacks fields the declared state requires.
    """
    props: dict[str, Any] = body.get("properties") or {}
    source: dict[str, Any] = props.get("sourceNetwork") or {}
    destination: dict[str, Any] = props.get("destinationNetwork") or {}
    try:
        return GatewaySpec(
            name=str(body.get("name") or name),
            resource_group_name=resource_group,
            location=str(body.get("location") or ""),
            source_network=SourceNetwork(
                name=source.get("name", ""),
                endpoint_references=_flatten_endpoint_refs(source),
            ),
            destination_network=DestinationNetwork(
                id=str(destination.get("name", "")),
                endpoint_references=_flatten_endpoint_refs(destination),
            ),
            description=props.get("description") or None,
            tags=flatten_tags(body.get("tags")),
        )
    except ValidationError as exc:
        msg = f"Gateway {name!r} response cannot be flattened: {exc}"
        raise ContractError(msg, stage="gateway", code="MALFORMED_RESPONSE") from exc
