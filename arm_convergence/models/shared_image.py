"""Pydantic schema for a Shared Image (gallery image definition).

``SharedImageSpec`` is the declared state; ``expand_shared_image`` and
``flatten_shared_image`` translate to and from the ARM body.  Images are
always registered as ``Generalized``.
"""

from __future__ import annotations

import re
from typing import Any, Literal

from pydantic import BaseModel, Field, ValidationError, field_validator

from arm_convergence.core.exceptions import ContractError
from arm_convergence.utils.helpers import expand_tags, flatten_tags, normalize_location

_IMAGE_NAME_RE = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9._-]{0,78}[A-Za-z0-9])?$")
_GALLERY_NAME_RE = re.compile(r"^[A-Za-z0-9]([A-Za-z0-9._]{0,78}[A-Za-z0-9])?$")

OS_STATE_GENERALIZED = "Generalized"


class ImageIdentifier(BaseModel):
    """Publisher / offer / SKU triple identifying the image definition."""

    publisher: str = Field(min_length=1)
    offer: str = Field(min_length=1)
    sku: str = Field(min_length=1)


class SharedImageSpec(BaseModel):
    """Declared state of a Shared Image."""

    name: str
    gallery_name: str
    resource_group_name: str = Field(min_length=1)
    location: str
    os_type: Literal["Linux", "Windows"]
    hyper_v_generation: Literal["V1", "V2"] = "V1"
    identifier: ImageIdentifier
    description: str = ""
    eula: str = ""
    privacy_statement_uri: str = ""
    release_note_uri: str = ""
    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("name")
    @classmethod
    def _valid_image_name(cls, value: str) -> str:
        if not _IMAGE_NAME_RE.match(value):
            msg = (
                "may only contain alphanumerics, periods, underscores and hyphens, "
                "must start and end with an alphanumeric and be at most 80 characters"
            )
            raise ValueError(msg)
        return value

    @field_validator("gallery_name")
    @classmethod
    def _valid_gallery_name(cls, value: str) -> str:
        if not _GALLERY_NAME_RE.match(value):
            msg = (
                "may only contain alphanumerics, periods and underscores, "
                "must start and end with an alphanumeric and be at most 80 characters"
            )
            raise ValueError(msg)
        return value

    @field_validator("location")
    @classmethod
    def _normalize_location(cls, value: str) -> str:
        normalized = normalize_location(value)
        if not normalized:
            msg = "location must not be empty"
            raise ValueError(msg)
        return normalized


def expand_shared_image(spec: SharedImageSpec) -> dict[str, Any]:
    """Build the ARM request body for *spec*."""
    return {
        "location": spec.location,
        "tags": expand_tags(spec.tags),
        "properties": {
            "description": spec.description,
            "eula": spec.eula,
            "identifier": {
                "publisher": spec.identifier.publisher,
                "offer": spec.identifier.offer,
                "sku": spec.identifier.sku,
            },
            "privacyStatementUri": spec.privacy_statement_uri,
            "releaseNoteUri": spec.release_note_uri,
            "osType": spec.os_type,
            "osState": OS_STATE_GENERALIZED,
            "hyperVGeneration": spec.hyper_v_generation,
        },
    }


def flatten_shared_image(
    body: dict[str, Any],
    *,
    name: str,
    gallery_name: str,
    resource_group: str,
) -> SharedImageSpec:
    """Rebuild declared state from an ARM response body.

    Raises:
        ContractError: If the body lacks fields the declared state requires
            (an image without ``identifier`` or ``osType``, for instance).
    """
    props: dict[str, Any] = body.get("properties") or {}
    identifier: dict[str, Any] = props.get("identifier") or {}
    try:
        return SharedImageSpec(
            name=name,
            gallery_name=gallery_name,
            resource_group_name=resource_group,
            location=str(body.get("location") or ""),
            os_type=props.get("osType", ""),
            hyper_v_generation=props.get("hyperVGeneration") or "V1",
            identifier=ImageIdentifier(
                publisher=str(identifier.get("publisher", "")),
                offer=str(identifier.get("offer", "")),
                sku=str(identifier.get("sku", "")),
            ),
            description=props.get("description") or "",
            eula=props.get("eula") or "",
            privacy_statement_uri=props.get("privacyStatementUri") or "",
            release_note_uri=props.get("releaseNoteUri") or "",
            tags=flatten_tags(body.get("tags")),
        )
    except ValidationError as exc:
        msg = f"Shared Image {name!r} response cannot be flattened: {exc}"
        raise ContractError(msg, stage="shared_image", code="MALFORMED_RESPONSE") from exc
