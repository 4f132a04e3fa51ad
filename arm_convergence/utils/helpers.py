"""Shared helper functions used across resource handlers.

Centralises the small normalisations every handler applies when moving
between declared state and the ARM wire shape.
"""

from __future__ import annotations

from typing import Any


def normalize_location(location: str | None) -> str:
    """Normalise an Azure location (``"West Europe"`` → ``"westeurope"``)."""
    if not location:
        return ""
    return location.replace(" ", "").lower()


def expand_tags(tags: dict[str, Any] | None) -> dict[str, str]:
    """Convert declared tags into the string map ARM expects."""
    if not tags:
        return {}
    return {str(k): str(v) for k, v in tags.items()}


def flatten_tags(tags: object) -> dict[str, str]:
    """Convert ARM tags (possibly ``None``) back into declared tags."""
    if not isinstance(tags, dict):
        return {}
    return {str(k): "" if v is None else str(v) for k, v in tags.items()}


def dig(body: dict[str, Any], path: tuple[str, ...]) -> object:
    """Follow *path* through nested dicts; ``None`` if any step is missing."""
    current: object = body
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current
