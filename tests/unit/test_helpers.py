"""Tests for the shared handler helpers."""

from __future__ import annotations

import pytest

from arm_convergence.utils.helpers import dig, expand_tags, flatten_tags, normalize_location


class TestNormalizeLocation:
    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("West Europe", "westeurope"),
            ("eastus2", "eastus2"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize(self, raw: str | None, expected: str) -> None:
        assert normalize_location(raw) == expected


class TestTags:
    def test_expand_stringifies(self) -> None:
        assert expand_tags({"cost": 12, "env": "prod"}) == {"cost": "12", "env": "prod"}

    def test_expand_none(self) -> None:
        assert expand_tags(None) == {}

    def test_flatten_handles_null_values(self) -> None:
        assert flatten_tags({"env": "prod", "owner": None}) == {"env": "prod", "owner": ""}

    def test_flatten_non_dict(self) -> None:
        assert flatten_tags(None) == {}
        assert flatten_tags(["env"]) == {}


class TestDig:
    def test_nested_value(self) -> None:
        assert dig({"properties": {"status": "Ready"}}, ("properties", "status")) == "Ready"

    def test_missing_step(self) -> None:
        assert dig({"properties": {}}, ("properties", "status")) is None

    def test_non_dict_step(self) -> None:
        assert dig({"properties": "oops"}, ("properties", "status")) is None
