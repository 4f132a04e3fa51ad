"""Tests for the resource-kind registry."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import MagicMock

import pytest

from arm_convergence.core.exceptions import ContractError, ValidationError
from arm_convergence.models.status import GatewayStatus, Operation, ProvisioningState
from arm_convergence.resources import gateway, registry, shared_image
from arm_convergence.resources.registry import (
    SERVICE_FABRIC_MESH_GATEWAY,
    SHARED_IMAGE,
    UnknownResourceKindError,
    get_resource_kind,
    list_resource_kinds,
    register_resource_kind,
)

if TYPE_CHECKING:
    from collections.abc import Iterator


@pytest.fixture()
def _isolated_registry() -> Iterator[None]:
    saved = dict(registry._KIND_REGISTRY)
    yield
    registry._KIND_REGISTRY.clear()
    registry._KIND_REGISTRY.update(saved)


class TestBuiltinKinds:
    def test_lists_builtin_kinds(self) -> None:
        kinds = list_resource_kinds()
        assert {SERVICE_FABRIC_MESH_GATEWAY, SHARED_IMAGE} <= set(kinds)
        assert kinds == sorted(kinds)

    def test_gateway_kind(self) -> None:
        kind = get_resource_kind(SERVICE_FABRIC_MESH_GATEWAY)
        assert kind is gateway.KIND
        assert kind.status_type is GatewayStatus
        assert kind.api_version == "2018-09-01-preview"

    def test_shared_image_kind(self) -> None:
        kind = get_resource_kind(SHARED_IMAGE)
        assert kind is shared_image.KIND
        assert kind.status_type is ProvisioningState
        assert kind.api_version == "2019-07-01"

    def test_unknown_kind(self) -> None:
        with pytest.raises(UnknownResourceKindError, match="'nope'") as exc_info:
            get_resource_kind("nope")
        assert isinstance(exc_info.value, ValidationError)
        assert "shared_image" in str(exc_info.value)


@pytest.mark.usefixtures("_isolated_registry")
class TestRegisterResourceKind:
    def test_register_and_resolve(self) -> None:
        loader = MagicMock(return_value=gateway.KIND)
        register_resource_kind("custom", loader)

        assert get_resource_kind("custom") is gateway.KIND
        assert "custom" in list_resource_kinds()
        loader.assert_called_once_with()

    def test_loader_is_lazy(self) -> None:
        loader = MagicMock(return_value=gateway.KIND)
        register_resource_kind("lazy", loader)
        loader.assert_not_called()

    def test_empty_name_rejected(self) -> None:
        with pytest.raises(ValueError, match="non-empty"):
            register_resource_kind("", MagicMock())


class TestKindPolicies:
    def test_shared_image_delete_floors(self) -> None:
        kind = shared_image.KIND
        policy = kind.policy_for(Operation.DELETE, continuous_target_occurrence=1)
        assert policy.continuous_target_occurrence == 10
        assert kind.poll_interval(Operation.DELETE, 1.0) == 10.0
        assert kind.poll_interval(Operation.DELETE, 30.0) == 30.0
        assert kind.poll_interval(Operation.CREATE, 1.0) == 1.0

    def test_default_threshold_kept_when_unset(self) -> None:
        policy = shared_image.KIND.policy_for(Operation.DELETE)
        assert policy.continuous_target_occurrence == 10

    def test_gateway_failed_is_not_pending(self) -> None:
        policy = gateway.KIND.policy_for(Operation.CREATE)
        assert GatewayStatus.FAILED not in policy.pending
        assert policy.target == frozenset({GatewayStatus.READY})

    def test_status_from_body_missing_status(self) -> None:
        with pytest.raises(ContractError, match="properties.provisioningState"):
            shared_image.KIND.status_from_body({"properties": {}})

    def test_status_from_body(self) -> None:
        body = {"properties": {"status": "upgrading"}}
        assert gateway.KIND.status_from_body(body) is GatewayStatus.UPGRADING

    def test_gateway_delete_polls_no_faster_than_ten_seconds(self) -> None:
        assert gateway.KIND.poll_interval(Operation.DELETE, 1.0) == 10.0
        assert gateway.KIND.poll_interval(Operation.CREATE, 1.0) == 1.0


class TestReadStatus:
    def test_delete_read_without_status_means_present(self) -> None:
        body = {"id": "gw"}
        assert gateway.KIND.read_status(body, Operation.DELETE) is GatewayStatus.DELETING

    def test_delete_read_with_unmapped_status_means_present(self) -> None:
        body = {"properties": {"provisioningState": "Draining"}}
        state = shared_image.KIND.read_status(body, Operation.DELETE)
        assert state is ProvisioningState.DELETING

    def test_delete_read_keeps_known_status(self) -> None:
        body = {"properties": {"status": "Upgrading"}}
        assert gateway.KIND.read_status(body, Operation.DELETE) is GatewayStatus.UPGRADING

    @pytest.mark.parametrize("operation", [Operation.CREATE, Operation.UPDATE, None])
    def test_missing_status_fails_outside_delete(self, operation: Operation | None) -> None:
        with pytest.raises(ContractError, match="properties.status"):
            gateway.KIND.read_status({"id": "gw"}, operation)
