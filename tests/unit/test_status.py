"""Tests for the closed status enums."""

from __future__ import annotations

import pytest

from arm_convergence.core.exceptions import ContractError
from arm_convergence.models.status import (
    ConvergenceState,
    GatewayStatus,
    ProvisioningState,
    UnrecognizedStatusError,
)


class TestFromWire:
    def test_exact_match(self) -> None:
        assert GatewayStatus.from_wire("Ready") is GatewayStatus.READY
        assert ProvisioningState.from_wire("Succeeded") is ProvisioningState.SUCCEEDED

    def test_case_insensitive_match(self) -> None:
        assert ProvisioningState.from_wire("deleting") is ProvisioningState.DELETING
        assert GatewayStatus.from_wire("UPGRADING") is GatewayStatus.UPGRADING

    def test_unknown_value_raises(self) -> None:
        with pytest.raises(UnrecognizedStatusError) as exc_info:
            ProvisioningState.from_wire("Ready")
        err = exc_info.value
        assert isinstance(err, ContractError)
        assert err.status_type == "ProvisioningState"
        assert err.raw == "Ready"
        assert err.code == "UNRECOGNIZED_STATUS"
        assert err.retryable is False

    @pytest.mark.parametrize("raw", [None, "", 3])
    def test_non_string_or_empty_raises(self, raw: object) -> None:
        with pytest.raises(UnrecognizedStatusError):
            GatewayStatus.from_wire(raw)

    def test_gateway_unknown_is_a_real_member(self) -> None:
        assert GatewayStatus.from_wire("Unknown") is GatewayStatus.UNKNOWN


class TestConvergenceState:
    def test_only_polling_is_non_terminal(self) -> None:
        terminal = {state for state in ConvergenceState if state.is_terminal}
        assert ConvergenceState.POLLING not in terminal
        assert terminal == {
            ConvergenceState.CONVERGED,
            ConvergenceState.TIMED_OUT,
            ConvergenceState.FAILED,
        }
