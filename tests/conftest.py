"""Shared pytest fixtures for the ARM convergence test suite."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from arm_convergence.clients.base import ManagementClient
from arm_convergence.clients.factory import ClientContext
from arm_convergence.core.config import ConvergenceConfig

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000000"
RESOURCE_GROUP = "rg-convergence"

GATEWAY_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{RESOURCE_GROUP}"
    "/providers/Microsoft.ServiceFabricMesh/gateways/gw-edge"
)
SHARED_IMAGE_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{RESOURCE_GROUP}"
    "/providers/Microsoft.Compute/galleries/gallery1/images/ubuntu-base"
)
NETWORK_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/{RESOURCE_GROUP}"
    "/providers/Microsoft.ServiceFabricMesh/networks/net-backend"
)


class FakeClock:
    """Deterministic monotonic clock whose ``sleep`` advances time."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ---------------------------------------------------------------------------
# Configuration and client fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def config() -> ConvergenceConfig:
    """Default configuration with a fixed subscription."""
    return ConvergenceConfig(subscription_id=SUBSCRIPTION_ID)


@pytest.fixture()
def mock_client() -> MagicMock:
    """A ``ManagementClient`` mock with no configured responses."""
    return MagicMock(spec=ManagementClient)


@pytest.fixture()
def ctx(mock_client: MagicMock, config: ConvergenceConfig) -> ClientContext:
    """Client context around ``mock_client``."""
    return ClientContext(client=mock_client, config=config, correlation_id="corr-001")


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()
