"""Client context — the explicitly passed bundle of client and configuration.

Every handler and activity receives a ``ClientContext`` instead of
reaching for a process-wide client.  Activities build a fresh context
per invocation from ``ConvergenceConfig``; tests build one around a
``MagicMock`` or an ``ArmClient`` with a mock transport.

Usage::

    from arm_convergence.clients.factory import build_client_context

    ctx = build_client_context(ConvergenceConfig.from_env())
    shared_image.delete(ctx, resource_id)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from arm_convergence.clients.arm import ArmClient

if TYPE_CHECKING:
    import httpx
    from azure.core.credentials import TokenCredential

    from arm_convergence.clients.base import ManagementClient
    from arm_convergence.core.config import ConvergenceConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ClientContext:
    """Client and configuration threaded through every operation.

    Attributes:
        client: The management client used for reads, writes and polls.
        config: Poll cadence, timeouts and retry policy.
        correlation_id: Identifier attached to errors raised under this context.
    """

    client: ManagementClient
    config: ConvergenceConfig
    correlation_id: str = ""


def build_client_context(
    config: ConvergenceConfig,
    *,
    credential: TokenCredential | None = None,
    transport: httpx.BaseTransport | None = None,
    correlation_id: str = "",
) -> ClientContext:
    """Create an ``ArmClient``-backed context.

    When *credential* is ``None`` and no *transport* override is given,
    ``DefaultAzureCredential`` is used (managed identity in Azure,
    developer credentials locally).  It is imported lazily so that
    callers supplying their own credential do not pay for it.
    """
    if credential is None and transport is None:
        from azure.identity import DefaultAzureCredential

        credential = DefaultAzureCredential()

    client = ArmClient(
        endpoint=config.arm_endpoint,
        credential=credential,
        timeout=config.http_timeout_seconds,
        read_timeout=config.read_timeout_seconds,
        transport=transport,
    )
    logger.info("Created management client | endpoint=%s", config.arm_endpoint)
    return ClientContext(client=client, config=config, correlation_id=correlation_id)
