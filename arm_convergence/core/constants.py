"""Shared constants — single source of truth.

Default operation timeouts, poll cadence and endpoint values used by the
configuration layer, the poller and the resource handlers.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Management endpoint
# ---------------------------------------------------------------------------

DEFAULT_ARM_ENDPOINT: str = "https://management.azure.com"
"""Public-cloud Azure Resource Manager endpoint."""

DEFAULT_HTTP_TIMEOUT_SECONDS: float = 30.0
"""Per-request timeout for the management client."""

# ---------------------------------------------------------------------------
# Operation timeouts (seconds)
# ---------------------------------------------------------------------------

DEFAULT_CREATE_TIMEOUT_SECONDS: int = 30 * 60
DEFAULT_UPDATE_TIMEOUT_SECONDS: int = 30 * 60
DEFAULT_DELETE_TIMEOUT_SECONDS: int = 30 * 60
DEFAULT_READ_TIMEOUT_SECONDS: int = 5 * 60

# ---------------------------------------------------------------------------
# Poll cadence
# ---------------------------------------------------------------------------

DEFAULT_POLL_INTERVAL_SECONDS: int = 10
"""Minimum delay between two status reads of the same resource."""

DEFAULT_CONTINUOUS_TARGET_OCCURRENCE: int = 1
"""Consecutive target reads required before declaring convergence."""

DEFAULT_MAX_TRANSIENT_ERRORS: int = 3
"""Consecutive transient fetch errors tolerated before the poll fails."""

NOT_FOUND_STATUS: str = "NotFound"
"""Status label recorded when the status read reports the resource absent."""
