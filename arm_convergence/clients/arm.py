"""Azure Resource Manager REST client.

Concrete ``ManagementClient`` over the ARM REST API using ``httpx``.
Requests are ``{endpoint}{resource_id}?api-version=...`` with a bearer
token obtained from an ``azure-identity`` style credential
(anything exposing ``get_token(scope)``).

Response mapping:
    404                         → ``ResourceNotFoundError``
    409 nested-resource conflict → ``DependencyViolationError`` (transient)
    401 / 403                   → ``ClientAuthError``
    408 / 429 / 5xx, transport  → ``ManagementApiError(retryable=True)``
    other 4xx                   → ``ManagementApiError(retryable=False)``
    non-JSON success body       → ``ContractError``
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

import httpx

from arm_convergence.clients.base import (
    ClientAuthError,
    DependencyViolationError,
    ManagementApiError,
    ManagementClient,
    ResourceNotFoundError,
)
from arm_convergence.core.constants import DEFAULT_ARM_ENDPOINT, DEFAULT_HTTP_TIMEOUT_SECONDS
from arm_convergence.core.exceptions import ContractError

if TYPE_CHECKING:
    from azure.core.credentials import TokenCredential

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_RETRYABLE_STATUS_CODES = frozenset({408, 429, 500, 502, 503, 504})

# ARM error codes that signal a parent still has children being cleaned up.
_DEPENDENCY_ERROR_CODES = frozenset(
    {"nestedresourcesexist", "cannotdeleteresource", "resourcehasdependents"}
)
_DEPENDENCY_MESSAGE_MARKER = "nested resources"


class ArmClient(ManagementClient):
    """ARM REST adapter.

    Args:
        endpoint: ARM base URL (no trailing slash).
        credential: Token credential; ``None`` sends unauthenticated
            requests (local emulators, tests).
        timeout: Per-request timeout in seconds.
        read_timeout: Timeout for GET requests; defaults to *timeout*.
        transport: Optional ``httpx`` transport (``httpx.MockTransport``
            in tests).
    """

    def __init__(
        self,
        *,
        endpoint: str = DEFAULT_ARM_ENDPOINT,
        credential: TokenCredential | None = None,
        timeout: float = DEFAULT_HTTP_TIMEOUT_SECONDS,
        read_timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._credential = credential
        self._scope = f"{self._endpoint}/.default"
        self._read_timeout: Any = httpx.USE_CLIENT_DEFAULT if read_timeout is None else read_timeout
        self._http = httpx.Client(
            base_url=self._endpoint,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    @property
    def endpoint(self) -> str:
        return self._endpoint

    def close(self) -> None:
        self._http.close()

    def __enter__(self) -> ArmClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # ManagementClient
    # ------------------------------------------------------------------

    def get(self, resource_id: str, api_version: str) -> dict[str, Any]:
        response = self._send("GET", resource_id, api_version, timeout=self._read_timeout)
        return _json_body(response, resource_id)

    def put(self, resource_id: str, api_version: str, body: dict[str, Any]) -> dict[str, Any]:
        response = self._send("PUT", resource_id, api_version, json=body)
        if not response.content:
            return {}
        return _json_body(response, resource_id)

    def delete(self, resource_id: str, api_version: str) -> None:
        self._send("DELETE", resource_id, api_version)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        if self._credential is None:
            return {}
        token = self._credential.get_token(self._scope)
        return {"Authorization": f"Bearer {token.token}"}

    def _send(
        self,
        method: str,
        resource_id: str,
        api_version: str,
        *,
        json: dict[str, Any] | None = None,
        timeout: Any = httpx.USE_CLIENT_DEFAULT,
    ) -> httpx.Response:
        logger.debug("ARM request | method=%s | id=%s | api=%s", method, resource_id, api_version)
        try:
            response = self._http.request(
                method,
                resource_id,
                params={"api-version": api_version},
                json=json,
                headers=self._headers(),
                timeout=timeout,
            )
        except httpx.TransportError as exc:
            msg = f"{method} {resource_id} failed: {exc}"
            raise ManagementApiError(resource_id, msg, retryable=True) from exc

        if response.is_success:
            return response
        _raise_for_response(method, resource_id, response)
        return response  # pragma: no cover - _raise_for_response always raises


def _error_details(response: httpx.Response) -> tuple[str, str]:
    """Extract ``(code, message)`` from an ARM error envelope, if any."""
    try:
        payload = response.json()
    except ValueError:
        return "", response.text.strip()
    if not isinstance(payload, dict):
        return "", response.text.strip()
    error = payload.get("error", payload)
    if not isinstance(error, dict):
        return "", str(error)
    return str(error.get("code", "")), str(error.get("message", ""))


def _raise_for_response(method: str, resource_id: str, response: httpx.Response) -> None:
    status = response.status_code
    code, detail = _error_details(response)
    msg = f"{method} {resource_id} returned {status}"
    if code:
        msg += f" ({code})"
    if detail:
        msg += f": {detail}"

    if status == 404:
        raise ResourceNotFoundError(resource_id, msg)
    if status in (401, 403):
        raise ClientAuthError(resource_id, msg, status_code=status)
    if status == 409 and (
        code.lower() in _DEPENDENCY_ERROR_CODES or _DEPENDENCY_MESSAGE_MARKER in detail.lower()
    ):
        raise DependencyViolationError(resource_id, msg, status_code=status)
    raise ManagementApiError(
        resource_id,
        msg,
        status_code=status,
        retryable=status in _RETRYABLE_STATUS_CODES,
    )


def _json_body(response: httpx.Response, resource_id: str) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        msg = f"Response for {resource_id!r} is not valid JSON: {exc}"
        raise ContractError(msg, stage="client", code="MALFORMED_RESPONSE") from exc
    if not isinstance(payload, dict):
        msg = f"Response for {resource_id!r} must be a JSON object, got {type(payload).__name__}"
        raise ContractError(msg, stage="client", code="MALFORMED_RESPONSE")
    return payload
