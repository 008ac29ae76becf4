"""Thin synchronous HTTP client for the identity provider's OAuth endpoints.

:class:`IdentityProviderClient` wraps :class:`httpx.Client` and turns
every exchange into a :class:`ProviderResponse`. Responses are never
raised for status here: callers decide which error codes mean "pending"
and which are fatal. Only transport failures (DNS, timeouts, refused
connections) become :class:`~devauth.exceptions.AuthServerError`.

A custom :class:`httpx.BaseTransport` can be supplied, which is how the
test suite replays provider responses through :class:`httpx.MockTransport`.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from devauth.exceptions import AuthServerError

logger = logging.getLogger(__name__)


class ProviderResponse:
    """Status code and decoded JSON body of a token-endpoint exchange.

    Args:
        status_code: HTTP status returned by the provider.
        payload: The JSON object body, or an empty dict when the body was
            not a JSON object.
        text: The raw body, kept for error messages.
    """

    def __init__(self, status_code: int, payload: dict[str, Any], text: str = ""):
        self.status_code = status_code
        self.payload = payload
        self.text = text

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def is_json(self) -> bool:
        return bool(self.payload)

    @property
    def error_code(self) -> Optional[str]:
        value = self.payload.get("error")
        return str(value) if value else None

    def error_message(self) -> str:
        """Best available description: ``error_description``, ``error``, then status."""
        description = self.payload.get("error_description")
        if description:
            return str(description)
        if self.error_code:
            return self.error_code
        body = self.text.strip()
        if body:
            return f"HTTP {self.status_code}: {body[:200]}"
        return f"HTTP {self.status_code}"


class IdentityProviderClient:
    """POST form-encoded requests to ``{authority}/devicecode`` and ``{authority}/token``.

    Must be used as a context manager so the underlying connection pool is
    opened and closed around each short-lived operation.

    Args:
        authority: Tenant-specific OAuth base URL, e.g.
            ``https://login.microsoftonline.com/common/oauth2/v2.0``.
        timeout: Request timeout in seconds.
        transport: Optional custom transport (tests use
            :class:`httpx.MockTransport`).

    Example::

        with IdentityProviderClient(config.authority) as provider:
            response = provider.request_device_code("client-id", "offline_access")
    """

    def __init__(
        self,
        authority: str,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._authority = authority.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.Client] = None

    def __enter__(self) -> IdentityProviderClient:
        self._client = httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )
        return self

    def __exit__(self, *args: object) -> None:
        if self._client:
            self._client.close()
            self._client = None

    @property
    def device_code_url(self) -> str:
        return f"{self._authority}/devicecode"

    @property
    def token_url(self) -> str:
        return f"{self._authority}/token"

    def request_device_code(self, client_id: str, scope: str) -> ProviderResponse:
        return self._post_form(
            self.device_code_url, {"client_id": client_id, "scope": scope}
        )

    def request_token(self, data: dict[str, str]) -> ProviderResponse:
        return self._post_form(self.token_url, data)

    def _post_form(self, url: str, data: dict[str, str]) -> ProviderResponse:
        assert self._client is not None, "IdentityProviderClient must be used as a context manager"

        grant = data.get("grant_type", "device_authorization")
        logger.debug("POST %s (%s)", url, grant)
        try:
            response = self._client.post(url, data=data)
        except httpx.HTTPError as exc:
            raise AuthServerError(f"Request to {url} failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            body = None
        payload: dict[str, Any] = body if isinstance(body, dict) else {}

        logger.debug("Response %s from %s", response.status_code, url)
        return ProviderResponse(response.status_code, payload, response.text)
