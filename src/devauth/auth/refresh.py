"""Refresh-token grant: exchange a refresh token for a new access token."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from devauth.client import IdentityProviderClient
from devauth.exceptions import AuthServerError
from devauth.models import AuthConfig, TokenPair

logger = logging.getLogger(__name__)

REFRESH_GRANT_TYPE = "refresh_token"


class TokenRefresher:
    """Perform single refresh-token exchanges against ``{authority}/token``.

    Args:
        config: Validated auth configuration (client id, scopes, authority).
        transport: Optional custom :mod:`httpx` transport.
    """

    def __init__(
        self,
        config: AuthConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport

    def refresh_once(self, refresh_token: str) -> TokenPair:
        """Exchange *refresh_token* once.

        The provider may rotate the refresh token. When the response omits
        one, the token that was sent is returned so the caller never loses
        it.

        Returns:
            A :class:`~devauth.models.TokenPair` with both tokens set.

        Raises:
            AuthServerError: If the provider rejects the refresh, omits
                ``access_token``, or cannot be reached.
        """
        assert self._config.client_id
        data = {
            "grant_type": REFRESH_GRANT_TYPE,
            "client_id": self._config.client_id,
            "refresh_token": refresh_token,
            "scope": self._config.scope_string,
        }
        with IdentityProviderClient(
            self._config.authority,
            timeout=self._config.timeout,
            transport=self._transport,
        ) as provider:
            response = provider.request_token(data)

        if not response.ok:
            raise AuthServerError(
                f"Token refresh failed: {response.error_message()}",
                status_code=response.status_code,
            )
        access_token = response.payload.get("access_token")
        if not access_token:
            raise AuthServerError(
                "Token refresh response missing 'access_token' field",
                status_code=response.status_code,
            )

        rotated = response.payload.get("refresh_token")
        if rotated and rotated != refresh_token:
            logger.debug("Provider rotated the refresh token")
        return TokenPair(
            access_token=str(access_token),
            refresh_token=str(rotated) if rotated else refresh_token,
        )
