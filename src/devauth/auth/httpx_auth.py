"""Inject the managed access token into outgoing :mod:`httpx` requests.

Resource-API wrappers (calendar, task list, time tracking) only need a
bearer header. :class:`BearerTokenAuth` plugs the lifecycle manager into
any :class:`httpx.Client` so those wrappers never deal with the device
flow directly; :class:`~devauth.exceptions.AuthRequired` simply
propagates out of the request call.
"""

from __future__ import annotations

from typing import Generator

import httpx

from devauth.auth.manager import TokenLifecycleManager


def bearer_headers(manager: TokenLifecycleManager) -> dict[str, str]:
    """Return ``{"Authorization": "Bearer <token>"}`` for a valid token.

    Raises:
        AuthRequired: If a human must sign in first.
    """
    return {"Authorization": f"Bearer {manager.get_valid_access_token()}"}


class BearerTokenAuth(httpx.Auth):
    """:class:`httpx.Auth` that asks the manager for a token on every request.

    Example::

        with httpx.Client(auth=BearerTokenAuth(manager)) as client:
            client.get("https://graph.microsoft.com/v1.0/me/events")
    """

    def __init__(self, manager: TokenLifecycleManager) -> None:
        self._manager = manager

    def auth_flow(
        self, request: httpx.Request
    ) -> Generator[httpx.Request, httpx.Response, None]:
        request.headers.update(bearer_headers(self._manager))
        yield request
