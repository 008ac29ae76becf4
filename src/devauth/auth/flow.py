"""OAuth2 Device Authorization Grant (:rfc:`8628`): starting and polling a flow.

For callers that cannot open a browser and that run as separate, short
invocations (agents, cron jobs, SSH sessions).

Flow, spread across invocations:
    1. :meth:`FlowInitiator.start_flow` POSTs to ``{authority}/devicecode``
       to obtain ``device_code`` + ``user_code`` and persists the result as
       the pending flow.
    2. The caller shows "Go to {verification_uri} and enter code:
       {user_code}" to a human.
    3. On each later invocation :meth:`FlowInitiator.poll` checks the token
       endpoint exactly once. There is no polling loop.

Provider error codes are mapped onto a closed set of outcomes by
:func:`classify_poll_response`; anything unrecognised becomes
:class:`~devauth.models.PollError` rather than falling through.

See Also:
    :class:`devauth.auth.manager.TokenLifecycleManager`, which decides
    when to start and when to poll.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import httpx

from devauth.client import IdentityProviderClient, ProviderResponse
from devauth.exceptions import AuthServerError
from devauth.models import (
    DEFAULT_POLL_INTERVAL,
    AuthConfig,
    PendingFlowState,
    PollCompleted,
    PollDeclined,
    PollError,
    PollExpired,
    PollOutcome,
    PollPending,
    ProviderErrorCode,
)
from devauth.store.session import SessionStore

logger = logging.getLogger(__name__)

DEVICE_CODE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"
DEFAULT_EXPIRES_IN = 900
SLOW_DOWN_INCREMENT = 5


def _positive_int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def classify_poll_response(
    response: ProviderResponse, state: PendingFlowState
) -> PollOutcome:
    """Map one token-endpoint response onto a poll outcome.

    A 2xx response carrying ``access_token`` is *completed* whatever its
    ``error`` field says. Otherwise the provider's ``error`` code decides:

    * ``authorization_pending`` -- pending, interval unchanged.
    * ``slow_down`` -- pending, next poll advised ``interval + 5`` seconds.
    * ``expired_token`` -- expired.
    * ``authorization_declined`` / ``access_denied`` -- declined.
    * anything else, including a non-JSON body -- error.
    """
    access_token = response.payload.get("access_token")
    if response.ok and access_token:
        refresh_token = response.payload.get("refresh_token") or None
        return PollCompleted(
            access_token=str(access_token),
            refresh_token=str(refresh_token) if refresh_token else None,
        )

    if not response.is_json:
        return PollError(reason=response.error_message())

    try:
        code: Optional[ProviderErrorCode] = ProviderErrorCode(response.error_code or "")
    except ValueError:
        code = None

    reason = response.error_message()
    if code is ProviderErrorCode.AUTHORIZATION_PENDING:
        return PollPending(next_poll_in_seconds=state.interval_seconds)
    if code is ProviderErrorCode.SLOW_DOWN:
        return PollPending(
            next_poll_in_seconds=state.interval_seconds + SLOW_DOWN_INCREMENT,
            slow_down=True,
        )
    if code is ProviderErrorCode.EXPIRED_TOKEN:
        return PollExpired(reason=reason)
    if code in (ProviderErrorCode.AUTHORIZATION_DECLINED, ProviderErrorCode.ACCESS_DENIED):
        return PollDeclined(reason=reason)
    if response.ok:
        return PollError(reason="Token response missing 'access_token' field")
    return PollError(reason=reason)


class FlowInitiator:
    """Start device authorizations and poll them, one request at a time.

    Args:
        config: Validated auth configuration.
        session: Where a newly started flow is persisted.
        transport: Optional custom :mod:`httpx` transport.
    """

    def __init__(
        self,
        config: AuthConfig,
        session: SessionStore,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._session = session
        self._transport = transport

    def _provider(self) -> IdentityProviderClient:
        return IdentityProviderClient(
            self._config.authority,
            timeout=self._config.timeout,
            transport=self._transport,
        )

    def start_flow(self, scopes: Optional[list[str]] = None) -> PendingFlowState:
        """Request a new device code and persist it as the pending flow.

        Any previously pending flow is replaced.

        Args:
            scopes: Scopes to request. Defaults to the configured scopes.

        Returns:
            The persisted :class:`~devauth.models.PendingFlowState`.

        Raises:
            AuthServerError: On a non-success response, a response missing
                ``device_code`` / ``user_code`` / ``verification_uri``, or a
                transport failure.
        """
        assert self._config.client_id
        scope = " ".join(scopes) if scopes else self._config.scope_string

        with self._provider() as provider:
            response = provider.request_device_code(self._config.client_id, scope)

        if not response.ok:
            raise AuthServerError(
                f"Device authorization request failed: {response.error_message()}",
                status_code=response.status_code,
            )

        data = response.payload
        verification_uri = data.get("verification_uri") or data.get("verification_url")
        for field, value in (
            ("device_code", data.get("device_code")),
            ("user_code", data.get("user_code")),
            ("verification_uri", verification_uri),
        ):
            if not value:
                raise AuthServerError(
                    f"Device authorization response missing '{field}'",
                    status_code=response.status_code,
                )

        expires_in = _positive_int(data.get("expires_in"), DEFAULT_EXPIRES_IN)
        state = PendingFlowState(
            device_code=str(data["device_code"]),
            user_code=str(data["user_code"]),
            verification_uri=str(verification_uri),
            verification_uri_complete=data.get("verification_uri_complete") or None,
            interval_seconds=_positive_int(data.get("interval"), DEFAULT_POLL_INTERVAL),
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            message=data.get("message") or None,
        )
        self._session.save_pending_flow(state)
        logger.info(
            "Started device code flow (user code %s, expires %s)",
            state.user_code,
            state.expires_at.isoformat(),
        )
        return state

    def poll(self, state: PendingFlowState) -> PollOutcome:
        """Check the token endpoint exactly once for *state*.

        Persists nothing; the caller decides what to store or clear.

        Raises:
            AuthServerError: On transport failure.
        """
        assert self._config.client_id
        with self._provider() as provider:
            response = provider.request_token(
                {
                    "grant_type": DEVICE_CODE_GRANT_TYPE,
                    "client_id": self._config.client_id,
                    "device_code": state.device_code,
                }
            )
        outcome = classify_poll_response(response, state)
        logger.debug("Device code poll outcome: %s", outcome.status)
        return outcome
