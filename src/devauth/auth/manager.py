"""Token lifecycle manager -- the single entry point collaborators call.

:class:`TokenLifecycleManager` rebuilds its view of the world from
storage on every call; it holds no flow state in memory. That is what lets
an agent issue one stateless invocation, relay a login prompt to a human,
and resume minutes later from a completely new process.

Decision order of :meth:`TokenLifecycleManager.get_valid_access_token`::

    1. stored access token usable?        -> return it (no network)
    2. stored refresh token?              -> refresh; usable -> return it
                                             rejected -> clear tokens
    3. pending flow, not expired?         -> poll once
           completed                      -> store tokens, return
           pending                        -> raise AuthRequired (same code)
           declined / expired / error     -> clear flow
       pending flow, expired?             -> clear flow
    4. start a new flow                   -> raise AuthRequired (new code)

See Also:
    :mod:`devauth.auth.flow` for starting and polling flows.
    :mod:`devauth.auth.validator` for the local expiry check.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from devauth.auth.flow import FlowInitiator
from devauth.auth.refresh import TokenRefresher
from devauth.auth.validator import decode_expiry, is_usable
from devauth.exceptions import AuthRequired, AuthServerError, ConfigurationError
from devauth.models import (
    AuthConfig,
    CredentialState,
    LoginInstructions,
    PendingFlowState,
    PollCompleted,
    PollError,
    PollExpired,
    PollOutcome,
    PollPending,
    SessionStatus,
    TokenPair,
)
from devauth.store.base import TokenStore
from devauth.store.file_store import FileTokenStore
from devauth.store.session import SessionStore

logger = logging.getLogger(__name__)

MAX_REFRESH_ATTEMPTS = 2
"""Refresh attempts per call. The second runs only if the first succeeded
but returned an access token that is not locally usable."""


class TokenLifecycleManager:
    """Produce a usable access token, or tell the caller a human must sign in.

    Args:
        config: Auth configuration. Validated immediately; nothing touches
            the network or disk if it is invalid.
        store: Backing key-value store. Defaults to a
            :class:`~devauth.store.file_store.FileTokenStore` rooted at
            ``config.storage_dir``.
        transport: Optional custom :mod:`httpx` transport, used for every
            request to the identity provider.

    Raises:
        ConfigurationError: If ``config`` is invalid (e.g. no client id).

    Example::

        manager = TokenLifecycleManager(AuthConfig(client_id="..."))
        try:
            token = manager.get_valid_access_token()
        except AuthRequired as exc:
            print(f"Visit {exc.verification_uri} and enter {exc.user_code}")
    """

    def __init__(
        self,
        config: AuthConfig,
        store: Optional[TokenStore] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        errors = config.validate_config()
        if errors:
            raise ConfigurationError("; ".join(errors))

        self._config = config
        self._session = SessionStore(
            store or FileTokenStore(config.storage_dir),
            access_token_record=config.access_token_filename,
            refresh_token_record=config.refresh_token_filename,
            pending_flow_record=config.pending_flow_filename,
        )
        self._flow = FlowInitiator(config, self._session, transport=transport)
        self._refresher = TokenRefresher(config, transport=transport)

    @property
    def config(self) -> AuthConfig:
        return self._config

    @property
    def session(self) -> SessionStore:
        return self._session

    # ------------------------------------------------------------------ #
    # Public operations
    # ------------------------------------------------------------------ #

    def get_valid_access_token(self) -> str:
        """Return a usable access token, advancing the device flow if needed.

        Idempotent while a stored token stays valid: repeated calls return
        the same token without any network traffic.

        Raises:
            AuthRequired: A human must visit the verification URI and enter
                the user code. Retry the call afterwards.
            AuthServerError: The provider could not be reached, or rejected
                a device authorization request.
        """
        tokens = self._session.load_tokens()
        if tokens.access_token and self._usable(tokens.access_token):
            return tokens.access_token

        if tokens.refresh_token:
            refreshed = self._refresh(tokens.refresh_token)
            if refreshed is not None:
                return refreshed

        state = self._session.load_pending_flow()
        if state is not None:
            if state.is_expired():
                logger.info("Pending device code flow expired; starting a new one")
                self._session.clear_pending_flow()
            else:
                outcome = self._flow.poll(state)
                if isinstance(outcome, PollCompleted):
                    return self._complete(outcome)
                if isinstance(outcome, PollPending):
                    state = self._apply_slow_down(state, outcome)
                    raise self._auth_required(state, outcome.next_poll_in_seconds)
                logger.info(
                    "Device code flow ended (%s: %s); starting a new one",
                    outcome.status,
                    outcome.reason,
                )
                self._session.clear_pending_flow()

        new_state = self._flow.start_flow()
        raise self._auth_required(new_state)

    def start_login(self) -> LoginInstructions:
        """Start a fresh device code flow, replacing any pending one.

        Raises:
            AuthServerError: If the device authorization request fails.
        """
        return self._flow.start_flow().to_instructions()

    def check_pending_login(self) -> PollOutcome:
        """Poll the pending flow exactly once and record the result.

        A completed flow stores the tokens and clears the pending state.
        Declined, expired, and errored flows are cleared. A still-pending
        flow is kept. With no pending flow, a
        :class:`~devauth.models.PollError` is returned.

        Raises:
            AuthServerError: On transport failure.
        """
        state = self._session.load_pending_flow()
        if state is None:
            return PollError(reason="No pending device code login")
        if state.is_expired():
            self._session.clear_pending_flow()
            return PollExpired(reason="Device code expired before sign-in completed")

        outcome = self._flow.poll(state)
        if isinstance(outcome, PollCompleted):
            self._complete(outcome)
        elif isinstance(outcome, PollPending):
            self._apply_slow_down(state, outcome)
        else:
            self._session.clear_pending_flow()
        return outcome

    def status(self) -> SessionStatus:
        """Describe the storage location without touching the network or disk state."""
        tokens = self._session.load_tokens()
        state = self._session.load_pending_flow()
        if state is not None and state.is_expired():
            state = None

        if tokens.access_token and self._usable(tokens.access_token):
            credential_state = CredentialState.VALID_TOKEN
        elif tokens.refresh_token:
            credential_state = CredentialState.REFRESHABLE
        elif state is not None:
            credential_state = CredentialState.PENDING_FLOW
        else:
            credential_state = CredentialState.NO_CREDENTIAL

        return SessionStatus(
            state=credential_state,
            storage_dir=self._config.storage_dir,
            access_token_expires_at=(
                decode_expiry(tokens.access_token) if tokens.access_token else None
            ),
            has_refresh_token=bool(tokens.refresh_token),
            pending_flow=state.to_instructions() if state is not None else None,
        )

    def logout(self) -> None:
        """Delete the stored tokens and any pending flow."""
        self._session.clear_all()
        logger.info("Cleared stored credentials")

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _usable(self, token: str) -> bool:
        return is_usable(token, skew_seconds=self._config.skew_seconds)

    def _refresh(self, refresh_token: str) -> Optional[str]:
        """Try the refresh grant; return a usable access token or ``None``.

        Every successful exchange is persisted before anything else, so a
        rotated refresh token is never lost. A provider rejection stops at
        once and clears both tokens. Transport failures propagate and leave
        storage untouched, since they say nothing about revocation.
        """
        current = refresh_token
        for attempt in range(1, MAX_REFRESH_ATTEMPTS + 1):
            try:
                pair = self._refresher.refresh_once(current)
            except AuthServerError as exc:
                if exc.status_code is None:
                    raise
                logger.warning("Refresh token rejected: %s", exc)
                break

            self._session.save_tokens(pair)
            if pair.access_token and self._usable(pair.access_token):
                logger.debug("Refreshed access token on attempt %d", attempt)
                return pair.access_token
            logger.debug("Refreshed access token is not usable (attempt %d)", attempt)
            current = pair.refresh_token or current

        self._session.clear_tokens()
        return None

    def _complete(self, outcome: PollCompleted) -> str:
        # a completed flow is a new credential; nothing from the old pair survives
        self._session.clear_tokens()
        self._session.save_tokens(
            TokenPair(
                access_token=outcome.access_token,
                refresh_token=outcome.refresh_token,
            )
        )
        self._session.clear_pending_flow()
        logger.info("Device code sign-in completed")
        return outcome.access_token

    def _apply_slow_down(
        self, state: PendingFlowState, outcome: PollPending
    ) -> PendingFlowState:
        if not outcome.slow_down:
            return state
        slowed = state.model_copy(
            update={"interval_seconds": outcome.next_poll_in_seconds}
        )
        self._session.save_pending_flow(slowed)
        return slowed

    def _auth_required(
        self, state: PendingFlowState, retry_after: Optional[int] = None
    ) -> AuthRequired:
        return AuthRequired(
            user_code=state.user_code,
            verification_uri=state.verification_uri,
            expires_at=state.expires_at,
            verification_uri_complete=state.verification_uri_complete,
            interval_seconds=retry_after or state.interval_seconds,
            message=state.message,
        )
