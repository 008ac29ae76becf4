"""Typed access to the three records that make up a device-code session.

:class:`SessionStore` wraps any :class:`~devauth.store.base.TokenStore`
and speaks in :class:`~devauth.models.TokenPair` and
:class:`~devauth.models.PendingFlowState` instead of raw strings.
Corrupted pending-flow records read as absent so that stale local state
never blocks starting a fresh flow.
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from pydantic import ValidationError

from devauth.models import PendingFlowState, TokenPair
from devauth.store.base import (
    ACCESS_TOKEN_RECORD,
    PENDING_FLOW_RECORD,
    REFRESH_TOKEN_RECORD,
    TokenStore,
)

logger = logging.getLogger(__name__)


class SessionStore:
    """Token pair and pending-flow persistence for one storage location.

    Args:
        store: The backing key-value store.
        access_token_record: Record name for the access token.
        refresh_token_record: Record name for the refresh token.
        pending_flow_record: Record name for the pending device code flow.
    """

    def __init__(
        self,
        store: TokenStore,
        access_token_record: str = ACCESS_TOKEN_RECORD,
        refresh_token_record: str = REFRESH_TOKEN_RECORD,
        pending_flow_record: str = PENDING_FLOW_RECORD,
    ) -> None:
        self._store = store
        self._access_record = access_token_record
        self._refresh_record = refresh_token_record
        self._pending_record = pending_flow_record

    @property
    def backend(self) -> TokenStore:
        return self._store

    # ------------------------------------------------------------------ #
    # Tokens
    # ------------------------------------------------------------------ #

    def load_tokens(self) -> TokenPair:
        return TokenPair(
            access_token=self._store.get(self._access_record),
            refresh_token=self._store.get(self._refresh_record),
        )

    def save_tokens(self, tokens: TokenPair) -> None:
        """Persist whichever tokens are present; absent ones are left untouched.

        The refresh token is written first: if the process dies between the
        two writes, the next call still holds a refresh token that matches
        the provider's latest rotation.
        """
        if tokens.refresh_token:
            self._store.set(self._refresh_record, tokens.refresh_token)
        if tokens.access_token:
            self._store.set(self._access_record, tokens.access_token)

    def clear_tokens(self) -> None:
        self._store.delete(self._access_record)
        self._store.delete(self._refresh_record)

    # ------------------------------------------------------------------ #
    # Pending flow
    # ------------------------------------------------------------------ #

    def load_pending_flow(self) -> Optional[PendingFlowState]:
        """Return the pending flow, or ``None`` if absent or unparsable."""
        raw = self._store.get(self._pending_record)
        if raw is None:
            return None
        try:
            return PendingFlowState.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError, TypeError, RecursionError) as exc:
            logger.debug("Treating malformed pending flow record as absent: %s", exc)
            return None

    def save_pending_flow(self, state: PendingFlowState) -> None:
        self._store.set(self._pending_record, state.model_dump_json(indent=2))

    def clear_pending_flow(self) -> None:
        self._store.delete(self._pending_record)

    def clear_all(self) -> None:
        self.clear_tokens()
        self.clear_pending_flow()
