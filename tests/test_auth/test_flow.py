"""Tests for starting and polling device authorizations (RFC 8628)."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import httpx
import pytest

from devauth.auth.flow import DEVICE_CODE_GRANT_TYPE, FlowInitiator, classify_poll_response
from devauth.client import ProviderResponse
from devauth.exceptions import AuthServerError
from devauth.models import (
    AuthConfig,
    PendingFlowState,
    PollCompleted,
    PollDeclined,
    PollError,
    PollExpired,
    PollPending,
)
from devauth.store import MemoryTokenStore, SessionStore


def _make_config(**kwargs: object) -> AuthConfig:
    defaults: dict[str, object] = {
        "client_id": "test-client",
        "tenant": "organizations",
        "scopes": ["offline_access", "User.Read"],
    }
    defaults.update(kwargs)
    return AuthConfig(**defaults)  # type: ignore[arg-type]


def _make_state(**kwargs: object) -> PendingFlowState:
    defaults: dict[str, object] = {
        "device_code": "dev-123",
        "user_code": "ABCD1234",
        "verification_uri": "https://microsoft.com/devicelogin",
        "interval_seconds": 5,
        "expires_at": datetime.now(timezone.utc) + timedelta(minutes=15),
    }
    defaults.update(kwargs)
    return PendingFlowState(**defaults)  # type: ignore[arg-type]


def _response(payload: dict, status_code: int = 400, text: str = "") -> ProviderResponse:
    return ProviderResponse(status_code, payload, text)


# -------------------------------------------------------------------------
# classify_poll_response
# -------------------------------------------------------------------------


class TestClassifyPollResponse:
    def test_authorization_pending_keeps_interval(self) -> None:
        outcome = classify_poll_response(
            _response({"error": "authorization_pending"}), _make_state()
        )
        assert isinstance(outcome, PollPending)
        assert outcome.next_poll_in_seconds == 5
        assert outcome.slow_down is False

    def test_slow_down_adds_five_seconds(self) -> None:
        outcome = classify_poll_response(
            _response({"error": "slow_down"}), _make_state(interval_seconds=7)
        )
        assert isinstance(outcome, PollPending)
        assert outcome.next_poll_in_seconds == 12
        assert outcome.slow_down is True

    def test_expired_token(self) -> None:
        outcome = classify_poll_response(
            _response({"error": "expired_token", "error_description": "Code expired"}),
            _make_state(),
        )
        assert isinstance(outcome, PollExpired)
        assert outcome.reason == "Code expired"

    @pytest.mark.parametrize("code", ["authorization_declined", "access_denied"])
    def test_declined(self, code: str) -> None:
        outcome = classify_poll_response(_response({"error": code}), _make_state())
        assert isinstance(outcome, PollDeclined)
        assert outcome.reason == code

    def test_unknown_error_code(self) -> None:
        outcome = classify_poll_response(
            _response({"error": "invalid_grant", "error_description": "AADSTS70000"}),
            _make_state(),
        )
        assert isinstance(outcome, PollError)
        assert outcome.reason == "AADSTS70000"

    def test_non_json_failure(self) -> None:
        outcome = classify_poll_response(
            _response({}, status_code=502, text="Bad Gateway"), _make_state()
        )
        assert isinstance(outcome, PollError)
        assert outcome.reason == "HTTP 502: Bad Gateway"

    def test_success(self) -> None:
        outcome = classify_poll_response(
            _response({"access_token": "at", "refresh_token": "rt"}, status_code=200),
            _make_state(),
        )
        assert outcome == PollCompleted(access_token="at", refresh_token="rt")

    def test_success_without_refresh_token(self) -> None:
        outcome = classify_poll_response(
            _response({"access_token": "at"}, status_code=200), _make_state()
        )
        assert isinstance(outcome, PollCompleted)
        assert outcome.refresh_token is None

    def test_success_without_access_token_is_error(self) -> None:
        outcome = classify_poll_response(
            _response({"token_type": "Bearer"}, status_code=200), _make_state()
        )
        assert isinstance(outcome, PollError)
        assert "access_token" in outcome.reason


# -------------------------------------------------------------------------
# FlowInitiator.start_flow
# -------------------------------------------------------------------------


class TestStartFlow:
    def test_posts_client_id_and_scopes(self, provider) -> None:
        provider.device_code("ABCD1234")
        session = SessionStore(MemoryTokenStore())
        FlowInitiator(_make_config(), session, transport=provider.transport).start_flow()

        request = provider.requests[0]
        assert request.method == "POST"
        assert str(request.url) == (
            "https://login.microsoftonline.com/organizations/oauth2/v2.0/devicecode"
        )
        assert provider.calls("devicecode") == [
            {"client_id": "test-client", "scope": "offline_access User.Read"}
        ]

    def test_explicit_scopes_override_config(self, provider) -> None:
        provider.device_code()
        session = SessionStore(MemoryTokenStore())
        FlowInitiator(_make_config(), session, transport=provider.transport).start_flow(
            ["Calendars.Read"]
        )
        assert provider.calls("devicecode")[0]["scope"] == "Calendars.Read"

    def test_persists_pending_state(self, provider) -> None:
        provider.device_code(
            "ABCD1234", verification_uri_complete="https://microsoft.com/devicelogin?code=ABCD1234"
        )
        session = SessionStore(MemoryTokenStore())
        before = datetime.now(timezone.utc)
        state = FlowInitiator(
            _make_config(), session, transport=provider.transport
        ).start_flow()

        assert state.device_code == "device-ABCD1234"
        assert state.user_code == "ABCD1234"
        assert state.verification_uri_complete.endswith("code=ABCD1234")
        assert state.interval_seconds == 5
        assert before + timedelta(seconds=899) <= state.expires_at
        assert state.expires_at <= datetime.now(timezone.utc) + timedelta(seconds=900)
        assert session.load_pending_flow() == state

    def test_defaults_for_missing_interval_and_expiry(self, provider) -> None:
        provider.queue(
            "devicecode",
            {
                "device_code": "dc",
                "user_code": "XYZ",
                "verification_uri": "https://example.com/device",
            },
        )
        session = SessionStore(MemoryTokenStore())
        before = datetime.now(timezone.utc)
        state = FlowInitiator(
            _make_config(), session, transport=provider.transport
        ).start_flow()
        assert state.interval_seconds == 5
        assert state.expires_at >= before + timedelta(seconds=899)

    def test_verification_url_spelling_accepted(self, provider) -> None:
        provider.queue(
            "devicecode",
            {
                "device_code": "dc",
                "user_code": "XYZ",
                "verification_url": "https://www.google.com/device",
                "expires_in": 1800,
            },
        )
        session = SessionStore(MemoryTokenStore())
        state = FlowInitiator(
            _make_config(), session, transport=provider.transport
        ).start_flow()
        assert state.verification_uri == "https://www.google.com/device"

    def test_replaces_previous_pending_flow(self, provider) -> None:
        provider.device_code("FIRST")
        provider.device_code("SECOND")
        session = SessionStore(MemoryTokenStore())
        initiator = FlowInitiator(_make_config(), session, transport=provider.transport)
        initiator.start_flow()
        initiator.start_flow()
        assert session.load_pending_flow().user_code == "SECOND"

    def test_error_response_raises(self, provider) -> None:
        provider.queue(
            "devicecode",
            {"error": "invalid_client", "error_description": "AADSTS700016: app not found"},
            status_code=400,
        )
        session = SessionStore(MemoryTokenStore())
        with pytest.raises(AuthServerError, match="AADSTS700016") as exc_info:
            FlowInitiator(_make_config(), session, transport=provider.transport).start_flow()
        assert exc_info.value.status_code == 400
        assert session.load_pending_flow() is None

    def test_missing_user_code_raises(self, provider) -> None:
        provider.queue(
            "devicecode",
            {"device_code": "dc", "verification_uri": "https://example.com/device"},
        )
        session = SessionStore(MemoryTokenStore())
        with pytest.raises(AuthServerError, match="user_code"):
            FlowInitiator(_make_config(), session, transport=provider.transport).start_flow()
        assert session.load_pending_flow() is None

    def test_transport_failure_raises_without_status(self, provider) -> None:
        provider.queue("devicecode", error=httpx.ConnectError("connection refused"))
        session = SessionStore(MemoryTokenStore())
        with pytest.raises(AuthServerError) as exc_info:
            FlowInitiator(_make_config(), session, transport=provider.transport).start_flow()
        assert exc_info.value.status_code is None


# -------------------------------------------------------------------------
# FlowInitiator.poll
# -------------------------------------------------------------------------


class TestPoll:
    def test_single_request_with_device_code_grant(self, provider) -> None:
        provider.token_error("authorization_pending")
        session = SessionStore(MemoryTokenStore())
        outcome = FlowInitiator(_make_config(), session, transport=provider.transport).poll(
            _make_state()
        )
        assert isinstance(outcome, PollPending)
        assert provider.calls() == [
            {
                "grant_type": DEVICE_CODE_GRANT_TYPE,
                "client_id": "test-client",
                "device_code": "dev-123",
            }
        ]

    def test_poll_persists_nothing(self, provider) -> None:
        provider.queue("token", {"access_token": "at", "refresh_token": "rt"})
        store = MemoryTokenStore()
        outcome = FlowInitiator(
            _make_config(), SessionStore(store), transport=provider.transport
        ).poll(_make_state())
        assert isinstance(outcome, PollCompleted)
        assert store.records == {}
