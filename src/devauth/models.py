"""Canonical Pydantic models shared across all devauth modules.

This is the single source of truth for data shapes in the project. The
models fall into three groups:

**Configuration** -- :class:`AuthConfig`, built by
:func:`~devauth.config.resolve_config` or directly by library callers.

**Persisted state** -- :class:`PendingFlowState` (serialised as the
``.device_code_state`` record) and :class:`TokenPair`.

**Operation results** -- :class:`LoginInstructions`, the poll outcome
union :data:`PollOutcome`, :class:`CredentialState`, and
:class:`SessionStatus`.

All models use Pydantic v2.
"""

from __future__ import annotations

import enum
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator

DEFAULT_AUTHORITY_HOST = "https://login.microsoftonline.com"
DEFAULT_TENANT = "common"
DEFAULT_SCOPES: tuple[str, ...] = (
    "offline_access",
    "https://graph.microsoft.com/Calendars.ReadWrite",
)
DEFAULT_POLL_INTERVAL = 5
DEFAULT_SKEW_SECONDS = 60
SESSION_DIRNAME = ".session"
ACCESS_TOKEN_FILENAME = ".access_token"
REFRESH_TOKEN_FILENAME = ".refresh_token"
PENDING_FLOW_FILENAME = ".device_code_state"


def _default_storage_dir() -> Path:
    return Path.cwd() / SESSION_DIRNAME


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# --- Configuration ---


class AuthConfig(BaseModel):
    """Settings for one device-code identity.

    Each distinct ``storage_dir`` is an independent namespace: two configs
    pointing at different directories never see each other's tokens or
    pending flows.

    Example::

        AuthConfig(
            client_id="00000000-0000-0000-0000-000000000000",
            tenant="organizations",
            storage_dir=Path("/var/lib/agent/.session"),
        )
    """

    client_id: Optional[str] = Field(
        default=None, description="Public client (application) ID"
    )
    tenant: str = Field(
        default=DEFAULT_TENANT,
        description="Tenant selector: common, organizations, consumers, or a tenant GUID",
    )
    scopes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SCOPES),
        description="Delegated scopes; must include offline_access for refresh tokens",
    )
    storage_dir: Path = Field(
        default_factory=_default_storage_dir,
        description="Directory holding the access token, refresh token, and pending flow",
    )
    access_token_filename: str = Field(
        default=ACCESS_TOKEN_FILENAME, description="Record name of the access token"
    )
    refresh_token_filename: str = Field(
        default=REFRESH_TOKEN_FILENAME, description="Record name of the refresh token"
    )
    pending_flow_filename: str = Field(
        default=PENDING_FLOW_FILENAME,
        description="Record name of the pending device code flow",
    )
    authority_host: str = Field(
        default=DEFAULT_AUTHORITY_HOST, description="Identity provider base URL"
    )
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")
    skew_seconds: int = Field(
        default=DEFAULT_SKEW_SECONDS,
        description="Safety margin subtracted from token expiry",
    )

    @field_validator("scopes")
    @classmethod
    def _default_when_empty(cls, value: list[str]) -> list[str]:
        cleaned = [s for s in value if s and s.strip()]
        return cleaned or list(DEFAULT_SCOPES)

    @property
    def authority(self) -> str:
        """Base URL of the tenant's OAuth 2.0 v2 endpoints."""
        tenant = self.tenant or DEFAULT_TENANT
        return f"{self.authority_host.rstrip('/')}/{tenant}/oauth2/v2.0"

    @property
    def scope_string(self) -> str:
        return " ".join(self.scopes)

    def validate_config(self) -> list[str]:
        """Return human-readable problems with this config. Empty if valid."""
        errors: list[str] = []
        if not self.client_id or not self.client_id.strip():
            errors.append("client_id is required for the device code flow")
        if not self.authority_host.startswith(("https://", "http://")):
            errors.append(
                f"Invalid authority_host '{self.authority_host}': must be an http(s) URL"
            )
        if self.timeout <= 0:
            errors.append("timeout must be positive")
        if self.skew_seconds < 0:
            errors.append("skew_seconds must not be negative")

        names = {
            "access_token_filename": self.access_token_filename,
            "refresh_token_filename": self.refresh_token_filename,
            "pending_flow_filename": self.pending_flow_filename,
        }
        for field, name in names.items():
            if not name.strip() or name in (".", "..") or "/" in name or "\\" in name:
                errors.append(f"{field} must be a plain file name, got '{name}'")
        if len(set(names.values())) != len(names):
            errors.append("token and pending flow file names must be distinct")
        return errors


# --- Persisted state ---


class PendingFlowState(BaseModel):
    """An in-progress device authorization, persisted between invocations.

    ``device_code`` is the secret used to poll; ``user_code`` and the
    verification URIs are what the human sees.
    """

    device_code: str
    user_code: str
    verification_uri: str
    verification_uri_complete: Optional[str] = None
    interval_seconds: int = DEFAULT_POLL_INTERVAL
    expires_at: datetime
    message: Optional[str] = None

    @field_validator("expires_at")
    @classmethod
    def _ensure_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """True once the absolute expiry has been reached."""
        now = now or datetime.now(timezone.utc)
        return _as_utc(now) >= self.expires_at

    def to_instructions(self) -> LoginInstructions:
        return LoginInstructions(
            user_code=self.user_code,
            verification_uri=self.verification_uri,
            verification_uri_complete=self.verification_uri_complete,
            expires_at=self.expires_at,
            interval_seconds=self.interval_seconds,
            message=self.message,
        )


class TokenPair(BaseModel):
    """Access and refresh token as read from, or written to, storage."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


# --- Operation results ---


class LoginInstructions(BaseModel):
    """What a human needs to complete sign-in, returned by ``start_login()``."""

    user_code: str
    verification_uri: str
    verification_uri_complete: Optional[str] = None
    expires_at: datetime
    interval_seconds: int = DEFAULT_POLL_INTERVAL
    message: Optional[str] = None


class ProviderErrorCode(str, enum.Enum):
    """Token-endpoint error codes recognised while polling (:rfc:`8628` section 3.5).

    ``authorization_declined`` is the Microsoft identity platform spelling;
    ``access_denied`` is the RFC spelling. Codes outside this set map to a
    generic error outcome.
    """

    AUTHORIZATION_PENDING = "authorization_pending"
    SLOW_DOWN = "slow_down"
    EXPIRED_TOKEN = "expired_token"
    AUTHORIZATION_DECLINED = "authorization_declined"
    ACCESS_DENIED = "access_denied"


class PollPending(BaseModel):
    status: Literal["pending"] = "pending"
    next_poll_in_seconds: int
    slow_down: bool = False


class PollCompleted(BaseModel):
    status: Literal["completed"] = "completed"
    access_token: str
    refresh_token: Optional[str] = None


class PollDeclined(BaseModel):
    status: Literal["declined"] = "declined"
    reason: str


class PollExpired(BaseModel):
    status: Literal["expired"] = "expired"
    reason: str


class PollError(BaseModel):
    status: Literal["error"] = "error"
    reason: str


PollOutcome = Annotated[
    Union[PollPending, PollCompleted, PollDeclined, PollExpired, PollError],
    Field(discriminator="status"),
]
"""Result of a single poll against the token endpoint."""


class CredentialState(str, enum.Enum):
    """Where a storage location stands, reconstructed from disk on each call."""

    NO_CREDENTIAL = "no_credential"
    PENDING_FLOW = "pending_flow"
    REFRESHABLE = "refreshable"
    VALID_TOKEN = "valid_token"


class SessionStatus(BaseModel):
    """Snapshot of a storage location, computed without any network call."""

    state: CredentialState
    storage_dir: Path
    access_token_expires_at: Optional[datetime] = None
    has_refresh_token: bool = False
    pending_flow: Optional[LoginInstructions] = None
