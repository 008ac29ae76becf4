"""Shared test fixtures for devauth.

Provides an isolated config environment, output state management, a CLI
runner, a JWT builder, and a scripted fake identity provider exposed as an
:class:`httpx.MockTransport`. These fixtures are automatically discovered
by pytest and available to all test modules without explicit imports.
"""

from __future__ import annotations

import base64
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Optional
from urllib.parse import parse_qsl

import httpx
import pytest

from devauth.output import reset_output


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time. When Typer's CliRunner redirects those streams during
    a test and the test finishes, the cached references become stale.
    Resetting forces a fresh manager to be created on next use.
    """
    yield
    reset_output()


@pytest.fixture(autouse=True)
def _detach_cli_log_handlers() -> None:
    """Drop the stderr log handler the CLI attaches, along with its stale stream."""
    yield
    logger = logging.getLogger("devauth")
    for handler in [h for h in logger.handlers if getattr(h, "_devauth_cli", False)]:
        logger.removeHandler(handler)
    logger.setLevel(logging.NOTSET)


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME and XDG_DATA_HOME to subdirectories of tmp_path
    so that tests never touch real user config. Clears all DEVAUTH_*
    environment variables and changes the working directory to tmp_path.

    Returns:
        The tmp_path root directory for additional file creation.
    """
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "DEVAUTH_CLIENT_ID",
        "DEVAUTH_TENANT",
        "DEVAUTH_SCOPES",
        "DEVAUTH_STORAGE_DIR",
        "DEVAUTH_AUTHORITY_HOST",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# CLI runner fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


def _b64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


@pytest.fixture
def make_jwt() -> Callable[..., str]:
    """Factory for unsigned JWTs.

    ``make_jwt(3600)`` expires an hour from now; ``make_jwt(claims={...})``
    uses the given payload verbatim.
    """

    def _make(
        expires_in: float = 3600,
        claims: Optional[dict[str, Any]] = None,
    ) -> str:
        header = _b64url(json.dumps({"alg": "none", "typ": "JWT"}).encode())
        payload = claims if claims is not None else {"exp": int(time.time() + expires_in)}
        body = _b64url(json.dumps(payload).encode())
        return f"{header}.{body}.{_b64url(b'signature')}"

    return _make


# ---------------------------------------------------------------------------
# Fake identity provider
# ---------------------------------------------------------------------------


class FakeProvider:
    """Scripted identity provider behind an :class:`httpx.MockTransport`.

    Responses are queued per endpoint (``"devicecode"`` or ``"token"``) and
    consumed in order. An unexpected request fails the test.
    """

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._queues: dict[str, list[Any]] = {"devicecode": [], "token": []}

    def queue(
        self,
        endpoint: str,
        json_body: Optional[dict[str, Any]] = None,
        status_code: int = 200,
        text: Optional[str] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self._queues[endpoint].append((json_body, status_code, text, error))

    def device_code(self, user_code: str = "ABCD1234", **extra: Any) -> None:
        body = {
            "device_code": f"device-{user_code}",
            "user_code": user_code,
            "verification_uri": "https://microsoft.com/devicelogin",
            "expires_in": 900,
            "interval": 5,
            "message": f"To sign in, enter the code {user_code}",
        }
        body.update(extra)
        self.queue("devicecode", body)

    def token_error(self, code: str, description: str = "", status_code: int = 400) -> None:
        self.queue(
            "token",
            {"error": code, "error_description": description or code},
            status_code=status_code,
        )

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        endpoint = request.url.path.rsplit("/", 1)[-1]
        queue = self._queues.get(endpoint)
        if not queue:
            raise AssertionError(f"Unexpected request to {request.url}")
        json_body, status_code, text, error = queue.pop(0)
        if error is not None:
            raise error
        if text is not None:
            return httpx.Response(status_code, text=text)
        return httpx.Response(status_code, json=json_body)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self._handle)

    def calls(self, endpoint: Optional[str] = None) -> list[dict[str, str]]:
        """Form bodies of recorded requests, optionally filtered by endpoint."""
        return [
            dict(parse_qsl(r.content.decode()))
            for r in self.requests
            if endpoint is None or r.url.path.endswith("/" + endpoint)
        ]


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()
