"""Exception hierarchy for devauth.

All exceptions inherit from :class:`DevauthError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`devauth.exit_codes`.
The top-level handler in :func:`devauth.app.main` catches ``DevauthError``
and exits with the matching code, while unexpected exceptions produce a
crash log and exit with :data:`EXIT_GENERIC_FAILURE`.

Subclass hierarchy::

    DevauthError (exit 1)
    +-- AuthRequired        (exit 3)
    +-- AuthServerError     (exit 5)
    +-- ConfigurationError  (exit 1)
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from devauth.exit_codes import (
    EXIT_AUTH_REQUIRED,
    EXIT_AUTH_SERVER_ERROR,
    EXIT_GENERIC_FAILURE,
)


class DevauthError(Exception):
    """Base exception for all devauth errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class AuthRequired(DevauthError):
    """Raised when a human must complete the device-code sign-in.

    This is a control-flow signal rather than a failure: the caller relays
    the instructions to the user and retries the same call later. The
    persisted pending flow lets that retry resume where this one stopped.

    Args:
        user_code: Short code the user enters at the verification URI.
        verification_uri: Where the user signs in.
        expires_at: Absolute UTC instant after which the code is useless.
        verification_uri_complete: Optional URI with the code pre-filled.
        interval_seconds: Suggested wait before the next retry.
        message: Optional provider-supplied instructions. A default sentence
            is built from the URI and code when omitted.
    """

    exit_code = EXIT_AUTH_REQUIRED

    def __init__(
        self,
        user_code: str,
        verification_uri: str,
        expires_at: datetime,
        verification_uri_complete: Optional[str] = None,
        interval_seconds: int = 5,
        message: Optional[str] = None,
    ):
        self.user_code = user_code
        self.verification_uri = verification_uri
        self.verification_uri_complete = verification_uri_complete
        self.expires_at = expires_at
        self.interval_seconds = interval_seconds
        self.provider_message = message
        super().__init__(
            f"Authentication required. Visit {verification_uri} "
            f"and enter code: {user_code}"
        )


class AuthServerError(DevauthError):
    """Raised when the identity provider rejects a request or cannot be reached.

    ``status_code`` is ``None`` for transport-level failures (DNS, timeout,
    connection refused) where no HTTP response was received.
    """

    exit_code = EXIT_AUTH_SERVER_ERROR

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConfigurationError(DevauthError):
    """Raised for configuration problems (missing client id, invalid config file)."""

    exit_code = EXIT_GENERIC_FAILURE
