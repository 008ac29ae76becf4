"""devauth -- OAuth 2.0 Device Authorization Grant credentials for stateless callers.

Built for agents and scripts that run as separate, short invocations and
cannot open a browser. Each call either returns a usable access token or
raises :class:`~devauth.exceptions.AuthRequired` carrying the code a human
must enter; the pending flow is persisted so the next invocation resumes it.

Typical usage::

    from devauth import AuthConfig, AuthRequired, TokenLifecycleManager

    manager = TokenLifecycleManager(AuthConfig(client_id="..."))
    try:
        token = manager.get_valid_access_token()
    except AuthRequired as exc:
        print(exc)   # "Authentication required. Visit ... and enter code: ..."

Modules:
    auth: Token lifecycle manager, device flow, refresh, local validation.
    store: File and in-memory persistence for tokens and pending flows.
    models: Pydantic models shared across the package.
    config: XDG-aware configuration resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    app: ``devauth`` command-line interface.
"""

__version__ = "0.1.0"

from devauth.auth.manager import TokenLifecycleManager
from devauth.exceptions import (
    AuthRequired,
    AuthServerError,
    ConfigurationError,
    DevauthError,
)
from devauth.models import AuthConfig

__all__ = [
    "AuthConfig",
    "AuthRequired",
    "AuthServerError",
    "ConfigurationError",
    "DevauthError",
    "TokenLifecycleManager",
    "__version__",
]
