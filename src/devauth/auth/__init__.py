"""Device-code authentication for devauth.

The main entry points are:

- :class:`TokenLifecycleManager` -- returns a usable access token or raises
  :class:`~devauth.exceptions.AuthRequired` with login instructions.
- :class:`FlowInitiator` -- starts and polls device authorizations.
- :func:`is_usable` -- local JWT expiry check with a safety skew.
- :class:`BearerTokenAuth` -- :class:`httpx.Auth` adapter for collaborators.

Typical usage::

    from devauth.auth import TokenLifecycleManager
    from devauth.models import AuthConfig

    manager = TokenLifecycleManager(AuthConfig(client_id="..."))
    token = manager.get_valid_access_token()
"""

from devauth.auth.flow import FlowInitiator, classify_poll_response
from devauth.auth.httpx_auth import BearerTokenAuth, bearer_headers
from devauth.auth.manager import TokenLifecycleManager
from devauth.auth.refresh import TokenRefresher
from devauth.auth.validator import decode_expiry, is_usable

__all__ = [
    "BearerTokenAuth",
    "FlowInitiator",
    "TokenLifecycleManager",
    "TokenRefresher",
    "bearer_headers",
    "classify_poll_response",
    "decode_expiry",
    "is_usable",
]
