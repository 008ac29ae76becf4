"""Persistence for device-code sessions.

- :class:`TokenStore` -- minimal get/set/delete interface.
- :class:`FileTokenStore` -- one file per record under a storage directory.
- :class:`MemoryTokenStore` -- dict-backed store for tests.
- :class:`SessionStore` -- typed token pair and pending-flow access over
  any :class:`TokenStore`.
"""

from devauth.store.base import (
    ACCESS_TOKEN_RECORD,
    PENDING_FLOW_RECORD,
    REFRESH_TOKEN_RECORD,
    TokenStore,
)
from devauth.store.file_store import FileTokenStore
from devauth.store.memory_store import MemoryTokenStore
from devauth.store.session import SessionStore

__all__ = [
    "ACCESS_TOKEN_RECORD",
    "PENDING_FLOW_RECORD",
    "REFRESH_TOKEN_RECORD",
    "FileTokenStore",
    "MemoryTokenStore",
    "SessionStore",
    "TokenStore",
]
