"""Abstract key-value interface behind which all persisted state lives.

The lifecycle manager only ever reads, writes, and deletes three named
records, so the storage contract is deliberately small: :meth:`get`,
:meth:`set`, and :meth:`delete` by record name. A filesystem
implementation is used in deployment
(:class:`~devauth.store.file_store.FileTokenStore`) and a dict-backed one
in tests (:class:`~devauth.store.memory_store.MemoryTokenStore`).
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from devauth.models import (
    ACCESS_TOKEN_FILENAME,
    PENDING_FLOW_FILENAME,
    REFRESH_TOKEN_FILENAME,
)

# Default record names; AuthConfig can override them per storage location.
ACCESS_TOKEN_RECORD = ACCESS_TOKEN_FILENAME
REFRESH_TOKEN_RECORD = REFRESH_TOKEN_FILENAME
PENDING_FLOW_RECORD = PENDING_FLOW_FILENAME


class TokenStore(ABC):
    """Durable storage for named text records within one namespace.

    Implementations must make :meth:`set` and :meth:`delete` durable
    before returning; the manager relies on that ordering so a crash can
    never lose a credential the provider already issued.
    """

    @abstractmethod
    def get(self, name: str) -> Optional[str]:
        """Return the stored value, or ``None`` if absent, empty, or unreadable."""
        ...

    @abstractmethod
    def set(self, name: str, value: str) -> None:
        """Create or replace a record."""
        ...

    @abstractmethod
    def delete(self, name: str) -> None:
        """Remove a record. A no-op when it does not exist."""
        ...
