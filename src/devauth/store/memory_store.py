"""In-memory token store for tests and for embedding without a filesystem."""

from __future__ import annotations

from typing import Optional

from devauth.store.base import TokenStore


class MemoryTokenStore(TokenStore):
    """Dict-backed :class:`~devauth.store.base.TokenStore`.

    Values are normalised the same way the file store normalises them
    (surrounding whitespace stripped, empty reads as absent) so manager
    tests behave identically against either backend.
    """

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._records: dict[str, str] = {}
        for name, value in (initial or {}).items():
            self.set(name, value)

    @property
    def records(self) -> dict[str, str]:
        """A copy of the current records, keyed by name."""
        return dict(self._records)

    def get(self, name: str) -> Optional[str]:
        return self._records.get(name) or None

    def set(self, name: str, value: str) -> None:
        self._records[name] = value.strip()

    def delete(self, name: str) -> None:
        self._records.pop(name, None)
