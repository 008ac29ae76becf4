"""Directory-scoped token store backed by one file per record.

Records land in the configured storage directory as ``.access_token``,
``.refresh_token`` and ``.device_code_state``. Files are written
atomically via :func:`~devauth.config.atomic_write` with ``0o600``
permissions so that secrets are never world-readable, even momentarily.

Two stores pointed at different directories are fully independent.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from devauth.config import atomic_write
from devauth.store.base import TokenStore

logger = logging.getLogger(__name__)


class FileTokenStore(TokenStore):
    """Read/write token records under a single directory.

    The directory is created on the first write, not on construction, so
    merely inspecting a location never leaves an empty directory behind.

    Args:
        directory: The storage location for this identity.

    Example::

        store = FileTokenStore(Path(".session"))
        store.set(".access_token", "eyJ...")
        assert store.get(".access_token") == "eyJ..."
    """

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory).expanduser()

    @property
    def directory(self) -> Path:
        """The directory holding this store's records."""
        return self._directory

    def path_for(self, name: str) -> Path:
        return self._directory / name

    def get(self, name: str) -> Optional[str]:
        path = self.path_for(name)
        if not path.is_file():
            return None
        try:
            value = path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as exc:
            logger.debug("Ignoring unreadable record %s: %s", path, exc)
            return None
        return value or None

    def set(self, name: str, value: str) -> None:
        """Persist *value* atomically with ``0o600`` permissions.

        Raises:
            OSError: If the file cannot be written (permissions, disk full, etc.).
        """
        atomic_write(self.path_for(name), value.strip() + "\n", mode=0o600)

    def delete(self, name: str) -> None:
        self.path_for(name).unlink(missing_ok=True)
