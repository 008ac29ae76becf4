"""Configuration management with XDG paths, atomic writes, and precedence resolution.

This module handles all persistent configuration for devauth:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.devauth/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Config files** -- an optional user file (``config.json`` in the config
  directory) and an optional project file (``./devauth.json``), each holding
  :class:`~devauth.models.AuthConfig` fields.
* **Precedence resolution** -- :func:`resolve_config` merges CLI flags,
  environment variables, the project file, and the user file into the final
  :class:`~devauth.models.AuthConfig`.

Config files are read-only here and edited by hand. :func:`atomic_write`
(temp file, fsync, rename) backs the file token store.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Any, Optional

from pydantic import ValidationError

from devauth.exceptions import ConfigurationError
from devauth.models import AuthConfig

_APP_NAME = "devauth"
_CONFIG_FILENAME = "config.json"
_PROJECT_CONFIG_FILENAME = "devauth.json"

ENV_CLIENT_ID = "DEVAUTH_CLIENT_ID"
ENV_TENANT = "DEVAUTH_TENANT"
ENV_SCOPES = "DEVAUTH_SCOPES"
ENV_STORAGE_DIR = "DEVAUTH_STORAGE_DIR"
ENV_AUTHORITY_HOST = "DEVAUTH_AUTHORITY_HOST"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def _fallback_base_dir() -> Path:
    """Fallback base directory for non-XDG platforms (macOS, Windows)."""
    return Path.home() / f".{_APP_NAME}"


def _xdg_base(env_var: str, default_segments: tuple[str, ...]) -> Path:
    """Resolve an XDG base directory from an env var with fallback segments under $HOME."""
    env_value = os.environ.get(env_var, "")
    if env_value:
        return Path(env_value)
    base = Path.home()
    for seg in default_segments:
        base = base / seg
    return base


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/devauth/`` (default ``~/.config/devauth/``).
    On macOS/Windows: ``~/.devauth/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/devauth/`` (default ``~/.local/share/devauth/``).
    On macOS/Windows: ``~/.devauth/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def atomic_write(path: Path, data: str, mode: Optional[int] = None) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. When *mode* is
    given it is applied to the temp file before any content is written, so
    secrets are never briefly world-readable. On any failure the temp file
    is removed and the original exception re-raised.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    fd = None
    tmp_path: Optional[str] = None
    try:
        fd = tempfile.NamedTemporaryFile(
            mode="w",
            dir=path.parent,
            prefix=f".{path.name}.",
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        )
        tmp_path = fd.name
        if mode is not None:
            os.chmod(tmp_path, mode)
        fd.write(data)
        fd.flush()
        os.fsync(fd.fileno())
        fd.close()
        fd = None  # prevent double-close below
        os.replace(tmp_path, path)
    except BaseException:
        if fd is not None:
            fd.close()
        if tmp_path is not None:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
        raise


# --- Config files ---


def _user_config_path() -> Path:
    return get_config_dir() / _CONFIG_FILENAME


def _read_json_object(path: Path) -> Optional[dict[str, Any]]:
    if not path.is_file():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, ValueError, OSError) as exc:
        raise ConfigurationError(f"Invalid config at {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Invalid config at {path}: expected a JSON object")
    return data


def load_user_config() -> dict[str, Any]:
    """Load the user-wide config file, or an empty dict if there is none.

    Raises:
        ConfigurationError: If the file exists but is not a JSON object.
    """
    return _read_json_object(_user_config_path()) or {}


def load_project_config() -> Optional[dict[str, Any]]:
    """Load project-local configuration from ``./devauth.json``.

    Returns:
        The parsed JSON object, or ``None`` if the file does not exist.

    Raises:
        ConfigurationError: If the file exists but is not a JSON object.
    """
    return _read_json_object(Path.cwd() / _PROJECT_CONFIG_FILENAME)


# --- Precedence resolution ---


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    if os.environ.get(ENV_CLIENT_ID):
        overrides["client_id"] = os.environ[ENV_CLIENT_ID]
    if os.environ.get(ENV_TENANT):
        overrides["tenant"] = os.environ[ENV_TENANT]
    if os.environ.get(ENV_SCOPES):
        overrides["scopes"] = os.environ[ENV_SCOPES].split()
    if os.environ.get(ENV_STORAGE_DIR):
        overrides["storage_dir"] = os.environ[ENV_STORAGE_DIR]
    if os.environ.get(ENV_AUTHORITY_HOST):
        overrides["authority_host"] = os.environ[ENV_AUTHORITY_HOST]
    return overrides


def resolve_config(
    client_id: Optional[str] = None,
    tenant: Optional[str] = None,
    scopes: Optional[list[str]] = None,
    storage_dir: Optional[str] = None,
    authority_host: Optional[str] = None,
) -> AuthConfig:
    """Resolve the effective :class:`~devauth.models.AuthConfig`.

    Precedence (high to low):
        1. Explicit arguments (CLI flags)
        2. Environment variables (``DEVAUTH_CLIENT_ID``, ``DEVAUTH_TENANT``,
           ``DEVAUTH_SCOPES``, ``DEVAUTH_STORAGE_DIR``,
           ``DEVAUTH_AUTHORITY_HOST``)
        3. Project config (``./devauth.json``)
        4. User config (``~/.config/devauth/config.json``)
        5. Defaults

    The result is not validated here; the authenticator calls
    :meth:`~devauth.models.AuthConfig.validate_config` before any I/O.

    Raises:
        ConfigurationError: If a config file is malformed or a field has
            the wrong type.
    """
    merged: dict[str, Any] = {}
    merged.update(load_user_config())
    merged.update(load_project_config() or {})
    merged.update(_env_overrides())

    flags = {
        "client_id": client_id,
        "tenant": tenant,
        "scopes": scopes or None,
        "storage_dir": storage_dir,
        "authority_host": authority_host,
    }
    merged.update({k: v for k, v in flags.items() if v is not None})

    try:
        return AuthConfig.model_validate(merged)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration: {exc}") from exc
