"""Configuration management with XDG paths, atomic writes, and the login store.

This module handles all persistent state for giteacli:

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.giteacli/`` on macOS and Windows. See :func:`get_config_dir` and
  :func:`get_data_dir`.
* **Global config** -- a single JSON file deserialised into
  :class:`~giteacli.models.GlobalConfig`. It holds the OAuth defaults,
  output preferences, and every :class:`~giteacli.models.LoginRecord`.
  ``$GITEACLI_CONFIG`` points at an alternative file.
* **Login store** -- :class:`LoginStore` offers create/update/lookup by
  name on top of the global config file.

All file writes use an atomic temp-file-then-rename strategy
(:func:`_atomic_write`) with ``0o600`` permissions, because the file
contains access and refresh tokens.
"""

from __future__ import annotations

import json
import logging
import os
import platform
import re
import tempfile
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from giteacli.exceptions import ConfigError
from giteacli.models import GlobalConfig, LoginRecord

logger = logging.getLogger(__name__)

_APP_NAME = "giteacli"
_CONFIG_FILENAME = "config.json"
_CONFIG_ENV_VAR = "GITEACLI_CONFIG"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform follows the XDG Base Directory layout (Linux/FreeBSD)."""
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

    On Linux/BSD: ``$XDG_CONFIG_HOME/giteacli/`` (default ``~/.config/giteacli/``).
    On macOS/Windows: ``~/.giteacli/``.

    Returns:
        Absolute path to the configuration directory (guaranteed to exist).
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_CONFIG_HOME", (".config",)) / _APP_NAME
    else:
        path = _fallback_base_dir()
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_data_dir() -> Path:
    """Return the data directory (crash logs), creating it if necessary.

    On Linux/BSD: ``$XDG_DATA_HOME/giteacli/`` (default ``~/.local/share/giteacli/``).
    On macOS/Windows: ``~/.giteacli/data/``.
    """
    if _is_xdg_platform():
        path = _xdg_base("XDG_DATA_HOME", (".local", "share")) / _APP_NAME
    else:
        path = _fallback_base_dir() / "data"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_config_path() -> Path:
    """Return the path of the global config file.

    ``$GITEACLI_CONFIG`` takes precedence over the XDG location.
    """
    override = os.environ.get(_CONFIG_ENV_VAR, "")
    if override:
        return Path(override).expanduser()
    return get_config_dir() / _CONFIG_FILENAME


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Write data to file atomically using temp file + rename.

    The temporary file is created in the same directory as *path* so that
    ``os.replace`` is an atomic rename on POSIX systems. Permissions are
    restricted to the owner before any content is written.
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
        os.chmod(tmp_path, 0o600)
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


# --- Global config ---


def load_global_config(path: Optional[Path] = None) -> GlobalConfig:
    """Load the global configuration.

    Args:
        path: Explicit config file. Defaults to :func:`get_config_path`.

    Returns:
        The deserialised :class:`~giteacli.models.GlobalConfig`. If the
        file does not exist, a default instance is returned.

    Raises:
        ConfigError: If the file exists but contains invalid JSON or fails
            Pydantic validation.
    """
    path = path or get_config_path()
    if not path.is_file():
        return GlobalConfig()
    try:
        text = path.read_text(encoding="utf-8")
        data = json.loads(text)
        return GlobalConfig.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid config at {path}: {exc}") from exc


def save_global_config(config: GlobalConfig, path: Optional[Path] = None) -> None:
    """Persist the global configuration atomically to disk."""
    path = path or get_config_path()
    data = config.model_dump(mode="json")
    _atomic_write(path, json.dumps(data, indent=2) + "\n")


# --- Login store ---


def _slugify_host(url: str) -> str:
    """Derive a login name candidate from a server URL's host."""
    parsed = urlparse(url if "://" in url else f"https://{url}")
    host = (parsed.netloc or parsed.path).lower()
    if host.startswith("www."):
        host = host[4:]
    slug = re.sub(r"[^a-z0-9.]+", "-", host).strip("-.")
    return slug or "gitea"


class LoginStore:
    """Create, update, and look up :class:`~giteacli.models.LoginRecord` entries.

    Every operation re-reads the config file so that separate invocations
    see each other's writes, and every mutation rewrites it atomically.
    Name lookups are case-insensitive.

    Args:
        path: Config file to operate on. Defaults to :func:`get_config_path`.

    Example::

        store = LoginStore()
        store.add_login(LoginRecord(name="work", url="https://git.example.com"))
        record = store.get_login_by_name("work")
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self._path = path

    @property
    def path(self) -> Path:
        """The config file backing this store."""
        return self._path or get_config_path()

    def load(self) -> GlobalConfig:
        """Return the full global config."""
        return load_global_config(self.path)

    def _save(self, config: GlobalConfig) -> None:
        save_global_config(config, self.path)

    def list_logins(self) -> list[LoginRecord]:
        """Return all logins in insertion order."""
        return self.load().logins

    def get_login_by_name(self, name: str) -> Optional[LoginRecord]:
        """Return the login called *name*, or ``None``."""
        wanted = name.lower()
        for record in self.list_logins():
            if record.name.lower() == wanted:
                return record
        return None

    def add_login(self, record: LoginRecord) -> None:
        """Add a new login.

        The first login ever added becomes the default.

        Raises:
            ConfigError: If a login with the same name already exists.
        """
        config = self.load()
        wanted = record.name.lower()
        if any(existing.name.lower() == wanted for existing in config.logins):
            raise ConfigError(f"Login '{record.name}' already exists")
        if not config.logins:
            record.default = True
        config.logins.append(record)
        self._save(config)
        logger.debug("Added login '%s' for %s", record.name, record.url)

    def update_login(self, record: LoginRecord) -> None:
        """Replace the stored login that has the same name as *record*.

        Raises:
            ConfigError: If no such login exists.
        """
        config = self.load()
        for i, existing in enumerate(config.logins):
            if existing.name == record.name:
                config.logins[i] = record
                self._save(config)
                logger.debug("Updated login '%s'", record.name)
                return
        raise ConfigError(f"Login '{record.name}' not found")

    def delete_login(self, name: str) -> None:
        """Remove the login called *name*.

        Raises:
            ConfigError: If no such login exists.
        """
        config = self.load()
        remaining = [r for r in config.logins if r.name.lower() != name.lower()]
        if len(remaining) == len(config.logins):
            raise ConfigError(f"Cannot delete login '{name}', it does not exist")
        if remaining and not any(r.default for r in remaining):
            remaining[0].default = True
        config.logins = remaining
        self._save(config)

    def get_default_login(self) -> LoginRecord:
        """Return the default login, falling back to the first one.

        Raises:
            ConfigError: If no logins are configured.
        """
        logins = self.list_logins()
        if not logins:
            raise ConfigError("No available login")
        for record in logins:
            if record.default:
                return record
        return logins[0]

    def set_default_login(self, name: str) -> None:
        """Mark *name* as the default login.

        Raises:
            ConfigError: If no such login exists.
        """
        config = self.load()
        found = False
        for record in config.logins:
            record.default = record.name.lower() == name.lower()
            found = found or record.default
        if not found:
            raise ConfigError(f"Login '{name}' not found")
        self._save(config)

    def generate_login_name(self, url: str) -> str:
        """Derive a unique login name from *url*'s host.

        ``https://gitea.example.com:3000`` becomes ``gitea.example.com-3000``;
        if that name is taken a numeric suffix is appended.
        """
        base = _slugify_host(url)
        taken = {r.name.lower() for r in self.list_logins()}
        name = base
        index = 2
        while name.lower() in taken:
            name = f"{base}-{index}"
            index += 1
        return name
