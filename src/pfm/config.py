"""Configuration management for pfm."""

import os
from dataclasses import dataclass
from pathlib import Path

import platformdirs

from .errors import ConfigError, StorageError

DEFAULT_SEARCH_WINDOW = 100
DEFAULT_LOCK_TIMEOUT = 5.0
DEFAULT_STARTUP_GRACE = 0.5
DEFAULT_SSH_COMMAND = "ssh"


@dataclass
class Settings:
    """Tunables read from the environment."""

    search_window: int = DEFAULT_SEARCH_WINDOW
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT
    startup_grace: float = DEFAULT_STARTUP_GRACE
    ssh_command: str = DEFAULT_SSH_COMMAND


def get_config_dir() -> Path:
    """Get the configuration directory for pfm.

    ``PFM_HOME`` overrides the platform default.

    Returns:
        Path to configuration directory
    """
    override = os.getenv("PFM_HOME")
    if override:
        config_dir = Path(override).expanduser()
    else:
        config_dir = Path(platformdirs.user_config_dir("pfm"))
    try:
        config_dir.mkdir(parents=True, exist_ok=True, mode=0o700)
    except OSError as e:
        raise StorageError(f"Cannot create config directory {config_dir}: {e}") from e
    return config_dir


def get_registry_path() -> Path:
    """Get the registry file path.

    Returns:
        Path to registry file
    """
    return get_config_dir() / "forwards.json"


def load_settings() -> Settings:
    """Build settings from ``PFM_*`` environment variables.

    Raises:
        ConfigError: If a numeric variable does not parse
    """
    return Settings(
        search_window=_env_number("PFM_SEARCH_WINDOW", int, DEFAULT_SEARCH_WINDOW),
        lock_timeout=_env_number("PFM_LOCK_TIMEOUT", float, DEFAULT_LOCK_TIMEOUT),
        startup_grace=_env_number("PFM_STARTUP_GRACE", float, DEFAULT_STARTUP_GRACE),
        ssh_command=os.getenv("PFM_SSH_COMMAND") or DEFAULT_SSH_COMMAND,
    )


def _env_number(name: str, kind: type, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        value = kind(raw)
    except ValueError:
        raise ConfigError(f"{name} must be a number, got {raw!r}") from None
    if value < 0:
        raise ConfigError(f"{name} must not be negative, got {raw!r}")
    return value
