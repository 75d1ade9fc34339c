"""
Configuration management for mynotes.

Uses XDG base directories:
- Config: ~/.config/mynotes/config.toml
- Data: ~/Documents/mynotes/ (notes.db and the auth session)
"""

from pathlib import Path
from typing import Any
import os

from mynotes.exceptions import DirectoryUnavailableError

# XDG defaults
DEFAULT_CONFIG_HOME = Path.home() / ".config"
DEFAULT_DATA_HOME = Path.home() / "Documents" / "mynotes"

DB_NAME = "notes.db"
SESSION_NAME = "session.json"


def get_config_dir() -> Path:
    """Get the config directory (XDG_CONFIG_HOME/mynotes)."""
    base = Path(os.environ.get("XDG_CONFIG_HOME", DEFAULT_CONFIG_HOME))
    return base / "mynotes"


def get_notes_home() -> Path:
    """Get the notes data directory (~/Documents/mynotes or MYNOTES_HOME)."""
    if env_home := os.environ.get("MYNOTES_HOME"):
        return Path(env_home)
    return DEFAULT_DATA_HOME


def get_config_path() -> Path:
    """Get the path to config.toml."""
    return get_config_dir() / "config.toml"


def get_documents_dir() -> Path:
    """
    Resolve the documents directory, creating it if needed.

    Raises DirectoryUnavailableError if it cannot be created.
    """
    home = get_notes_home()
    try:
        home.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryUnavailableError(f"Cannot use {home}: {e}") from e
    if not home.is_dir():
        raise DirectoryUnavailableError(f"Not a directory: {home}")
    return home


def get_db_path() -> Path:
    """Get the path to notes.db."""
    return get_documents_dir() / DB_NAME


def get_session_path() -> Path:
    """Get the path to session.json."""
    return get_notes_home() / SESSION_NAME


def load_config() -> dict[str, Any]:
    """
    Load configuration from config.toml.

    Returns default config if file doesn't exist.
    """
    config_path = get_config_path()

    if not config_path.exists():
        return get_default_config()

    # Lazy import tomli only when needed
    import tomli

    with open(config_path, "rb") as f:
        loaded = tomli.load(f)

    config = get_default_config()
    for section, values in loaded.items():
        if isinstance(values, dict):
            config.setdefault(section, {}).update(values)
        else:
            config[section] = values
    return config


def get_default_config() -> dict[str, Any]:
    """Return default configuration."""
    return {
        "mynotes": {
            "home": str(get_notes_home()),
        },
        "auth": {
            "provider": "firebase",
            "base_url": "https://identitytoolkit.googleapis.com/v1",
            "token_url": "https://securetoken.googleapis.com/v1/token",
        },
        "logging": {
            "level": "WARNING",
        },
    }
