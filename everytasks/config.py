"""Application configuration management."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import ValidationError

from everytasks.models import AppConfig, SyncPolicy

_CONFIG_DIR = Path.home() / ".config" / "everytasks"
_DATA_ROOT = Path.home() / ".local" / "share" / "everytasks"

_CONFIG_FILE = _CONFIG_DIR / "config.json"

# Namespace the widget process can reach; mirrors an app-group container.
SHARED_NAMESPACE = "group.everytasks"


def load_config() -> AppConfig:
    """Load config from disk, returning defaults if none exists."""
    if _CONFIG_FILE.exists():
        try:
            data = json.loads(_CONFIG_FILE.read_text())
            return AppConfig(**data)
        except (json.JSONDecodeError, TypeError, ValidationError):
            pass
    return AppConfig()


def save_config(config: AppConfig) -> Path:
    """Write config to disk. Returns the config file path."""
    _CONFIG_DIR.mkdir(parents=True, exist_ok=True)
    _CONFIG_FILE.write_text(config.model_dump_json(indent=2))
    return _CONFIG_FILE


def get_data_dir(config: Optional[AppConfig] = None) -> Path:
    """Directory of the primary process's key-value store."""
    config = config or load_config()
    if config.data_dir is not None:
        return Path(config.data_dir)
    return _DATA_ROOT / "store"


def get_shared_dir(config: Optional[AppConfig] = None) -> Path:
    """Directory shared with the widget process."""
    config = config or load_config()
    if config.shared_dir is not None:
        return Path(config.shared_dir)
    return _DATA_ROOT / SHARED_NAMESPACE


def set_data_dir(path: str) -> AppConfig:
    """Keep the primary store in a custom directory and save config."""
    resolved = Path(path).expanduser().resolve()
    config = load_config()
    config.data_dir = str(resolved)
    save_config(config)
    return config


def set_shared_dir(path: str) -> AppConfig:
    """Point both processes at a custom shared directory and save config."""
    resolved = Path(path).expanduser().resolve()
    config = load_config()
    config.shared_dir = str(resolved)
    save_config(config)
    return config


def set_sync_policy(policy: SyncPolicy) -> AppConfig:
    config = load_config()
    config.sync_policy = policy
    save_config(config)
    return config


def reset_paths() -> AppConfig:
    """Go back to the default data and shared directories."""
    config = load_config()
    config.data_dir = None
    config.shared_dir = None
    save_config(config)
    return config
