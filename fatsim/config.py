"""
User settings for the FAT volume simulator.

Settings live in a JSON file merged over built-in defaults. The store
location and the settings file itself can be redirected with the
FATSIM_STORE and FATSIM_CONFIG environment variables.
"""

import json
import os
from pathlib import Path
from typing import Any

from .constants import (
    BOOTSTRAP_CLUSTER_SIZE,
    BOOTSTRAP_TOTAL_CLUSTERS,
    DEFAULT_FAT_TYPE,
    DEFAULT_LABEL,
)
from .logging_config import get_logger

log = get_logger('config')

ENV_STORE = 'FATSIM_STORE'
ENV_CONFIG = 'FATSIM_CONFIG'


def get_config_dir() -> Path:
    """Directory holding the settings file and the default store."""
    # Use AppData on Windows, ~/.config on Linux/Mac
    if os.name == 'nt':
        app_data = os.environ.get('APPDATA', os.path.expanduser('~'))
        return Path(app_data) / 'fatsim'
    return Path.home() / '.config' / 'fatsim'


def get_config_path() -> Path:
    """Get the path to the settings file."""
    override = os.environ.get(ENV_CONFIG)
    if override:
        return Path(override).expanduser()
    return get_config_dir() / 'settings.json'


def default_settings() -> dict[str, Any]:
    return {
        'store_path': str(get_config_dir() / 'fatsim.db.json'),
        'bootstrap_total_clusters': BOOTSTRAP_TOTAL_CLUSTERS,
        'bootstrap_cluster_size': BOOTSTRAP_CLUSTER_SIZE,
        'fat_type': DEFAULT_FAT_TYPE,
        'label': DEFAULT_LABEL,
        'autosave': True,
    }


class Settings:
    """Settings loaded from file and environment, with explicit save."""

    def __init__(self, config_path: str | os.PathLike | None = None):
        self._defaults = default_settings()
        self._settings: dict[str, Any] = dict(self._defaults)
        self._config_path = Path(config_path) if config_path is not None else get_config_path()
        self._load()

        store_override = os.environ.get(ENV_STORE)
        if store_override:
            self._settings['store_path'] = store_override

    @property
    def config_path(self) -> Path:
        return self._config_path

    def _load(self):
        """Load settings from file, keeping defaults for anything missing."""
        if not self._config_path.exists():
            return
        try:
            with open(self._config_path, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            log.warning("Ignoring unreadable settings file %s: %s", self._config_path, e)
            return

        if not isinstance(loaded, dict):
            log.warning("Ignoring settings file %s: not a JSON object", self._config_path)
            return

        # Merge with defaults (in case new settings were added)
        for key, value in loaded.items():
            if key in self._defaults:
                self._settings[key] = value
            else:
                log.debug("Ignoring unknown setting %r", key)

    def save(self):
        """Write the current settings to the settings file."""
        self._config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self._config_path, 'w', encoding='utf-8') as f:
            json.dump(self._settings, f, indent=2)

    def get(self, key: str, default: Any = None) -> Any:
        """Get a setting value."""
        return self._settings.get(key, default)

    def set(self, key: str, value: Any):
        """Set a setting value (call save() to persist it)."""
        self._settings[key] = value

    @property
    def store_path(self) -> Path:
        return Path(self._settings['store_path']).expanduser()

    @property
    def autosave(self) -> bool:
        return bool(self._settings['autosave'])

    def open_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for FatFileSystem.open()."""
        return {
            'autosave': self.autosave,
            'bootstrap_total_clusters': int(self._settings['bootstrap_total_clusters']),
            'bootstrap_cluster_size': int(self._settings['bootstrap_cluster_size']),
            'fat_type': self._settings['fat_type'],
            'label': self._settings['label'],
        }
