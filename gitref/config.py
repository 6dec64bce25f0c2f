"""Configuration management for gitref.

All global state lives under one root directory (``~/.gitreference`` unless
``GITREF_HOME`` is set)::

    <root>/config/<key>.json   one file per setting, {"value": ...}
    <root>/repos.json          cache index
    <root>/loading.json        loading state shared by all workspaces
    <root>/repos/              cached clones
"""

import json
import logging
import os
import shutil
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from .exceptions import ConfigError
from .validation import validate_branch_name, validate_positive_integer

logger = logging.getLogger(__name__)

ROOT_ENV_VAR = "GITREF_HOME"
ROOT_DIR_NAME = ".gitreference"
CONFIG_DIR_NAME = "config"
REPOS_DIR_NAME = "repos"
REPOS_INDEX_FILE = "repos.json"
LOADING_STATE_FILE = "loading.json"
LEGACY_CONFIG_FILE = "config.json"

CONFIG_VERSION = "2.0.0"

DEFAULTS: dict[str, Any] = {
    "default_branch": "main",
    "shallow_clone": True,
    "shallow_depth": 1,
}

# Keys as they appeared in the single-file legacy config
LEGACY_KEYS = {
    "defaultBranch": "default_branch",
    "shallowClone": "shallow_clone",
    "shallowDepth": "shallow_depth",
}

_TRUE_STRINGS = {"true", "1", "yes", "on"}
_FALSE_STRINGS = {"false", "0", "no", "off"}


@dataclass
class MigrationResult:
    """Outcome of migrating the legacy single-file config."""

    migrated: bool
    message: str
    configs_migrated: list[str] = field(default_factory=list)
    repos_migrated: int = 0
    backup_path: Optional[Path] = None


class Config:
    """Reads and writes gitref settings and knows where state files live."""

    def __init__(self, root_dir: Optional[Path] = None):
        """Initialize configuration.

        Args:
            root_dir: Root directory for all state. Defaults to $GITREF_HOME
                      or ~/.gitreference
        """
        self._root_dir = root_dir

    # -------------------------------------------------------------------------
    # Paths
    # -------------------------------------------------------------------------

    @property
    def root_dir(self) -> Path:
        if self._root_dir is not None:
            return self._root_dir
        env_root = os.environ.get(ROOT_ENV_VAR)
        if env_root:
            return Path(env_root).expanduser()
        return Path.home() / ROOT_DIR_NAME

    @property
    def config_dir(self) -> Path:
        return self.root_dir / CONFIG_DIR_NAME

    @property
    def repos_dir(self) -> Path:
        return self.root_dir / REPOS_DIR_NAME

    @property
    def repos_index_path(self) -> Path:
        return self.root_dir / REPOS_INDEX_FILE

    @property
    def loading_state_path(self) -> Path:
        return self.root_dir / LOADING_STATE_FILE

    @property
    def legacy_config_path(self) -> Path:
        return self.root_dir / LEGACY_CONFIG_FILE

    def get_config_path(self, key: Optional[str] = None) -> Path:
        """Get the file backing a setting, or the config directory itself."""
        if key is None:
            return self.config_dir
        self._check_key(key)
        return self.config_dir / f"{key}.json"

    def ensure_dirs(self) -> None:
        """Create the root, config and repos directories if missing."""
        try:
            for directory in (self.root_dir, self.config_dir, self.repos_dir):
                directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigError(f"Cannot create config directory: {e}") from e

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    @staticmethod
    def keys() -> list[str]:
        return list(DEFAULTS)

    def _check_key(self, key: str) -> None:
        if key not in DEFAULTS:
            raise ConfigError(
                f"Unknown configuration key: {key}. "
                f"Valid keys: {', '.join(DEFAULTS)}"
            )

    def get(self, key: str) -> Any:
        """Read a setting, falling back to its default.

        Args:
            key: Setting name (one of :meth:`keys`)

        Returns:
            Stored value, or the default if unset or unreadable
        """
        self._check_key(key)
        path = self.get_config_path(key)
        if not path.exists():
            return DEFAULTS[key]
        try:
            with open(path, encoding="utf-8") as f:
                content = json.load(f)
            return content["value"]
        except (OSError, json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning(f"Ignoring unreadable config file {path}: {e}")
            return DEFAULTS[key]

    def set(self, key: str, value: Any) -> Any:
        """Validate and persist a setting.

        Args:
            key: Setting name
            value: New value; strings from the CLI are coerced to the key's type

        Returns:
            The coerced value that was written
        """
        self._check_key(key)
        coerced = self._coerce(key, value)
        self.ensure_dirs()
        path = self.get_config_path(key)
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"value": coerced}, f, indent=2)
        except OSError as e:
            raise ConfigError(f"Failed to write config file {path}: {e}") from e
        logger.debug(f"Set config {key}={coerced!r}")
        return coerced

    def reset(self, key: str) -> Any:
        """Restore a setting to its default value."""
        return self.set(key, DEFAULTS[key])

    def get_all(self) -> dict[str, Any]:
        return {key: self.get(key) for key in DEFAULTS}

    def _coerce(self, key: str, value: Any) -> Any:
        if key == "default_branch":
            branch = str(value).strip()
            result = validate_branch_name(branch)
            if not result:
                raise ConfigError(result.message or "Invalid branch name")
            return branch
        if key == "shallow_clone":
            if isinstance(value, bool):
                return value
            text = str(value).strip().lower()
            if text in _TRUE_STRINGS:
                return True
            if text in _FALSE_STRINGS:
                return False
            raise ConfigError(f"shallow_clone must be true or false, got: {value}")
        if key == "shallow_depth":
            result = validate_positive_integer(value, field_name="shallow_depth")
            if not result:
                raise ConfigError(result.message or "Invalid depth")
            return int(value)
        return value

    @property
    def default_branch(self) -> str:
        return self.get("default_branch")

    @property
    def shallow_clone(self) -> bool:
        return self.get("shallow_clone")

    @property
    def shallow_depth(self) -> int:
        return self.get("shallow_depth")

    # -------------------------------------------------------------------------
    # Legacy migration
    # -------------------------------------------------------------------------

    def needs_migration(self) -> bool:
        """Check whether a legacy config.json should be split into new files."""
        if not self.legacy_config_path.exists():
            return False
        config_empty = not self.config_dir.exists() or not any(
            self.config_dir.iterdir()
        )
        index_missing = not self.repos_index_path.exists()
        if not config_empty and not index_missing:
            return False

        legacy = self._read_legacy()
        if not legacy:
            return False
        if index_missing and legacy.get("repos"):
            return True
        return config_empty and any(key in legacy for key in LEGACY_KEYS)

    def _read_legacy(self) -> Optional[dict]:
        try:
            with open(self.legacy_config_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to read legacy config: {e}")
            return None
        return data if isinstance(data, dict) else None

    def _backup_legacy(self) -> Path:
        backup = self.legacy_config_path.with_name(LEGACY_CONFIG_FILE + ".backup")
        if backup.exists():
            stamp = datetime.now().strftime("%Y%m%dT%H%M%S")
            backup = backup.with_name(f"{backup.name}.{stamp}")
        shutil.copy2(self.legacy_config_path, backup)
        return backup

    def migrate_legacy_config(self) -> MigrationResult:
        """Split a legacy single-file config into per-key files and repos.json.

        The legacy file is backed up first and left in place.
        """
        if not self.needs_migration():
            return MigrationResult(False, "Nothing to migrate")

        legacy = self._read_legacy()
        if legacy is None:
            return MigrationResult(False, "Legacy config could not be read")

        try:
            backup = self._backup_legacy()
        except OSError as e:
            logger.warning(f"Failed to back up legacy config: {e}")
            return MigrationResult(False, "Legacy config could not be backed up")

        result = MigrationResult(True, "Migrated legacy config", backup_path=backup)
        for legacy_key, key in LEGACY_KEYS.items():
            if legacy_key in legacy:
                try:
                    self.set(key, legacy[legacy_key])
                    result.configs_migrated.append(key)
                except ConfigError as e:
                    logger.warning(f"Skipping legacy setting {legacy_key}: {e}")

        repos = legacy.get("repos")
        if isinstance(repos, dict) and repos and not self.repos_index_path.exists():
            self.ensure_dirs()
            with open(self.repos_index_path, "w", encoding="utf-8") as f:
                json.dump({"repos": repos}, f, indent=2)
            result.repos_migrated = len(repos)

        logger.info(
            f"Migrated {len(result.configs_migrated)} setting(s) and "
            f"{result.repos_migrated} repository(ies) from {self.legacy_config_path}"
        )
        return result


config = Config()
