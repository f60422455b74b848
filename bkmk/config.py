"""
Configuration management for bkmk.

Provides a hierarchical settings system with sensible defaults.
Supports both a user file (~/.config/bkmk/settings.toml) and local
(bkmk.toml) settings. The bookmarks themselves live in a separate YAML
store whose location is one of these settings.
"""
import os
import tomli
import tomli_w
from pathlib import Path
from typing import Dict, Any, Optional
from dataclasses import dataclass, field, asdict

from bkmk.constants import (
    DEFAULT_CONFIG_DIR,
    DEFAULT_HISTORY_LIMIT,
    DEFAULT_MAX_BACKUPS,
    DEFAULT_SETTINGS_FILE,
    DEFAULT_STORE_FILE,
    DEFAULT_SUGGEST_DAYS,
    DEFAULT_SUGGEST_LIMIT,
    DEFAULT_SUGGEST_MIN_ARGS,
    LOCAL_SETTINGS_FILES,
)


def user_settings_path() -> Path:
    """Location of the per-user settings file."""
    return Path(os.path.expanduser(DEFAULT_CONFIG_DIR)) / DEFAULT_SETTINGS_FILE


@dataclass
class BkmkConfig:
    """
    bkmk settings with sensible defaults.

    Configuration hierarchy (highest to lowest priority):
    1. Command-line arguments
    2. Environment variables (BKMK_*)
    3. Explicit settings file (--config)
    4. Local settings file (./bkmk.toml or ./.bkmkrc)
    5. User settings file (~/.config/bkmk/settings.toml)
    6. Defaults
    """

    # Bookmark store
    store: str = field(default=f"{DEFAULT_CONFIG_DIR}/{DEFAULT_STORE_FILE}")
    max_backups: int = field(default=DEFAULT_MAX_BACKUPS)

    # External programs
    editor: str = field(default="")  # Empty means $EDITOR, then vi

    # History
    history_limit: int = field(default=DEFAULT_HISTORY_LIMIT)
    suggest_days: int = field(default=DEFAULT_SUGGEST_DAYS)
    suggest_min_args: int = field(default=DEFAULT_SUGGEST_MIN_ARGS)
    suggest_limit: int = field(default=DEFAULT_SUGGEST_LIMIT)

    # Display
    output_format: str = field(default="table")  # table, plain, json
    color_output: bool = field(default=True)

    # Logging
    log_level: str = field(default="WARNING")
    log_file: str = field(default="")  # Empty means stderr

    @classmethod
    def load(cls, config_file: Optional[Path] = None) -> "BkmkConfig":
        """
        Load configuration from files and environment.

        Args:
            config_file: Specific settings file to load on top of the others

        Returns:
            Merged configuration object
        """
        config = cls()

        user_path = user_settings_path()
        if user_path.exists():
            config._merge(cls._load_toml(user_path))

        # First local file found wins
        for name in LOCAL_SETTINGS_FILES:
            path = Path.cwd() / name
            if path.exists():
                config._merge(cls._load_toml(path))
                break

        if config_file and config_file.exists():
            config._merge(cls._load_toml(config_file))

        config._apply_env_vars()
        config._expand_paths()

        return config

    @staticmethod
    def _load_toml(path: Path) -> Dict[str, Any]:
        """Load TOML configuration file."""
        with open(path, "rb") as f:
            return tomli.load(f)

    def _merge(self, data: Dict[str, Any]):
        """Merge configuration data into this instance, ignoring unknown keys."""
        for key, value in data.items():
            if hasattr(self, key):
                setattr(self, key, value)

    def _apply_env_vars(self):
        """Apply environment variables with BKMK_ prefix."""
        prefix = "BKMK_"
        for key, value in os.environ.items():
            if key.startswith(prefix):
                config_key = key[len(prefix):].lower()
                if hasattr(self, config_key):
                    self.set_value(config_key, value)

    def set_value(self, key: str, value: str):
        """
        Set a field from its string form, converted to the field's type.

        Raises:
            KeyError: If the field does not exist
            ValueError: If the value does not convert
        """
        if not hasattr(self, key):
            raise KeyError(key)
        current_value = getattr(self, key)
        if isinstance(current_value, bool):
            setattr(self, key, value.lower() in ("true", "1", "yes"))
        elif isinstance(current_value, int):
            setattr(self, key, int(value))
        else:
            setattr(self, key, value)

    def _expand_paths(self):
        """Expand ~ and environment variables in paths."""
        for field_name in ("store", "log_file"):
            value = getattr(self, field_name)
            if isinstance(value, str) and value:
                setattr(self, field_name, os.path.expanduser(os.path.expandvars(value)))

    def save(self, path: Optional[Path] = None) -> Path:
        """
        Save current configuration to a TOML file.

        Args:
            path: Path to save to (defaults to the user settings file)

        Returns:
            The path written
        """
        if path is None:
            path = user_settings_path()

        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "wb") as f:
            tomli_w.dump(asdict(self), f)
        return path

    def get_store_path(self) -> Path:
        """Get the resolved bookmark store path."""
        path = Path(self.store)
        if not path.is_absolute():
            path = Path.cwd() / path
        return path


# Global configuration instance
_config: Optional[BkmkConfig] = None


def get_config(reload: bool = False, config_file: Optional[Path] = None) -> BkmkConfig:
    """
    Get the global configuration instance.

    Args:
        reload: Force reload configuration from files
        config_file: Specific settings file to load

    Returns:
        Global configuration instance
    """
    global _config
    if _config is None or reload or config_file is not None:
        _config = BkmkConfig.load(config_file)
    return _config


def init_config(store: Optional[str] = None, config_file: Optional[Path] = None,
                **kwargs) -> BkmkConfig:
    """
    Initialize configuration with command-line overrides.

    Args:
        store: Bookmark store path override
        config_file: Explicit settings file
        **kwargs: Other configuration overrides

    Returns:
        Configured instance
    """
    config = get_config(config_file=config_file)

    if store:
        config.store = os.path.expanduser(store)

    for key, value in kwargs.items():
        if hasattr(config, key) and value is not None:
            setattr(config, key, value)

    return config
