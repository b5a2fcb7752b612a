"""
Parley - Configuration Management

This module handles loading, merging, and managing configuration from
TOML files and environment variables. Supports default values and
runtime configuration updates.
"""

import copy
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional

from .constants import (
    CONFIG_FILENAME,
    DEFAULT_DATA_DIR,
    ENV_PREFIX,
    MAX_PAYLOAD_SIZE,
    STORE_FILENAME,
)
from .errors import ConfigError
from .store import StoreMode

# Default configuration dictionary
DEFAULT_CONFIG: Dict[str, Any] = {
    "store": {
        "mode": StoreMode.PASSWORD.value,
        "path": "",  # empty means <data dir>/keystore.blob
    },
    "limits": {
        "max_payload_size": MAX_PAYLOAD_SIZE,
    },
    "logging": {
        "level": "INFO",
        "file_logging": True,
        "console_logging": False,
    },
}


class Config:
    """Configuration manager for Parley.

    Loads configuration from TOML files, merges with defaults,
    and applies environment variable overrides. Provides a simple
    interface for accessing and updating configuration values.

    Attributes:
        config_path: Path to the configuration file
        data: Configuration dictionary
    """

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize configuration manager.

        Args:
            config_path: Path to configuration file (optional)
                If not provided, uses default location
        """
        if config_path is None:
            config_path = Path(DEFAULT_DATA_DIR).expanduser() / CONFIG_FILENAME

        self.config_path = Path(config_path)
        self.data = self._load_config()

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from file and merge with defaults.

        Raises:
            ConfigError: If configuration parsing fails
        """
        config = copy.deepcopy(DEFAULT_CONFIG)

        if self.config_path.exists():
            try:
                with open(self.config_path, "rb") as f:
                    file_config = tomllib.load(f)
            except (OSError, tomllib.TOMLDecodeError) as e:
                raise ConfigError(
                    f"Failed to parse configuration file: {e}",
                    {"path": str(self.config_path), "error": str(e)},
                ) from e

            config = self._merge_config(config, file_config)

        return self._apply_env_overrides(config)

    def _merge_config(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Recursively merge override config into base config."""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def _apply_env_overrides(self, config: Dict[str, Any]) -> Dict[str, Any]:
        """Apply environment variable overrides to configuration.

        Environment variables follow the pattern: PARLEY_SECTION_KEY
        For example: PARLEY_STORE_MODE=platform
        """
        for section, settings in config.items():
            if not isinstance(settings, dict):
                continue

            for key in list(settings):
                env_value = os.environ.get(f"{ENV_PREFIX}_{section.upper()}_{key.upper()}")
                if env_value is None:
                    continue

                original_type = type(settings[key])
                try:
                    if original_type == bool:
                        settings[key] = env_value.lower() in ("true", "1", "yes")
                    elif original_type == int:
                        settings[key] = int(env_value)
                    else:
                        settings[key] = env_value
                except ValueError:
                    # Keep original value if conversion fails
                    pass

        return config

    def get(self, section: str, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        return self.data.get(section, {}).get(key, default)

    def set(self, section: str, key: str, value: Any) -> None:
        """Set a configuration value."""
        self.data.setdefault(section, {})[key] = value

    @property
    def data_dir(self) -> Path:
        return self.config_path.parent

    def store_mode(self) -> StoreMode:
        """
        The configured persistence mode.

        Raises:
            ConfigError: If the mode is not recognized
        """
        value = self.get("store", "mode", StoreMode.PASSWORD.value)
        try:
            return StoreMode.parse(value)
        except ValueError as e:
            raise ConfigError(str(e), {"mode": value}) from e

    def store_path(self) -> Path:
        path = self.get("store", "path", "")
        return Path(path).expanduser() if path else self.data_dir / STORE_FILENAME

    def max_payload_size(self) -> Optional[int]:
        size = self.get("limits", "max_payload_size", MAX_PAYLOAD_SIZE)
        return size if size and size > 0 else None

    def save(self) -> None:
        """Save current configuration to file.

        Raises:
            ConfigError: If saving fails
        """
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w", encoding="utf-8") as f:
                self._write_toml(f, self.data)
        except OSError as e:
            raise ConfigError(
                f"Failed to save configuration: {e}",
                {"path": str(self.config_path), "error": str(e)},
            ) from e

    def _write_toml(self, file, data: Dict[str, Any]) -> None:
        """Write configuration data as TOML format."""
        for section, settings in data.items():
            if isinstance(settings, dict):
                file.write(f"[{section}]\n")
                for key, value in settings.items():
                    if isinstance(value, bool):
                        file.write(f"{key} = {str(value).lower()}\n")
                    elif isinstance(value, (int, float)):
                        file.write(f"{key} = {value}\n")
                    elif isinstance(value, str):
                        escaped = value.replace("\\", "\\\\").replace('"', '\\"')
                        file.write(f'{key} = "{escaped}"\n')
                file.write("\n")

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self.data)
