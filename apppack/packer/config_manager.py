"""
Configuration manager for application packaging.

Handles apppack.json and Packfile (YAML) in the application directory, with
an explicit config path taking priority over both.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from .base_types import ConfigurationError
from .exclusion import DEFAULT_EXCLUDE_PREFIXES, DEFAULT_EXCLUDE_SUFFIXES, split_list

logger = logging.getLogger(__name__)

JSON_CONFIG_NAME = "apppack.json"
YAML_CONFIG_NAME = "Packfile"

# Go main package declaring func main()
DEFAULT_PROJECT_SIGNATURE = r'(?s)package main\b.*?func main\(\)'

LIST_FIELDS = ("exclude_prefix", "exclude_suffix")
BOOL_FIELDS = ("follow_symlinks", "skip_symlinks", "verbose", "build", "check_project")

_TRUE_VALUES = ('1', 'true', 'yes', 'on', 't', 'y')
_FALSE_VALUES = ('0', 'false', 'no', 'off', 'f', 'n')


def parse_bool(value: str) -> bool:
    """Parse a ``true``/``false`` style value; raises ``ValueError`` otherwise."""
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"expected a boolean, got '{value}'")


@dataclass
class PackConfig:
    """Packaging configuration."""

    # Input / output
    app_path: str = ""  # empty = current directory
    output_dir: str = ""  # empty = current directory
    format: str = "tar.gz"  # "tar.gz" or "zip"

    # Exclusion rules
    exclude_prefix: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_PREFIXES))
    exclude_suffix: List[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDE_SUFFIXES))
    exclude_regexp: List[str] = field(default_factory=list)

    # Symlink policy: store link (default), follow, or skip
    follow_symlinks: bool = False
    skip_symlinks: bool = False

    verbose: bool = False

    # Build step
    build: bool = True
    build_args: str = ""
    build_envs: List[str] = field(default_factory=list)

    # Project check
    check_project: bool = True
    project_signature: str = DEFAULT_PROJECT_SIGNATURE

    def validate(self) -> None:
        """Raise ``ConfigurationError`` for contradictory settings."""
        if self.follow_symlinks and self.skip_symlinks:
            raise ConfigurationError("follow_symlinks and skip_symlinks are mutually exclusive")


class ConfigManager:
    """
    Configuration manager for packaging settings.

    Load priority:
    1. Custom config path (if provided)
    2. apppack.json, then Packfile applied on top of it
    3. Default configuration
    """

    def __init__(self, app_path: Path):
        self.app_path = Path(app_path)
        self._config: Optional[PackConfig] = None

    def load_config(self, custom_config_path: Optional[Path] = None) -> PackConfig:
        config = PackConfig()

        if custom_config_path is not None:
            custom_config_path = Path(custom_config_path)
            if not custom_config_path.exists():
                raise ConfigurationError(f"Config file does not exist: {custom_config_path}")
            self._apply(config, self._load_config_file(custom_config_path))
            self._config = config
            return config

        json_path = self.app_path / JSON_CONFIG_NAME
        if json_path.exists():
            logger.info(f"Detected {JSON_CONFIG_NAME}")
            self._apply(config, self._load_config_file(json_path))

        yaml_path = self.app_path / YAML_CONFIG_NAME
        if yaml_path.exists():
            logger.info(f"Detected {YAML_CONFIG_NAME}")
            self._apply(config, self._load_config_file(yaml_path, as_yaml=True))

        self._config = config
        return config

    def _load_config_file(self, config_path: Path, as_yaml: Optional[bool] = None) -> Dict[str, Any]:
        """Load a JSON or YAML configuration file."""
        if as_yaml is None:
            as_yaml = config_path.suffix.lower() in ('.yaml', '.yml')
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f) if as_yaml else json.load(f)
        except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Could not load config file {config_path}: {e}") from e

        if data is None:
            return {}
        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")
        section = data.get("pack")
        if isinstance(section, dict):
            return section
        return data

    def _apply(self, config: PackConfig, config_data: Dict[str, Any]) -> None:
        """Apply raw configuration values onto ``config``."""
        known = {f.name for f in fields(PackConfig)}
        for key, value in config_data.items():
            if key not in known:
                logger.warning(f"Ignoring unknown config key: {key}")
                continue
            if key in BOOL_FIELDS:
                value = self._coerce_bool(key, value)
            elif key in LIST_FIELDS:
                value = split_list(value)
            elif key in ("exclude_regexp", "build_envs"):
                value = [value] if isinstance(value, str) else list(value or [])
            setattr(config, key, value)

    @staticmethod
    def _coerce_bool(key: str, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            try:
                return parse_bool(value)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {key}: {e}") from e
        raise ConfigurationError(f"Invalid value for {key}: expected a boolean, got {value!r}")

    def get_config(self) -> PackConfig:
        """Get the loaded configuration."""
        if self._config is None:
            self._config = self.load_config()
        return self._config


def load_config(app_path: Path, custom_config_path: Optional[Path] = None) -> PackConfig:
    """Convenience function to load configuration."""
    manager = ConfigManager(app_path)
    return manager.load_config(custom_config_path)
