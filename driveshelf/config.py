"""
DriveShelf Configuration System.

Priority order (highest to lowest):
1. Command-line arguments
2. Environment variables
3. Configuration file (YAML)
4. Default values
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from driveshelf.onedrive import DriveLocation

logger = logging.getLogger(__name__)


# Valid duration strategies ("auto" = probe FLAC, query metadata otherwise)
VALID_STRATEGIES = {"auto", "probe", "metadata"}

# Valid log levels
VALID_LOG_LEVELS = {"debug", "info", "warning", "error"}

# Environment variable mappings
ENV_MAPPINGS = {
    # OneDrive
    "DRIVESHELF_CLIENT_ID": ("onedrive", "client_id"),
    "DRIVESHELF_CLIENT_SECRET": ("onedrive", "client_secret"),
    "DRIVESHELF_REFRESH_TOKEN": ("onedrive", "refresh_token"),
    "DRIVESHELF_DRIVE": ("onedrive", "drive"),
    # Library
    "DRIVESHELF_ROOT": ("library", "root"),
    "DRIVESHELF_EXTENSION": ("library", "extension"),
    "DRIVESHELF_STRATEGY": ("library", "strategy"),
    # Logging
    "DRIVESHELF_LOG_LEVEL": ("logging", "level"),
}


class ConfigError(Exception):
    """Configuration error."""

    pass


@dataclass
class OneDriveConfig:
    """OneDrive application and account configuration."""

    client_id: str = ""
    client_secret: str = ""
    refresh_token: str = ""
    drive: str = "me"  # "me" or "<kind>:<id>"

    @property
    def location(self) -> DriveLocation:
        """Parsed drive location."""
        return DriveLocation.parse(self.drive)


@dataclass
class LibraryConfig:
    """Album library layout configuration."""

    root: str = ""  # Catalog root folder, "" for the drive root
    extension: str = "flac"
    strategy: str = "auto"


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class Config:
    """Complete DriveShelf configuration."""

    onedrive: OneDriveConfig = field(default_factory=OneDriveConfig)
    library: LibraryConfig = field(default_factory=LibraryConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def validate_config(config: Config) -> None:
    """
    Validate configuration.

    Raises:
        ConfigError: If configuration is invalid
    """
    errors = []

    # OneDrive credentials
    if not config.onedrive.client_id:
        errors.append("OneDrive client_id is required")
    if not config.onedrive.client_secret:
        errors.append("OneDrive client_secret is required")
    if not config.onedrive.refresh_token:
        errors.append("OneDrive refresh_token is required")
    try:
        config.onedrive.location
    except ValueError as e:
        errors.append(f"Invalid drive: {e}")

    # Library
    extension = config.library.extension
    if not extension or "/" in extension or "." in extension or ":" in extension:
        errors.append(f"Invalid extension: {extension!r}")
    if config.library.strategy not in VALID_STRATEGIES:
        errors.append(
            f"Invalid strategy: {config.library.strategy}. "
            f"Valid values: {sorted(VALID_STRATEGIES)}"
        )
    if ":" in config.library.root:
        errors.append(f"Invalid library root: {config.library.root!r}")

    # Logging
    if config.logging.level.lower() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid log level: {config.logging.level}. "
            f"Valid values: {sorted(VALID_LOG_LEVELS)}"
        )

    if errors:
        raise ConfigError("Configuration validation failed:\n  - " + "\n  - ".join(errors))


def load_yaml_config(path: Path) -> dict:
    """
    Load configuration from YAML file.

    Args:
        path: Path to YAML file

    Returns:
        Configuration dictionary

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    if not path.exists():
        logger.debug(f"Config file not found: {path}")
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config: {e}")
    except IOError as e:
        raise ConfigError(f"Error reading config file: {e}")

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Config file must contain a mapping: {path}")
    return data


def _set_nested(d: dict, path: tuple, value: Any) -> None:
    """Set a nested dictionary value using a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def load_env_config() -> dict:
    """
    Load configuration from environment variables.

    Returns:
        Configuration dictionary with values from environment
    """
    result: dict = {}

    for env_var, path in ENV_MAPPINGS.items():
        value = os.environ.get(env_var)
        if value is not None:
            _set_nested(result, path, value)

    return result


def _deep_merge(base: dict, override: dict) -> None:
    """Recursively merge override into base."""
    for key, value in override.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def merge_configs(*configs: dict) -> dict:
    """
    Deep merge multiple configuration dictionaries.
    Later configs override earlier ones.
    """
    result: dict = {}
    for config in configs:
        _deep_merge(result, config)
    return result


def dict_to_config(d: dict) -> Config:
    """Convert a dictionary to Config dataclass."""
    config = Config()

    # OneDrive
    if "onedrive" in d:
        od = d["onedrive"] or {}
        config.onedrive.client_id = str(od.get("client_id", config.onedrive.client_id))
        config.onedrive.client_secret = str(
            od.get("client_secret", config.onedrive.client_secret)
        )
        config.onedrive.refresh_token = str(
            od.get("refresh_token", config.onedrive.refresh_token)
        )
        config.onedrive.drive = str(od.get("drive", config.onedrive.drive))

    # Library
    if "library" in d:
        lib = d["library"] or {}
        root = lib.get("root", config.library.root)
        config.library.root = str(root or "").strip("/")
        config.library.extension = str(lib.get("extension", config.library.extension)).lower()
        config.library.strategy = str(lib.get("strategy", config.library.strategy)).lower()

    # Logging
    if "logging" in d:
        config.logging.level = str((d["logging"] or {}).get("level", config.logging.level))

    return config


def load_config(
    config_path: Optional[Path] = None,
    cli_args: Optional[dict] = None,
) -> Config:
    """
    Load configuration from all sources.

    Priority (highest to lowest):
    1. CLI arguments
    2. Environment variables
    3. Config file
    4. Defaults

    Args:
        config_path: Path to YAML config file
        cli_args: Dictionary of CLI arguments

    Returns:
        Merged Config object

    Raises:
        ConfigError: If configuration is invalid
    """
    configs = []

    # 1. Load from file (lowest priority of explicit configs)
    if config_path:
        file_config = load_yaml_config(config_path)
        if file_config:
            configs.append(file_config)
            logger.debug(f"Loaded config from {config_path}")

    # 2. Load from environment
    env_config = load_env_config()
    if env_config:
        configs.append(env_config)
        logger.debug("Loaded config from environment variables")

    # 3. Load from CLI (highest priority)
    if cli_args:
        configs.append(cli_args)
        logger.debug("Loaded config from CLI arguments")

    merged = merge_configs(*configs) if configs else {}
    config = dict_to_config(merged)
    validate_config(config)

    return config
