"""
DrivePlayer Configuration System.

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

logger = logging.getLogger(__name__)

VALID_LOG_LEVELS = {"debug", "info", "warning", "error"}
VALID_BACKENDS = {"local", "null"}
VALID_REPEAT_MODES = {"off", "all", "one"}

DEFAULT_TOKEN_CACHE = "~/.config/drive-player/token.json"

# Environment variable mappings
ENV_MAPPINGS = {
    # Auth
    "DRIVEPLAYER_ACCESS_TOKEN": ("auth", "access_token"),
    "DRIVEPLAYER_CLIENT_ID": ("auth", "client_id"),
    "DRIVEPLAYER_CLIENT_SECRET": ("auth", "client_secret"),
    "DRIVEPLAYER_TOKEN_CACHE": ("auth", "token_cache"),
    # Library
    "DRIVEPLAYER_FOLDER_NAME": ("library", "folder_name"),
    "DRIVEPLAYER_FOLDER_ID": ("library", "folder_id"),
    "DRIVEPLAYER_REQUEST_TIMEOUT": ("library", "request_timeout"),
    # Player
    "DRIVEPLAYER_VOLUME": ("player", "volume"),
    "DRIVEPLAYER_RESTART_THRESHOLD": ("player", "restart_threshold_seconds"),
    "DRIVEPLAYER_SHUFFLE": ("player", "shuffle"),
    "DRIVEPLAYER_REPEAT": ("player", "repeat"),
    # Backend
    "DRIVEPLAYER_BACKEND": ("backend", "type"),
    "DRIVEPLAYER_AUDIO_DEVICE": ("backend", "local", "device"),
    "DRIVEPLAYER_AUDIO_BUFFER_SIZE": ("backend", "local", "buffer_size"),
    # Logging
    "DRIVEPLAYER_LOG_LEVEL": ("logging", "level"),
}

_FLOAT_ENV_VARS = {
    "DRIVEPLAYER_REQUEST_TIMEOUT",
    "DRIVEPLAYER_VOLUME",
    "DRIVEPLAYER_RESTART_THRESHOLD",
}
_INT_ENV_VARS = {"DRIVEPLAYER_AUDIO_BUFFER_SIZE"}
_BOOL_ENV_VARS = {"DRIVEPLAYER_SHUFFLE"}


class ConfigError(Exception):
    """Configuration error."""

    pass


@dataclass
class AuthConfig:
    """
    Credential configuration.

    Either a ready access token, or an OAuth client whose refresh token is
    cached in token_cache after the first consent.
    """

    access_token: str = ""
    client_id: str = ""
    client_secret: str = ""
    token_cache: str = DEFAULT_TOKEN_CACHE


@dataclass
class LibraryConfig:
    """Remote library configuration."""

    folder_name: str = "SchoolMusic"
    folder_id: str = ""  # Resolved from folder_name if empty
    request_timeout: float = 30.0


@dataclass
class PlayerConfig:
    """Initial transport settings."""

    volume: float = 0.5
    restart_threshold_seconds: float = 3.0
    shuffle: bool = False
    repeat: str = "off"


@dataclass
class LocalConfig:
    """Local audio output configuration."""

    device: str = "default"  # "default", device index, or name substring
    buffer_size: int = 2048


@dataclass
class BackendConfig:
    """Audio output configuration."""

    type: str = "local"
    local: LocalConfig = field(default_factory=LocalConfig)


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class Config:
    """Complete DrivePlayer configuration."""

    auth: AuthConfig = field(default_factory=AuthConfig)
    library: LibraryConfig = field(default_factory=LibraryConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    backend: BackendConfig = field(default_factory=BackendConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def validate_config(config: Config) -> None:
    """
    Validate configuration.

    Raises:
        ConfigError: If configuration is invalid
    """
    errors = []

    # Credentials
    if not config.auth.access_token:
        if not config.auth.client_id or not config.auth.client_secret:
            errors.append("Either an access token or an OAuth client id and secret is required")

    # Library
    if not config.library.folder_id and not config.library.folder_name:
        errors.append("Library folder name or folder id is required")
    if config.library.request_timeout <= 0:
        errors.append(f"Invalid request timeout: {config.library.request_timeout}")

    # Player
    if not 0.0 <= config.player.volume <= 1.0:
        errors.append(f"Invalid volume: {config.player.volume}. Must be between 0 and 1")
    if config.player.restart_threshold_seconds < 0:
        errors.append(
            f"Invalid restart threshold: {config.player.restart_threshold_seconds}"
        )
    if config.player.repeat.lower() not in VALID_REPEAT_MODES:
        errors.append(
            f"Invalid repeat mode: {config.player.repeat}. "
            f"Valid values: {sorted(VALID_REPEAT_MODES)}"
        )

    # Backend
    if config.backend.type not in VALID_BACKENDS:
        errors.append(
            f"Invalid backend type: {config.backend.type}. "
            f"Valid values: {sorted(VALID_BACKENDS)}"
        )
    if config.backend.local.buffer_size <= 0:
        errors.append(f"Invalid audio buffer size: {config.backend.local.buffer_size}")

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

    Raises:
        ConfigError: If file cannot be read or parsed
    """
    if not path.exists():
        logger.debug(f"Config file not found: {path}")
        return {}

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
            return data if data else {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Error parsing YAML config: {e}")
    except IOError as e:
        raise ConfigError(f"Error reading config file: {e}")


def _set_nested(d: dict, path: tuple, value: Any) -> None:
    """Set a nested dictionary value using a path tuple."""
    for key in path[:-1]:
        d = d.setdefault(key, {})
    d[path[-1]] = value


def load_env_config() -> dict:
    """Load configuration from DRIVEPLAYER_* environment variables."""
    result: dict = {}

    for env_var, path in ENV_MAPPINGS.items():
        value: Any = os.environ.get(env_var)
        if value is None:
            continue

        if env_var in _FLOAT_ENV_VARS:
            try:
                value = float(value)
            except ValueError:
                logger.warning(f"Invalid number for {env_var}: {value}")
                continue
        elif env_var in _INT_ENV_VARS:
            try:
                value = int(value)
            except ValueError:
                logger.warning(f"Invalid integer for {env_var}: {value}")
                continue
        elif env_var in _BOOL_ENV_VARS:
            value = value.lower() in ("true", "1", "yes", "on")

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

    # Auth
    if "auth" in d:
        a = d["auth"]
        config.auth.access_token = a.get("access_token", config.auth.access_token)
        config.auth.client_id = a.get("client_id", config.auth.client_id)
        config.auth.client_secret = a.get("client_secret", config.auth.client_secret)
        config.auth.token_cache = a.get("token_cache", config.auth.token_cache)

    # Library
    if "library" in d:
        lib = d["library"]
        config.library.folder_name = lib.get("folder_name", config.library.folder_name)
        config.library.folder_id = lib.get("folder_id", config.library.folder_id)
        config.library.request_timeout = float(
            lib.get("request_timeout", config.library.request_timeout)
        )

    # Player
    if "player" in d:
        p = d["player"]
        config.player.volume = float(p.get("volume", config.player.volume))
        config.player.restart_threshold_seconds = float(
            p.get("restart_threshold_seconds", config.player.restart_threshold_seconds)
        )
        config.player.shuffle = bool(p.get("shuffle", config.player.shuffle))
        config.player.repeat = str(p.get("repeat", config.player.repeat)).lower()

    # Backend
    if "backend" in d:
        b = d["backend"]
        config.backend.type = b.get("type", config.backend.type)
        if "local" in b:
            local = b["local"]
            config.backend.local.device = str(local.get("device", config.backend.local.device))
            config.backend.local.buffer_size = local.get(
                "buffer_size", config.backend.local.buffer_size
            )

    # Logging
    if "logging" in d:
        config.logging.level = d["logging"].get("level", config.logging.level)

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

    Raises:
        ConfigError: If configuration is invalid
    """
    configs = []

    if config_path:
        file_config = load_yaml_config(config_path)
        if file_config:
            configs.append(file_config)
            logger.debug(f"Loaded config from {config_path}")

    env_config = load_env_config()
    if env_config:
        configs.append(env_config)
        logger.debug("Loaded config from environment variables")

    if cli_args:
        configs.append(cli_args)
        logger.debug("Loaded config from CLI arguments")

    merged = merge_configs(*configs) if configs else {}

    try:
        config = dict_to_config(merged)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid configuration value: {e}")

    validate_config(config)
    return config
