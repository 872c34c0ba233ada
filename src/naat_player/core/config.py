"""
Configuration management for Naat Player
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from loguru import logger

DEFAULT_PROXY_INSTANCES = [
    "https://piped.video",
    "https://piped.video/api/v1",
]


@dataclass
class ResolverConfig:
    """Configuration for audio stream resolution."""

    instances: List[str] = field(default_factory=lambda: list(DEFAULT_PROXY_INSTANCES))
    request_timeout: float = 15.0  # Seconds per proxy instance

    def validate(self) -> None:
        """Validate resolver configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if not self.instances:
            raise ValueError("At least one proxy instance is required")
        bad = [i for i in self.instances if not i.startswith(("http://", "https://"))]
        if bad:
            raise ValueError(f"Proxy instances must be http(s) URLs: {bad}")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")


@dataclass
class StorageConfig:
    """Configuration for the item store and download cache."""

    data_dir: Optional[str] = None  # Default: ~/.local/share/naat-player
    cache_dir: Optional[str] = None  # Default: <data_dir>/naats
    storage_key: str = "@naat/playable_items_v1"


@dataclass
class PlayerConfig:
    """Configuration for the MPV audio engine."""

    mpv_socket_path: Optional[str] = None
    volume: int = 80


@dataclass
class RemoteConfig:
    """Configuration for remote transport controls."""

    jump_interval: float = 15.0
    restart_threshold: float = 3.0  # "previous" restarts the item past this point

    def validate(self) -> None:
        if self.jump_interval <= 0:
            raise ValueError("jump_interval must be positive")
        if self.restart_threshold < 0:
            raise ValueError("restart_threshold must not be negative")


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = None  # Default: <data_dir>/naat-player.log
    max_file_size_mb: int = 10
    backup_count: int = 5
    console_output: bool = False


@dataclass
class Config:
    """Main configuration object."""

    resolver: ResolverConfig = field(default_factory=ResolverConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    player: PlayerConfig = field(default_factory=PlayerConfig)
    remote: RemoteConfig = field(default_factory=RemoteConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "naat-player"
    return Path.home() / ".config" / "naat-player"


def get_data_dir(config: Optional[Config] = None) -> Path:
    """Get the data directory path."""
    if config and config.storage.data_dir:
        return Path(config.storage.data_dir).expanduser()
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "naat-player"
    return Path.home() / ".local" / "share" / "naat-player"


def get_cache_dir(config: Config) -> Path:
    """Directory holding downloaded naat audio."""
    if config.storage.cache_dir:
        return Path(config.storage.cache_dir).expanduser()
    return get_data_dir(config) / "naats"


def _find_project_config() -> Optional[Path]:
    """Find config.toml next to pyproject.toml when running from a checkout."""
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            return config_path if config_path.exists() else None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/naat-player (or ~/.config/naat-player)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return """
# Naat Player Configuration

[resolver]
# Stream proxy instances, tried in order
instances = ["https://piped.video", "https://piped.video/api/v1"]

# Seconds to wait on each instance
request_timeout = 15.0

[storage]
# data_dir = "~/.local/share/naat-player"
# cache_dir = "~/.local/share/naat-player/naats"
storage_key = "@naat/playable_items_v1"

[player]
# mpv_socket_path = "/tmp/naat-mpv-socket"
volume = 80

[remote]
# Seconds skipped by jump-forward / jump-backward
jump_interval = 15.0

# "previous" restarts the current naat after this many seconds
restart_threshold = 3.0

[logging]
level = "INFO"
# log_file = "~/.local/share/naat-player/naat-player.log"
max_file_size_mb = 10
backup_count = 5
console_output = false
"""


def parse_config(toml_data: dict) -> Config:
    """Build a Config from parsed TOML, keeping defaults for missing keys."""
    config = Config()

    if "resolver" in toml_data:
        resolver_data = toml_data["resolver"]
        resolver = ResolverConfig(
            instances=list(resolver_data.get("instances", config.resolver.instances)),
            request_timeout=float(
                resolver_data.get("request_timeout", config.resolver.request_timeout)
            ),
        )
        try:
            resolver.validate()
            config.resolver = resolver
        except ValueError as e:
            logger.warning(f"Invalid resolver configuration, using defaults: {e}")

    if "storage" in toml_data:
        storage_data = toml_data["storage"]
        config.storage = StorageConfig(
            data_dir=storage_data.get("data_dir"),
            cache_dir=storage_data.get("cache_dir"),
            storage_key=storage_data.get("storage_key", config.storage.storage_key),
        )

    if "player" in toml_data:
        player_data = toml_data["player"]
        config.player = PlayerConfig(
            mpv_socket_path=player_data.get("mpv_socket_path"),
            volume=int(player_data.get("volume", config.player.volume)),
        )

    if "remote" in toml_data:
        remote_data = toml_data["remote"]
        remote = RemoteConfig(
            jump_interval=float(remote_data.get("jump_interval", config.remote.jump_interval)),
            restart_threshold=float(
                remote_data.get("restart_threshold", config.remote.restart_threshold)
            ),
        )
        try:
            remote.validate()
            config.remote = remote
        except ValueError as e:
            logger.warning(f"Invalid remote configuration, using defaults: {e}")

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level),
            log_file=logging_data.get("log_file"),
            max_file_size_mb=int(
                logging_data.get("max_file_size_mb", config.logging.max_file_size_mb)
            ),
            backup_count=int(logging_data.get("backup_count", config.logging.backup_count)),
            console_output=bool(
                logging_data.get("console_output", config.logging.console_output)
            ),
        )

    return config


def apply_env_overrides(config: Config) -> Config:
    """Environment variables override TOML values:
    - NAAT_PLAYER_PROXY_INSTANCES (comma separated)
    - NAAT_PLAYER_DATA_DIR
    """
    instances = os.environ.get("NAAT_PLAYER_PROXY_INSTANCES")
    if instances:
        config.resolver.instances = [i.strip() for i in instances.split(",") if i.strip()]

    data_dir = os.environ.get("NAAT_PLAYER_DATA_DIR")
    if data_dir:
        config.storage.data_dir = data_dir

    return config


def load_config() -> Config:
    """Load configuration from file or create default."""
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        logger.info(f"Created default configuration at: {config_path}")
        return apply_env_overrides(Config())

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
        config = parse_config(toml_data)
    except (tomllib.TOMLDecodeError, OSError, TypeError, ValueError) as e:
        logger.warning(f"Error loading config from {config_path}: {e}. Using defaults.")
        config = Config()

    return apply_env_overrides(config)
