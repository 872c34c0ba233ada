"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging (Loguru)
"""

from .config import (
    Config,
    LoggingConfig,
    PlayerConfig,
    RemoteConfig,
    ResolverConfig,
    StorageConfig,
    create_default_config,
    get_cache_dir,
    get_config_dir,
    get_config_path,
    get_data_dir,
    load_config,
    parse_config,
)
from .output import log, setup_loguru

__all__ = [
    "Config",
    "LoggingConfig",
    "PlayerConfig",
    "RemoteConfig",
    "ResolverConfig",
    "StorageConfig",
    "create_default_config",
    "get_cache_dir",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "load_config",
    "parse_config",
    "log",
    "setup_loguru",
]
