"""Configuration management for dbnbook."""

from __future__ import annotations

from dbnbook.config.config import (
    ConfigManager,
    get_config,
    init_config,
    reload_config,
    set_config,
)

__all__ = [
    "ConfigManager",
    "get_config",
    "init_config",
    "reload_config",
    "set_config",
]
