"""Configuration management for dbnbook.

Provides centralized configuration with TOML support, validation and
hierarchical loading from defaults → config file → environment → CLI.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

import toml
from pydantic import ValidationError as PydanticValidationError

from dbnbook.models import (
    Config,
    ExecutionConfig,
    NotebookConfig,
    ObservabilityConfig,
)
from dbnbook.utils.exceptions import ConfigurationError
from dbnbook.utils.logging_config import setup_logging

CONFIG_FILENAME = "dbnbook.toml"

# Mapping of environment variables to config paths
ENV_MAPPINGS: dict[str, str] = {
    # Observability
    "DBNBOOK_LOG_LEVEL": "observability.log_level",
    "DBNBOOK_LOG_FILE": "observability.log_file",
    "DBNBOOK_STRUCTURED_LOGGING": "observability.structured_logging",
    "DBNBOOK_LOG_CORRELATION_ID": "observability.log_correlation_id",
    # Execution
    "DBNBOOK_ENCODING": "execution.encoding",
    "DBNBOOK_LOG_COMMANDS": "execution.log_commands",
    "DBNBOOK_SHELL": "execution.shell",
    # Notebook
    "DBNBOOK_DEFAULT_URI": "notebook.default_connection_uri",
    "DBNBOOK_FALLBACK_URI": "notebook.fallback_connection_uri",
    "DBNBOOK_STATE_FILENAME": "notebook.default_state_filename",
    "DBNBOOK_ID_ALLOCATION": "notebook.id_allocation",
}

_BOOL_PATHS = {
    "observability.structured_logging",
    "observability.log_correlation_id",
    "execution.log_commands",
}

# Global configuration instance
_config_manager: ConfigManager | None = None


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_file: str | Path | None = None):
        """Initialize configuration manager.

        Args:
            config_file: Path to TOML config file. If None, searches for dbnbook.toml

        """
        self.config_file = self._find_config_file(config_file)
        self.config = self._load_config()
        self._setup_logging()

    def _find_config_file(
        self,
        config_file: str | Path | None,
    ) -> Path | None:
        """Find configuration file in standard locations."""
        if config_file:
            return Path(config_file)

        search_paths = [
            Path.cwd() / CONFIG_FILENAME,
            Path.home() / ".config" / "dbnbook" / CONFIG_FILENAME,
            Path.home() / f".{CONFIG_FILENAME}",
        ]

        for path in search_paths:
            if path.exists():
                return path

        return None

    def _load_config(self) -> Config:
        """Load configuration from file and environment."""
        config_data: dict[str, Any] = {}

        if self.config_file and self.config_file.exists():
            try:
                with open(self.config_file, encoding="utf-8") as f:
                    config_data.update(toml.load(f))
            except (OSError, toml.TomlDecodeError) as e:
                logging.getLogger(__name__).warning(
                    "Failed to load config file %s: %s", self.config_file, e
                )

        config_data = self._merge_config(config_data, self._get_env_config())

        try:
            return Config(**config_data)
        except PydanticValidationError as e:
            msg = f"Invalid configuration: {e}"
            raise ConfigurationError(msg) from e

    def _get_env_config(self) -> dict[str, Any]:
        """Get configuration from DBNBOOK_* environment variables."""
        env_config: dict[str, Any] = {}

        def _parse_env_value(raw: str, path: str) -> bool | str:
            if path in _BOOL_PATHS:
                low = raw.lower()
                if low in {"true", "1", "yes", "on"}:
                    return True
                if low in {"false", "0", "no", "off"}:
                    return False
            return raw

        def _set_nested(d: dict[str, Any], path: str, value: Any) -> None:
            parts = path.split(".")
            cur = d
            for p in parts[:-1]:
                cur = cur.setdefault(p, {})
            cur[parts[-1]] = value

        for env_name, cfg_path in ENV_MAPPINGS.items():
            raw = os.getenv(env_name)
            if raw is None:
                continue
            _set_nested(env_config, cfg_path, _parse_env_value(raw, cfg_path))

        return env_config

    def _merge_config(
        self,
        base: dict[str, Any],
        override: dict[str, Any],
    ) -> dict[str, Any]:
        """Merge configuration dictionaries recursively."""
        result = base.copy()

        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = self._merge_config(result[key], value)
            else:
                result[key] = value

        return result

    def _setup_logging(self) -> None:
        """Set up logging configuration."""
        setup_logging(self.config.observability)

    def apply_overrides(self, overrides: dict[str, Any]) -> Config:
        """Apply CLI overrides (a nested dict) on top of the loaded config."""
        data = self._merge_config(self.config.model_dump(mode="json"), overrides)
        try:
            self.config = Config(**data)
        except PydanticValidationError as e:
            msg = f"Invalid configuration override: {e}"
            raise ConfigurationError(msg) from e
        self._setup_logging()
        return self.config

    def export(self, fmt: str = "toml") -> str:
        """Export current configuration as a string in the given format.

        Args:
            fmt: one of "toml" or "json"

        """
        data = self.config.model_dump(mode="json", exclude_none=True)
        fmt = (fmt or "toml").lower()
        if fmt == "toml":
            return toml.dumps(data)
        if fmt == "json":
            return json.dumps(data, indent=2)
        msg = f"Unsupported export format: {fmt}"
        raise ConfigurationError(msg)


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager.config


def init_config(config_file: str | Path | None = None) -> ConfigManager:
    """Initialize the global configuration manager."""
    global _config_manager
    _config_manager = ConfigManager(config_file)
    return _config_manager


def reload_config() -> Config:
    """Reload configuration from file."""
    if _config_manager is None:
        msg = "Configuration not initialized"
        raise ConfigurationError(msg)

    _config_manager.config = _config_manager._load_config()  # noqa: SLF001
    _config_manager._setup_logging()  # noqa: SLF001
    return _config_manager.config


def set_config(new_config: Config) -> None:
    """Replace the global configuration at runtime.

    Reconfigures logging based on the new config.
    """
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(None)
    _config_manager.config = new_config
    _config_manager._setup_logging()  # noqa: SLF001


def get_observability_config() -> ObservabilityConfig:
    """Get observability configuration."""
    return get_config().observability


def get_execution_config() -> ExecutionConfig:
    """Get execution configuration."""
    return get_config().execution


def get_notebook_config() -> NotebookConfig:
    """Get notebook configuration."""
    return get_config().notebook
