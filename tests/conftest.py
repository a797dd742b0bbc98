"""Pytest configuration and shared fixtures for dbnbook tests."""

from __future__ import annotations

import logging
import re

import pytest

from dbnbook.models import BackendKind, Config, ExecutionConfig, NotebookConfig
from dbnbook.sources.base import CommandBuild, Source
from dbnbook.sources.registry import SourceRegistry


def pytest_configure(config):
    """Register all project markers to avoid warnings when ini isn't loaded."""
    markers = [
        ("asyncio", "marks tests as async (deselect with '-m \"not asyncio\"')"),
        ("unit", "marks tests as unit tests"),
        ("sources", "marks tests as backend source tests"),
        ("executor", "marks tests as job runner tests"),
        ("session", "marks tests as session state tests"),
        ("storage", "marks tests as persistence tests"),
        ("config", "marks tests as configuration tests"),
        ("cli", "marks tests as CLI tests"),
        ("events", "marks tests as event bus tests"),
    ]
    for name, desc in markers:
        config.addinivalue_line("markers", f"{name}: {desc}")


@pytest.fixture(autouse=True)
def _isolate_config_env(monkeypatch, tmp_path):
    """Keep user config files and DBNBOOK_* variables out of the tests."""
    from dbnbook.config.config import ENV_MAPPINGS

    for env_name in ENV_MAPPINGS:
        monkeypatch.delenv(env_name, raising=False)
    monkeypatch.setenv("HOME", str(tmp_path / "home"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def cleanup_logging():
    """Clean up logging handlers after each test to prevent closed file errors."""
    yield
    for logger_name in list(logging.Logger.manager.loggerDict.keys()):
        logger = logging.getLogger(logger_name)
        for handler in logger.handlers[:]:
            handler.close()
            logger.removeHandler(handler)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)


@pytest.fixture(autouse=True)
def cleanup_global_config():
    """Reset module-level singletons between tests."""
    yield
    import dbnbook.config.config as config_module

    config_module._config_manager = None


@pytest.fixture
def registry():
    """Fresh registry with the built-in adapters."""
    return SourceRegistry()


@pytest.fixture
def notebook_config():
    """Default notebook settings."""
    return NotebookConfig()


@pytest.fixture
def config():
    """Default configuration with command logging turned off."""
    return Config(execution=ExecutionConfig(log_commands=False))


@pytest.fixture
def sqlite_uri(tmp_path):
    """SQLite URI pointing into the test's temporary directory."""
    return f"sqlite://{tmp_path / 'test.db'}"


@pytest.fixture
def dbnbook_caplog(caplog):
    """caplog that also sees records from the non-propagating dbnbook logger."""
    logger = logging.getLogger("dbnbook")
    previous = logger.propagate
    logger.propagate = True
    yield caplog
    logger.propagate = previous


class ShellSource(Source):
    """Test adapter that runs the query text itself as a shell command."""

    name = BackendKind.SQLITE
    label = "Shell"
    default_query = "printf 'default'"
    scheme_pattern = re.compile(r"shell://")

    def build_command(self, uri: str, query: str) -> CommandBuild:
        if uri == "shell://broken":
            return None, self.invalid_uri_message
        return query, None


@pytest.fixture
def shell_registry():
    """Registry whose only backend executes query text directly."""
    return SourceRegistry([ShellSource()])
