"""Tests for the dbnbook command line."""

from __future__ import annotations

import json
import logging

import pytest
from click.testing import CliRunner

from dbnbook.cli.main import cli

pytestmark = [pytest.mark.unit, pytest.mark.cli]


@pytest.fixture
def runner():
    """Click runner with a wide terminal so rich does not wrap lines."""
    return CliRunner(env={"COLUMNS": "200"})


@pytest.fixture
def notebook_file(tmp_path):
    """Write a notebook document and return its path."""

    def _write(document: dict) -> str:
        path = tmp_path / "nb.json"
        path.write_text(json.dumps(document), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def shell_backend(monkeypatch, shell_registry):
    """Route sessions through the test adapter that runs query text."""
    monkeypatch.setattr("dbnbook.session.state.get_registry", lambda: shell_registry)


def _read(path: str) -> dict:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


class TestNew:
    """dbnbook new."""

    def test_creates_default_notebook(self, runner, tmp_path):
        """A new notebook targets the default SQLite database."""
        path = str(tmp_path / "nb.json")
        result = runner.invoke(cli, ["new", path])
        assert result.exit_code == 0, result.output
        assert "Notebook created" in result.output
        assert _read(path) == {
            "connection_uri": "sqlite:///tmp/foo.db",
            "db_type": "sqlite",
            "queries": {"1": 'SELECT * FROM sqlite_master WHERE type="table";'},
        }

    def test_with_uri(self, runner, tmp_path):
        """--uri picks the backend and its sample query."""
        path = str(tmp_path / "nb.json")
        result = runner.invoke(cli, ["new", path, "--uri", "redis://localhost:6379/0"])
        assert result.exit_code == 0, result.output
        assert _read(path)["queries"] == {"1": "KEYS *"}

    def test_refuses_to_overwrite(self, runner, notebook_file):
        """Existing files need --force."""
        path = notebook_file({"connection_uri": "sqlite://:memory:", "queries": {"1": "x"}})
        result = runner.invoke(cli, ["new", path])
        assert result.exit_code == 1
        assert "already exists" in result.output
        assert _read(path)["queries"] == {"1": "x"}

        result = runner.invoke(cli, ["new", path, "--force"])
        assert result.exit_code == 0, result.output
        assert _read(path)["connection_uri"] == "sqlite:///tmp/foo.db"

    def test_unsupported_uri_warns(self, runner, tmp_path):
        """Unknown URIs are saved but flagged."""
        path = str(tmp_path / "nb.json")
        result = runner.invoke(cli, ["new", path, "--uri", "mongodb://x"])
        assert result.exit_code == 0, result.output
        assert "unsupported connection URI" in result.output
        assert _read(path)["db_type"] is None


class TestInspect:
    """show, detect, backends and command."""

    def test_show_raw(self, runner, notebook_file):
        """--raw prints the markdown source."""
        path = notebook_file(
            {"connection_uri": "redis://localhost:6379/0", "queries": {"1": "KEYS *"}},
        )
        result = runner.invoke(cli, ["show", path, "--raw"])
        assert result.exit_code == 0, result.output
        assert "Detected Database Type: redis" in result.output
        assert "### Query 1" in result.output

    def test_show_rendered(self, runner, notebook_file):
        """Without --raw the markdown is rendered."""
        path = notebook_file({"connection_uri": "sqlite://:memory:"})
        result = runner.invoke(cli, ["show", path])
        assert result.exit_code == 0, result.output
        assert "Database Notebook" in result.output
        assert "Query 1" in result.output

    def test_show_invalid_file(self, runner, tmp_path):
        """Unparsable files are reported."""
        path = tmp_path / "bad.json"
        path.write_text("{oops", encoding="utf-8")
        result = runner.invoke(cli, ["show", str(path)])
        assert result.exit_code == 1
        assert "not valid JSON" in result.output

    @pytest.mark.parametrize(
        ("uri", "backend"),
        [
            ("sqlite:///tmp/foo.db", "sqlite"),
            ("postgresql://u:p@h:5432/db", "postgresql"),
            ("redis://localhost:6379/0", "redis"),
        ],
    )
    def test_detect(self, runner, uri, backend):
        """Known schemes print their backend."""
        result = runner.invoke(cli, ["detect", uri])
        assert result.exit_code == 0
        assert result.output.strip() == backend

    def test_detect_unknown(self, runner):
        """Unknown schemes exit with status 1."""
        result = runner.invoke(cli, ["detect", "mongodb://x"])
        assert result.exit_code == 1
        assert "Unknown" in result.output

    def test_backends(self, runner):
        """All backends are listed with their sample queries."""
        result = runner.invoke(cli, ["backends"])
        assert result.exit_code == 0
        for name in ("sqlite", "clickhouse", "postgresql", "redis", "mysql"):
            assert name in result.output
        assert "KEYS *" in result.output

    def test_command(self, runner, notebook_file):
        """The dry run prints the exact command line."""
        path = notebook_file(
            {"connection_uri": "sqlite:///tmp/foo.db", "queries": {"1": "SELECT 1;"}},
        )
        result = runner.invoke(cli, ["command", path, "1"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "sqlite3 -json /tmp/foo.db 'SELECT 1;'"

    def test_command_invalid_uri(self, runner, notebook_file):
        """Malformed URIs are reported instead of a command."""
        path = notebook_file({"connection_uri": "sqlite://", "queries": {"1": "SELECT 1;"}})
        result = runner.invoke(cli, ["command", path, "1"])
        assert result.exit_code == 1
        assert "Invalid SQLite URI format" in result.output

    def test_command_unsupported_backend(self, runner, notebook_file):
        """URIs no backend handles are reported instead of a command."""
        path = notebook_file({"connection_uri": "mongodb://x", "queries": {"1": "x"}})
        result = runner.invoke(cli, ["command", path, "1"])
        assert result.exit_code == 1
        assert "Unsupported database type" in result.output


class TestEdit:
    """set-uri, add and set-query."""

    def test_set_uri(self, runner, notebook_file):
        """The URI and detected backend are saved."""
        path = notebook_file({"connection_uri": "sqlite://:memory:", "queries": {"1": "x"}})
        result = runner.invoke(cli, ["set-uri", path, "redis://localhost:6379/0"])
        assert result.exit_code == 0, result.output
        assert "redis" in result.output
        document = _read(path)
        assert document["connection_uri"] == "redis://localhost:6379/0"
        assert document["db_type"] == "redis"
        assert document["queries"] == {"1": "x"}

    def test_add(self, runner, notebook_file):
        """add appends the backend's sample query or the given text."""
        path = notebook_file(
            {"connection_uri": "redis://localhost:6379/0", "queries": {"1": "GET a"}},
        )
        result = runner.invoke(cli, ["add", path])
        assert result.exit_code == 0, result.output
        assert "Added query 2" in result.output

        result = runner.invoke(cli, ["add", path, "--text", "GET c"])
        assert result.exit_code == 0, result.output
        assert _read(path)["queries"] == {"1": "GET a", "2": "KEYS *", "3": "GET c"}

    def test_set_query(self, runner, notebook_file):
        """set-query replaces the text."""
        path = notebook_file({"connection_uri": "sqlite://:memory:", "queries": {"1": "x"}})
        result = runner.invoke(cli, ["set-query", path, "1", "SELECT 2;"])
        assert result.exit_code == 0, result.output
        assert _read(path)["queries"] == {"1": "SELECT 2;"}

    def test_set_query_unknown_id(self, runner, notebook_file):
        """Unknown ids are rejected."""
        path = notebook_file({"connection_uri": "sqlite://:memory:", "queries": {"1": "x"}})
        result = runner.invoke(cli, ["set-query", path, "4", "SELECT 2;"])
        assert result.exit_code == 1
        assert "Query 4 does not exist" in result.output


class TestRun:
    """dbnbook run."""

    def test_run_all(self, runner, notebook_file, shell_backend):
        """All queries run; any failure sets the exit status."""
        path = notebook_file(
            {
                "connection_uri": "shell://local",
                "queries": {"1": "printf 'first result'", "2": "echo 'no such table' 1>&2"},
            },
        )
        result = runner.invoke(cli, ["run", path])
        assert result.exit_code == 1
        assert "first result" in result.output
        assert "Success" in result.output
        assert "Error: no such table" in result.output

    def test_run_selected(self, runner, notebook_file, shell_backend):
        """-q restricts the run to the given queries."""
        path = notebook_file(
            {
                "connection_uri": "shell://local",
                "queries": {"1": "printf 'first result'", "2": "echo 'no such table' 1>&2"},
            },
        )
        result = runner.invoke(cli, ["run", path, "-q", "1"])
        assert result.exit_code == 0, result.output
        assert "first result" in result.output
        assert "no such table" not in result.output

    def test_run_unknown_id(self, runner, notebook_file):
        """Unknown ids fail before anything runs."""
        path = notebook_file({"connection_uri": "sqlite://:memory:", "queries": {"1": "x"}})
        result = runner.invoke(cli, ["run", path, "-q", "9"])
        assert result.exit_code == 1
        assert "Unknown query ids: 9" in result.output

    def test_run_unsupported_backend(self, runner, notebook_file):
        """Unsupported backends fail without spawning anything."""
        path = notebook_file({"connection_uri": "mongodb://x", "queries": {"1": "x"}})
        result = runner.invoke(cli, ["run", path])
        assert result.exit_code == 1
        assert "Unsupported database type" in result.output


class TestGlobalOptions:
    """--config, --verbose and config export."""

    def test_verbose_sets_info(self, runner):
        """-v lowers the log level to INFO, -vv to DEBUG."""
        runner.invoke(cli, ["-v", "detect", "sqlite://x"])
        assert logging.getLogger("dbnbook").level == logging.INFO
        runner.invoke(cli, ["-vv", "detect", "sqlite://x"])
        assert logging.getLogger("dbnbook").level == logging.DEBUG

    def test_invalid_config_file(self, runner, tmp_path):
        """Invalid configuration is reported as a usage error."""
        path = tmp_path / "bad.toml"
        path.write_text('[notebook]\nid_allocation = "random"\n', encoding="utf-8")
        result = runner.invoke(cli, ["--config", str(path), "backends"])
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output

    def test_config_file_applies(self, runner, tmp_path):
        """Settings from --config reach the commands."""
        path = tmp_path / "cfg.toml"
        path.write_text(
            '[notebook]\ndefault_connection_uri = "redis://localhost:6379/0"\n',
            encoding="utf-8",
        )
        target = str(tmp_path / "nb.json")
        result = runner.invoke(cli, ["--config", str(path), "new", target])
        assert result.exit_code == 0, result.output
        assert _read(target)["db_type"] == "redis"

    def test_config_export(self, runner):
        """The effective configuration is printed."""
        result = runner.invoke(cli, ["config", "--format", "json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["notebook"]["fallback_connection_uri"] == "sqlite://:memory:"
