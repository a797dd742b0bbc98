"""Command line interface for dbnbook.

Creates, inspects, edits and runs notebook files without an editor.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.table import Table

from dbnbook.config.config import ConfigManager, init_config
from dbnbook.models import Config, LogLevel, QueryExecutionState, QueryStatus
from dbnbook.notebook import STATUS_LABELS, Notebook
from dbnbook.sources.registry import get_registry
from dbnbook.utils.exceptions import (
    ConfigurationError,
    InvalidURIError,
    NotebookLoadError,
    NotebookSaveError,
    UnknownQueryError,
    UnsupportedBackendError,
)
from dbnbook.utils.logging_config import get_correlation_id, set_correlation_id

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    QueryStatus.IDLE: "dim",
    QueryStatus.RUNNING: "yellow",
    QueryStatus.SUCCESS: "green",
    QueryStatus.ERROR: "bold red",
}


def _get_config(ctx: click.Context) -> Config:
    return ctx.obj["config_manager"].config


def _open_notebook(ctx: click.Context, path: str) -> Notebook:
    """Open an existing notebook or fail with a readable message."""
    try:
        return Notebook.open(path, config=_get_config(ctx), strict=True)
    except NotebookLoadError as e:
        raise click.ClickException(e.message) from None


def _save_notebook(notebook: Notebook, path: str | Path | None = None) -> Path:
    try:
        written = notebook.save(path)
    except NotebookSaveError as e:
        raise click.ClickException(e.message) from None
    # The notebook always has a path here, so the prompt is never shown
    assert written is not None
    return written


def _print_state(console: Console, query_id: int, state: QueryExecutionState) -> None:
    style = STATUS_STYLES[state.status]
    console.rule(f"Query {query_id}")
    console.print(f"Status: [{style}]{STATUS_LABELS[state.status]}[/{style}]")
    if state.result:
        console.print(state.result.rstrip("\n"), markup=False, highlight=False, soft_wrap=True)


async def _run_queries(
    notebook: Notebook,
    query_ids: list[int] | None,
) -> dict[int, QueryExecutionState]:
    try:
        return await notebook.run(query_ids)
    finally:
        await notebook.close()


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    help="Configuration file path",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (-v: info, -vv: debug)",
)
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: int) -> None:
    """Dbnbook - database notebooks from the command line."""
    ctx.ensure_object(dict)
    try:
        config_manager = init_config(config)
        if verbose:
            level = LogLevel.DEBUG if verbose > 1 else LogLevel.INFO
            config_manager.apply_overrides(
                {"observability": {"log_level": level.value}},
            )
    except ConfigurationError as e:
        raise click.ClickException(e.message) from None
    ctx.obj["config_manager"] = config_manager
    ctx.obj["verbosity"] = verbose


@cli.command()
@click.argument("path", type=click.Path())
@click.option("--uri", help="Connection URI (default: notebook.default_connection_uri)")
@click.option("--force", is_flag=True, help="Overwrite an existing file")
@click.pass_context
def new(ctx: click.Context, path: str, uri: str | None, force: bool) -> None:
    """Create a notebook file with one sample query."""
    console = Console()
    if Path(path).exists() and not force:
        msg = f"{path} already exists (use --force to overwrite)"
        raise click.ClickException(msg)

    notebook = Notebook.new(uri, config=_get_config(ctx))
    written = _save_notebook(notebook, path)
    kind = notebook.session.backend_kind
    console.print(f"[green]Notebook created:[/green] {written}", highlight=False)
    if kind is None:
        console.print("[yellow]Warning:[/yellow] unsupported connection URI")


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--raw", is_flag=True, help="Print the markdown source instead of rendering it")
@click.pass_context
def show(ctx: click.Context, path: str, raw: bool) -> None:
    """Render a notebook as markdown."""
    notebook = _open_notebook(ctx, path)
    document = notebook.render_markdown()
    if raw:
        click.echo(document, nl=False)
        return
    Console().print(Markdown(document))


@cli.command()
@click.argument("uri")
@click.pass_context
def detect(ctx: click.Context, uri: str) -> None:
    """Print the backend a connection URI is routed to."""
    kind = get_registry().detect(uri)
    if kind is None:
        Console().print("[red]Unknown[/red]")
        ctx.exit(1)
    click.echo(kind.value)


@cli.command()
def backends() -> None:
    """List supported backends in detection order."""
    table = Table(title="Supported backends")
    table.add_column("Backend", style="cyan")
    table.add_column("Name")
    table.add_column("Default query")
    for source in get_registry():
        table.add_row(source.name.value, source.label, source.default_query)
    Console().print(table)


@cli.command("set-uri")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.argument("uri")
@click.pass_context
def set_uri(ctx: click.Context, path: str, uri: str) -> None:
    """Change the connection URI of a notebook."""
    notebook = _open_notebook(ctx, path)
    notebook.session.update_connection(uri)
    _save_notebook(notebook)
    kind = notebook.session.backend_kind
    Console().print(
        f"Detected Database Type: {kind.value if kind else '[red]Unknown[/red]'}",
        highlight=False,
    )


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option("--text", "-t", help="Query text (default: the backend's sample query)")
@click.pass_context
def add(ctx: click.Context, path: str, text: str | None) -> None:
    """Append a query to a notebook."""
    notebook = _open_notebook(ctx, path)
    query_id = notebook.session.add_query(text)
    _save_notebook(notebook)
    Console().print(f"Added query {query_id}", highlight=False)


@cli.command("set-query")
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.argument("query_id", type=int)
@click.argument("text")
@click.pass_context
def set_query(ctx: click.Context, path: str, query_id: int, text: str) -> None:
    """Replace the text of a query."""
    notebook = _open_notebook(ctx, path)
    try:
        notebook.session.update_query_text(query_id, text)
    except UnknownQueryError as e:
        raise click.ClickException(e.message) from None
    if notebook.dirty:
        _save_notebook(notebook)
    Console().print(f"Updated query {query_id}", highlight=False)


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.argument("query_id", type=int)
@click.pass_context
def command(ctx: click.Context, path: str, query_id: int) -> None:
    """Print the shell command that would run a query."""
    notebook = _open_notebook(ctx, path)
    try:
        click.echo(notebook.session.build_command(query_id))
    except (InvalidURIError, UnknownQueryError, UnsupportedBackendError) as e:
        raise click.ClickException(e.message) from None


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--query",
    "-q",
    "query_ids",
    type=int,
    multiple=True,
    help="Query id to run (repeatable, default: all)",
)
@click.pass_context
def run(ctx: click.Context, path: str, query_ids: tuple[int, ...]) -> None:
    """Execute queries concurrently and print their results."""
    console = Console()
    notebook = _open_notebook(ctx, path)
    set_correlation_id()
    logger.debug("Run started (correlation id %s)", get_correlation_id())
    try:
        states = asyncio.run(_run_queries(notebook, list(query_ids) or None))
    except UnknownQueryError as e:
        raise click.ClickException(e.message) from None

    for query_id, state in states.items():
        _print_state(console, query_id, state)

    failed = [qid for qid, state in states.items() if state.status is QueryStatus.ERROR]
    if failed:
        logger.debug("Queries failed: %s", failed)
        ctx.exit(1)


@cli.command("config")
@click.option(
    "--format",
    "fmt",
    type=click.Choice(["toml", "json"]),
    default="toml",
    show_default=True,
)
@click.pass_context
def show_config(ctx: click.Context, fmt: str) -> None:
    """Print the effective configuration."""
    config_manager: ConfigManager = ctx.obj["config_manager"]
    click.echo(config_manager.export(fmt))


def main(*args: Any, **kwargs: Any) -> Any:
    """Main CLI entry point."""
    return cli(*args, **kwargs)


if __name__ == "__main__":
    main()
