# === NAVMAP v1 ===
# {
#   "module": "BeaconKit.cli",
#   "purpose": "Typer CLI for parsing BEACON files and managing named collections",
#   "sections": [
#     {"id": "context", "name": "CliContext", "anchor": "class-clicontext", "kind": "class"},
#     {"id": "main", "name": "main", "anchor": "function-main", "kind": "function"},
#     {"id": "parse", "name": "parse", "anchor": "function-parse", "kind": "function"},
#     {"id": "meta", "name": "meta", "anchor": "function-meta", "kind": "function"},
#     {"id": "collection", "name": "Collection Commands", "anchor": "CMDS", "kind": "commands"},
#     {"id": "cli-main", "name": "cli_main", "anchor": "function-cli-main", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Typer CLI for BEACON link dumps.

Commands:
- ``beacon parse FILE``: validate a document, print its links and errors
- ``beacon meta FILE``: print the canonical meta block
- ``beacon collection ...``: list, insert, show, and remove named documents

The exit code is 0 when the document had no errors and 1 otherwise.

Example:
    $ beacon parse links.txt --format json
    $ beacon -v collection insert gnd links.txt
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

import typer
from rich.console import Console
from rich.markup import escape

from . import __version__
from .collection import BeaconCollection
from .engine import BeaconParser, LineSource
from .errors import BeaconError, DocumentError
from .expander import ExpandedLink
from .formatters import (
    ERROR_TABLE_HEADERS,
    LINK_TABLE_HEADERS,
    format_error_rows,
    format_link_rows,
    format_links,
    format_table,
)
from .logging_utils import setup_logging
from .settings import BeaconSettings, load_settings
from .tokenizer import TokenizerOptions

__all__ = ["app", "collection_app", "CliContext", "get_context", "cli_main"]

logger = logging.getLogger(__name__)

_err_console = Console(stderr=True)

_OUTPUT_FORMATS = ("table", "json", "beacon")
_LINK_KEYS = ("source", "label", "description", "target", "full_source", "full_target")


class CliContext:
    """Shared state of one CLI invocation: settings, verbosity, console."""

    def __init__(self, settings: BeaconSettings, verbosity: int = 0) -> None:
        self.settings = settings
        self.verbosity = verbosity
        self.console = _err_console

    def log_info(self, message: str) -> None:
        """Print an informational message if verbosity >= 1."""

        if self.verbosity >= 1:
            self.console.print(f"[cyan]INFO: {escape(message)}[/cyan]")


app = typer.Typer(
    name="beacon",
    help="Parse and validate BEACON link dumps",
    no_args_is_help=True,
)
collection_app = typer.Typer(help="Named BEACON collections stored in SQLite")
app.add_typer(collection_app, name="collection")

_context: Optional[CliContext] = None


def get_context() -> CliContext:
    """Return the context of the running invocation, building defaults if needed."""

    global _context  # noqa: PLW0603

    if _context is None:
        _context = CliContext(load_settings())
    return _context


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"beacon {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        envvar="BEACON_CONFIG",
        help="Path to a settings file (YAML or JSON)",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbose",
        "-v",
        count=True,
        help="Increase verbosity (-v for INFO, -vv for DEBUG)",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Parse and validate BEACON link dumps."""

    global _context  # noqa: PLW0603

    try:
        settings = load_settings(config)
    except BeaconError as exc:
        _err_console.print(f"[red]Error loading settings: {escape(str(exc))}[/red]")
        raise typer.Exit(2)

    level = settings.logging.level
    if verbosity >= 2:
        level = "DEBUG"
    elif verbosity == 1 and level != "DEBUG":
        level = "INFO"
    setup_logging(
        level=level,
        log_dir=settings.logging.log_dir,
        json_logs=settings.logging.json_logs,
        retention_days=settings.logging.retention_days,
        max_log_size_mb=settings.logging.max_log_size_mb,
    )
    logger.debug("settings loaded from %s", config or "environment")
    _context = CliContext(settings, verbosity)
    _context.log_info(f"Config file: {config}")


def _make_parser(ctx: CliContext, min_parts: Optional[int]) -> BeaconParser:
    parser_settings = ctx.settings.parser
    options = (
        TokenizerOptions(uri_target_min_parts=min_parts)
        if min_parts is not None
        else parser_settings.tokenizer_options()
    )
    return BeaconParser(options=options, encoding=parser_settings.encoding)


def _input_source(path: str) -> Union[str, LineSource]:
    if path == "-":
        return LineSource(lambda: sys.stdin.readline() or None, name="<stdin>")
    return path


def _echo_errors(errors: Sequence[DocumentError], *, err: bool) -> None:
    if errors:
        typer.echo(format_table(ERROR_TABLE_HEADERS, format_error_rows(errors)), err=err)


@app.command()
def parse(
    path: str = typer.Argument(..., help="BEACON file or '-' for stdin"),
    fmt: str = typer.Option("table", "--format", "-f", help="Output format: table, json, beacon"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only report errors"),
    min_parts: Optional[int] = typer.Option(
        None,
        "--min-parts",
        min=1,
        max=4,
        help="Minimum parts before a URI-shaped last part is read as target",
    ),
) -> None:
    """Parse a BEACON file, printing its links and any errors."""

    if fmt not in _OUTPUT_FORMATS:
        typer.echo(f"Error: unknown format '{fmt}'. Use one of: {', '.join(_OUTPUT_FORMATS)}", err=True)
        raise typer.Exit(2)

    ctx = get_context()
    parser = _make_parser(ctx, min_parts)
    errors: List[DocumentError] = []

    def _collect_error(message: str, line_number: int, raw_line: str) -> None:
        if parser.last_error is not None:
            errors.append(parser.last_error)

    parser.open(_input_source(path), on_error=_collect_error)
    links: List[ExpandedLink] = list(parser)

    if fmt == "json":
        payload: Dict[str, object] = {
            "meta": parser.meta.get_all(),
            "count": parser.link_count,
            "errors": [
                {
                    "code": error.code.value,
                    "message": error.message,
                    "line": error.line_number,
                    "raw": error.raw_line,
                }
                for error in errors
            ],
        }
        if not quiet:
            payload["links"] = [dict(zip(_LINK_KEYS, link.as_tuple())) for link in links]
        typer.echo(json.dumps(payload, indent=2))
    elif fmt == "beacon":
        if not quiet:
            typer.echo(parser.serialize_meta() + format_links(links), nl=False)
        _echo_errors(errors, err=True)
    else:
        if not quiet:
            typer.echo(format_table(LINK_TABLE_HEADERS, format_link_rows(links)))
            if errors:
                typer.echo("")
        _echo_errors(errors, err=False)

    ctx.log_info(f"{parser.link_count} links, {parser.error_count} errors")
    raise typer.Exit(0 if parser.error_count == 0 else 1)


@app.command()
def meta(
    path: str = typer.Argument(..., help="BEACON file or '-' for stdin"),
) -> None:
    """Print the canonical meta field block of a BEACON file."""

    ctx = get_context()
    parser = BeaconParser(encoding=ctx.settings.parser.encoding)
    errors: List[DocumentError] = []

    def _collect_error(message: str, line_number: int, raw_line: str) -> None:
        if parser.last_error is not None:
            errors.append(parser.last_error)

    parser.open(_input_source(path), on_error=_collect_error)
    parser.close()
    typer.echo(parser.serialize_meta(), nl=False)
    _echo_errors(errors, err=True)
    raise typer.Exit(0 if not errors else 1)


# ============================================================================
# Collection Commands (CMDS)
# ============================================================================


def _open_collection(db: Optional[Path]) -> BeaconCollection:
    ctx = get_context()
    db_path = db or ctx.settings.collection.db_path
    ctx.log_info(f"Collection database: {db_path}")
    return BeaconCollection(db_path)


def _parse_filters(filters: Sequence[str]) -> Dict[str, str]:
    parsed: Dict[str, str] = {}
    for item in filters:
        key, sep, value = item.partition("=")
        if not sep or not key.strip():
            typer.echo(f"Error: filter must look like FIELD=VALUE, got '{item}'", err=True)
            raise typer.Exit(2)
        parsed[key.strip()] = value.strip()
    return parsed


@collection_app.command("list")
def collection_list(
    field: List[str] = typer.Option([], "--field", help="Only list documents with FIELD=VALUE"),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database (defaults to settings)"),
) -> None:
    """List the names of stored documents."""

    filters = _parse_filters(field)
    with _open_collection(db) as collection:
        for name in collection.list(**filters):
            typer.echo(name)


@collection_app.command("insert")
def collection_insert(
    name: str = typer.Argument(..., help="Collection name"),
    path: Path = typer.Argument(..., help="BEACON file to store"),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database (defaults to settings)"),
) -> None:
    """Parse a BEACON file and store it under NAME."""

    ctx = get_context()
    parser = BeaconParser(
        options=ctx.settings.parser.tokenizer_options(),
        encoding=ctx.settings.parser.encoding,
    )
    parser.open(path)
    with _open_collection(db) as collection:
        try:
            stored = collection.insert(name, parser)
        except BeaconError as exc:
            ctx.console.print(f"[red]✗ {escape(str(exc))}[/red]")
            raise typer.Exit(1)
    ctx.console.print(f"[green]✓ stored {stored} links as {escape(name)}[/green]")


@collection_app.command("show")
def collection_show(
    name: str = typer.Argument(..., help="Collection name"),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database (defaults to settings)"),
) -> None:
    """Print a stored document in BEACON format."""

    with _open_collection(db) as collection:
        stored = collection.get(name)
    if stored is None:
        typer.echo(f"Error: no collection named '{name}'", err=True)
        raise typer.Exit(1)
    typer.echo(stored.to_text(), nl=False)


@collection_app.command("remove")
def collection_remove(
    name: str = typer.Argument(..., help="Collection name"),
    db: Optional[Path] = typer.Option(None, "--db", help="SQLite database (defaults to settings)"),
) -> None:
    """Delete a stored document."""

    with _open_collection(db) as collection:
        removed = collection.remove(name)
    if not removed:
        typer.echo(f"Error: no collection named '{name}'", err=True)
        raise typer.Exit(1)
    typer.echo(f"removed {name}")


def cli_main(argv: Optional[Sequence[str]] = None) -> int:
    """Run the CLI and return its exit code instead of exiting the process."""

    try:
        app(args=list(argv) if argv is not None else None, prog_name="beacon")
    except SystemExit as exc:
        code = exc.code
        return code if isinstance(code, int) else (0 if code is None else 1)
    return 0


if __name__ == "__main__":
    raise SystemExit(cli_main())
