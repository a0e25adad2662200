"""Loopline CLI - modular command structure.

The CLI is built using Typer. Global options (config file, data file,
logging) are handled by the app callback; commands live in dedicated
modules under ``commands/`` and are registered here.

Package structure:
    cli/
    ├── __init__.py           # App assembly
    ├── helpers.py            # Global option state, service construction
    ├── output.py             # Rich formatting
    └── commands/
        ├── analysis.py       # analyze, status, insights
        ├── patterns.py       # transitions, transition, sequences, sequence
        └── lines.py          # plan, lines, line, prune-lines
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape

from loopline import __version__
from loopline.core.errors import ConfigurationError

# Re-export helpers module for direct access to internal state (conftest.py needs this)
from . import helpers as helpers
from .commands import (
    # analysis.py
    analyze,
    insights,
    # lines.py
    line,
    lines,
    plan,
    prune_lines,
    # patterns.py
    sequence,
    sequences,
    # analysis.py
    status,
    # patterns.py
    transition,
    transitions,
)
from .helpers import (
    configure_global_logging,
    load_config,
    set_config_path,
    set_data_path,
    set_log_file,
    set_log_format,
    set_log_level,
)
from .output import console

# =============================================================================
# Typer app definition
# =============================================================================

app = typer.Typer(
    name="loopline",
    help="Learn loop sequences from run history and plan multi-move lines",
    add_completion=False,
)


# =============================================================================
# Global option callbacks
# =============================================================================


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"Loopline v{__version__}")
        raise typer.Exit()


def log_level_callback(value: str | None) -> str | None:
    if value:
        if value.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR"):
            raise typer.BadParameter("must be one of DEBUG, INFO, WARNING, ERROR")
        set_log_level(value)
    return value


def log_file_callback(value: Path | None) -> Path | None:
    if value:
        set_log_file(value)
    return value


def log_format_callback(value: str | None) -> str | None:
    if value:
        if value not in ("json", "console", "both"):
            raise typer.BadParameter("must be one of json, console, both")
        set_log_format(value)
    return value


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    config_file: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="YAML configuration file",
            envvar="LOOPLINE_CONFIG",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    data_file: Annotated[
        Path | None,
        typer.Option(
            "--data",
            help="Sequencing data file (overrides store_path from config)",
            envvar="LOOPLINE_DATA",
        ),
    ] = None,
    log_level: Annotated[
        str | None,
        typer.Option(
            "--log-level",
            "-L",
            callback=log_level_callback,
            help="Logging level (DEBUG, INFO, WARNING, ERROR)",
            envvar="LOOPLINE_LOG_LEVEL",
        ),
    ] = None,
    log_file: Annotated[
        Path | None,
        typer.Option(
            "--log-file",
            callback=log_file_callback,
            help="Path for log file output",
            envvar="LOOPLINE_LOG_FILE",
        ),
    ] = None,
    log_format: Annotated[
        str | None,
        typer.Option(
            "--log-format",
            callback=log_format_callback,
            help="Log format: json, console, or both",
            envvar="LOOPLINE_LOG_FORMAT",
        ),
    ] = None,
) -> None:
    """Loopline - loop sequencing and multi-move line planning."""
    set_config_path(config_file)
    set_data_path(data_file)
    try:
        config = load_config()
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None
    # Configure logging based on config and CLI options (called once)
    configure_global_logging(console, config)


# =============================================================================
# Command registration
# =============================================================================

# History analysis
app.command()(analyze)
app.command()(status)
app.command()(insights)

# Transition and sequence queries
app.command()(transitions)
app.command()(transition)
app.command()(sequences)
app.command()(sequence)

# Line planning
app.command()(plan)
app.command()(lines)
app.command()(line)
app.command(name="prune-lines")(prune_lines)


# =============================================================================
# Public API
# =============================================================================

__all__ = [
    "app",
    "main",
    "console",
]
