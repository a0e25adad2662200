"""Line planning commands.

Commands:
- plan: Generate a multi-move line
- lines: List generated lines
- line: Show one generated line
- prune-lines: Delete old generated lines
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Annotated

import typer

from ..helpers import build_service, handle_sequencing_errors
from ..output import console, lines_table, print_json, render_line


def plan(
    start: Annotated[
        str | None,
        typer.Option("--start", "-s", help="Loop for the first move"),
    ] = None,
    target: Annotated[
        str | None,
        typer.Option("--target", "-t", help="Target the line should advance"),
    ] = None,
    depth: Annotated[
        int | None,
        typer.Option("--depth", "-d", min=1, help="Maximum number of moves"),
    ] = None,
    leverage_file: Annotated[
        Path | None,
        typer.Option(
            "--leverage",
            help="Leverage ranking file: JSON array of {targetId, score}",
            exists=True,
            dir_okay=False,
        ),
    ] = None,
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Generate a multi-move line from the mined history.

    Without --start the first move comes from the top leverage target, or
    from the most frequent starting loop when no ranking is available.

    Examples:
        loopline plan --start engineering-loop --depth 4
        loopline plan --leverage leverage.json --json
    """
    with handle_sequencing_errors(console):
        service = build_service(leverage_path=leverage_file)
        generated = service.generate_line(starting_loop=start, target=target, depth=depth)

    if json_output:
        print_json(generated.model_dump(mode="json"))
        return

    console.print(render_line(generated))


def lines(
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Max lines to show")] = 10,
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """List generated lines, newest first."""
    with handle_sequencing_errors(console):
        service = build_service()
        found = service.get_lines(limit=limit)

    if json_output:
        print_json([g.model_dump(mode="json") for g in found])
        return

    if not found:
        console.print("[dim]No lines generated yet. Run 'loopline plan'.[/dim]")
        return
    console.print(lines_table(found))


def line(
    line_id: Annotated[str, typer.Argument(help="Line identifier")],
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Show one generated line."""
    with handle_sequencing_errors(console):
        service = build_service()
        found = service.get_line(line_id)

    if found is None:
        console.print(f"[red]Line not found:[/red] {line_id}")
        raise typer.Exit(1)

    if json_output:
        print_json(found.model_dump(mode="json"))
        return

    console.print(render_line(found))


def prune_lines(
    older_than_days: Annotated[
        float,
        typer.Option("--older-than-days", min=0, help="Delete lines older than this many days"),
    ] = 30.0,
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Delete generated lines older than a cutoff."""
    with handle_sequencing_errors(console):
        service = build_service()
        removed = service.prune_lines(timedelta(days=older_than_days))

    if json_output:
        print_json({"removed": removed})
        return

    console.print(f"Pruned [yellow]{len(removed)}[/yellow] line(s)")
