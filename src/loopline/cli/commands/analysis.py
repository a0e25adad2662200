"""History analysis, status, and insight commands.

Commands:
- analyze: Mine run history into transitions and sequences
- status: Show the loop sequencing dashboard
- insights: Show insights derived from the current tables
"""

from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import Annotated

import typer

from ..helpers import build_service, handle_sequencing_errors
from ..output import (
    console,
    format_timestamp,
    insights_table,
    print_json,
    render_status,
    sequences_table,
    transitions_table,
)

STATUS_TOP_SEQUENCES = 3
STATUS_TOP_INSIGHTS = 3


def parse_since(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp, assuming UTC when no offset is given."""
    if value is None:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        raise typer.BadParameter(f"Not an ISO 8601 timestamp: {value}") from None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def analyze(
    history_file: Annotated[
        Path,
        typer.Argument(
            help="Run history file (JSON array, {\"runs\": [...]}, or JSON Lines)",
            exists=True,
            dir_okay=False,
        ),
    ],
    limit: Annotated[
        int | None,
        typer.Option("--limit", "-n", min=1, help="Maximum runs to analyze"),
    ] = None,
    since: Annotated[
        str | None,
        typer.Option("--since", help="Only analyze runs started at or after this ISO time"),
    ] = None,
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Analyze run history to detect loop transitions and sequences.

    Counts accumulate across invocations, so analyze each slice of history
    once.

    Examples:
        loopline analyze runs.json
        loopline analyze runs.jsonl --since 2025-01-01 --json
    """
    since_at = parse_since(since)
    with handle_sequencing_errors(console):
        service = build_service(history_path=history_file)
        analysis = service.analyze_history(limit=limit, since=since_at)

    if json_output:
        print_json(analysis.model_dump(mode="json"))
        return

    console.print("[bold]Loop Sequence Analysis[/bold]\n")
    console.print(f"  Runs analyzed: [green]{analysis.total_runs_analyzed}[/green]")
    console.print(f"  Unique loops: [cyan]{analysis.unique_loops}[/cyan]")
    console.print(f"  Unique transitions: [cyan]{analysis.unique_transitions}[/cyan]")
    console.print(f"  Unique sequences: [cyan]{analysis.unique_sequences}[/cyan]\n")

    if analysis.top_transitions:
        console.print(transitions_table(analysis.top_transitions, title="Top Transitions"))
    if analysis.top_sequences:
        console.print(sequences_table(analysis.top_sequences, title="Top Sequences"))
    if analysis.insights:
        console.print(insights_table(analysis.insights))


def status(
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Show the loop sequencing dashboard.

    Examples:
        loopline status
        loopline --data state.json status --json
    """
    with handle_sequencing_errors(console):
        service = build_service()
        current = service.get_status()
        top_sequences = service.get_sequences()[:STATUS_TOP_SEQUENCES]
        top_insights = service.generate_insights()[:STATUS_TOP_INSIGHTS]

    if json_output:
        output = current.model_dump(mode="json")
        output["top_sequences"] = [
            {"loops": s.loops, "occurrences": s.occurrences} for s in top_sequences
        ]
        output["insights"] = [i.model_dump(mode="json") for i in top_insights]
        print_json(output)
        return

    console.print(render_status(current, top_sequences, top_insights))


def insights(
    min_occurrences: Annotated[
        int | None,
        typer.Option("--min-occurrences", "-m", min=1, help="Minimum occurrences to consider"),
    ] = None,
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Show insights derived from the mined transitions and sequences."""
    with handle_sequencing_errors(console):
        service = build_service()
        found = service.generate_insights(min_occurrences=min_occurrences)
        last = service.get_last_analysis()

    if json_output:
        print_json([i.model_dump(mode="json") for i in found])
        return

    if not found:
        console.print("[dim]No insights yet. Run 'loopline analyze' on more history.[/dim]")
        return

    console.print(insights_table(found))
    console.print(
        f"[dim]Last analysis: {format_timestamp(last.analyzed_at if last else None)}[/dim]"
    )
