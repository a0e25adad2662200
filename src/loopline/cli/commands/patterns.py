"""Transition and sequence query commands.

Commands:
- transitions: List mined loop transitions
- transition: Show one transition
- sequences: List mined loop sequences
- sequence: Show one sequence
"""

from __future__ import annotations

from typing import Annotated

import typer

from ..helpers import build_service, handle_sequencing_errors
from ..output import (
    console,
    format_minutes,
    format_rate,
    format_timestamp,
    print_json,
    sequences_table,
    transitions_table,
)


def transitions(
    min_occurrences: Annotated[
        int | None,
        typer.Option("--min-occurrences", "-m", min=1, help="Minimum occurrences"),
    ] = None,
    loop: Annotated[
        str | None,
        typer.Option("--loop", "-l", help="Only transitions into or out of this loop"),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Max rows to show")] = 20,
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """List mined loop transitions by descending occurrences."""
    with handle_sequencing_errors(console):
        service = build_service()
        found = service.get_transitions(min_occurrences=min_occurrences, loop=loop)[:limit]

    if json_output:
        print_json([t.model_dump(mode="json") for t in found])
        return

    if not found:
        console.print("[dim]No transitions recorded yet.[/dim]")
        return
    console.print(transitions_table(found))


def transition(
    from_loop: Annotated[str, typer.Argument(help="Loop the hand-off starts from")],
    to_loop: Annotated[str, typer.Argument(help="Loop the hand-off goes to")],
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Show statistics for one transition."""
    with handle_sequencing_errors(console):
        service = build_service()
        found = service.get_transition(from_loop, to_loop)

    if found is None:
        console.print(f"[red]Transition not found:[/red] {from_loop} → {to_loop}")
        raise typer.Exit(1)

    if json_output:
        print_json(found.model_dump(mode="json"))
        return

    console.print(f"[bold]{found.from_loop} → {found.to_loop}[/bold]\n")
    console.print(f"  Occurrences: [cyan]{found.occurrences}[/cyan]")
    console.print(f"  Success rate: {format_rate(found.success_rate)}")
    console.print(f"  Average gap: {format_minutes(found.avg_gap_minutes)}")
    console.print(f"  Systems: {', '.join(found.contexts) or '-'}")
    console.print(f"  First seen: {format_timestamp(found.first_seen)}")
    console.print(f"  Last seen: {format_timestamp(found.last_seen)}")


def sequences(
    min_occurrences: Annotated[
        int | None,
        typer.Option("--min-occurrences", "-m", min=1, help="Minimum occurrences"),
    ] = None,
    contains: Annotated[
        str | None,
        typer.Option("--contains", "-c", help="Only sequences containing this loop"),
    ] = None,
    limit: Annotated[int, typer.Option("--limit", "-n", min=1, help="Max rows to show")] = 20,
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """List mined loop sequences by descending occurrences."""
    with handle_sequencing_errors(console):
        service = build_service()
        found = service.get_sequences(
            min_occurrences=min_occurrences, contains_loop=contains
        )[:limit]

    if json_output:
        print_json([s.model_dump(mode="json") for s in found])
        return

    if not found:
        console.print("[dim]No sequences recorded yet.[/dim]")
        return
    console.print(sequences_table(found))


def sequence(
    loops: Annotated[
        list[str],
        typer.Argument(help="Loops in order, or a single arrow-joined sequence id"),
    ],
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON for machine parsing",
    ),
) -> None:
    """Show statistics for one sequence.

    Examples:
        loopline sequence engineering-loop bugfix-loop learning-loop
        loopline sequence "engineering-loop→bugfix-loop→learning-loop"
    """
    with handle_sequencing_errors(console):
        service = build_service()
        found = service.get_sequence(loops[0] if len(loops) == 1 else loops)

    if found is None:
        console.print(f"[red]Sequence not found:[/red] {' → '.join(loops)}")
        raise typer.Exit(1)

    if json_output:
        print_json(found.model_dump(mode="json"))
        return

    console.print(f"[bold]{' → '.join(found.loops)}[/bold]\n")
    console.print(f"  Occurrences: [cyan]{found.occurrences}[/cyan]")
    console.print(f"  Success rate: {format_rate(found.success_rate)}")
    console.print(f"  Average duration: {format_minutes(found.avg_total_duration)}")
    console.print(f"  Systems: {', '.join(found.contexts.systems) or '-'}")
    console.print(f"  Modules: {', '.join(found.contexts.modules) or '-'}")
    console.print(f"  First seen: {format_timestamp(found.first_seen)}")
    console.print(f"  Last seen: {format_timestamp(found.last_seen)}")
