"""Rich output formatting for the Loopline CLI.

Centralizes tables and panels so every command renders transitions,
sequences, lines and the status dashboard the same way.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import TYPE_CHECKING, Any

from rich.console import Console, Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

if TYPE_CHECKING:
    from collections.abc import Sequence

    from loopline.sequencing.models import (
        Line,
        LoopSequence,
        LoopTransition,
        SequenceInsight,
        SequencingStatus,
    )

console = Console()


def print_json(data: Any) -> None:
    """Print machine-readable output without wrapping or markup."""
    console.print(
        json.dumps(data, indent=2, default=str),
        soft_wrap=True,
        highlight=False,
        markup=False,
    )


def rate_color(rate: float) -> str:
    """Green for strong success rates, yellow for middling, red for weak."""
    if rate >= 0.8:
        return "green"
    if rate >= 0.5:
        return "yellow"
    return "red"


def format_rate(rate: float) -> str:
    return f"[{rate_color(rate)}]{rate:.0%}[/]"


def format_minutes(minutes: float) -> str:
    if minutes < 60:
        return f"{minutes:.0f}m"
    return f"{minutes / 60:.1f}h"


def format_timestamp(value: datetime | None) -> str:
    return value.strftime("%Y-%m-%d %H:%M:%S") if value else "Never"


def truncate(text: str, width: int) -> str:
    return text if len(text) <= width else text[: width - 3] + "..."


def transitions_table(transitions: Sequence[LoopTransition], title: str = "Loop Transitions") -> Table:
    table = Table(title=title)
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Avg Gap", justify="right")
    table.add_column("Systems")
    for t in transitions:
        table.add_row(
            t.from_loop,
            t.to_loop,
            str(t.occurrences),
            format_rate(t.success_rate),
            format_minutes(t.avg_gap_minutes),
            ", ".join(t.contexts),
        )
    return table


def sequences_table(sequences: Sequence[LoopSequence], title: str = "Loop Sequences") -> Table:
    table = Table(title=title)
    table.add_column("Sequence", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Success", justify="right")
    table.add_column("Avg Duration", justify="right")
    for s in sequences:
        table.add_row(
            " → ".join(s.loops),
            str(s.occurrences),
            format_rate(s.success_rate),
            format_minutes(s.avg_total_duration),
        )
    return table


def insights_table(insights: Sequence[SequenceInsight]) -> Table:
    table = Table(title="Sequence Insights")
    table.add_column("Type", style="magenta")
    table.add_column("Insight")
    table.add_column("Significance", justify="right")
    for insight in insights:
        table.add_row(insight.type.value, insight.description, f"{insight.significance:.2f}")
    return table


def lines_table(lines: Sequence[Line]) -> Table:
    table = Table(title="Generated Lines")
    table.add_column("ID", style="dim")
    table.add_column("Moves", justify="right")
    table.add_column("First Move", style="cyan")
    table.add_column("Leverage", justify="right")
    table.add_column("Confidence", justify="right")
    table.add_column("Generated")
    for line in lines:
        table.add_row(
            line.id,
            str(line.total_moves),
            line.moves[0].loop if line.moves else "-",
            f"{line.compound_leverage:.1f}",
            format_rate(line.confidence),
            format_timestamp(line.generated_at),
        )
    return table


def render_line(line: Line) -> Panel:
    """Render one line with its moves, risks, and alternatives."""
    moves = Table(show_header=True, box=None, pad_edge=False)
    moves.add_column("#", justify="right")
    moves.add_column("Loop", style="cyan")
    moves.add_column("Target")
    moves.add_column("Leverage", justify="right")
    moves.add_column("Cumulative", justify="right")
    moves.add_column("Duration", justify="right")
    moves.add_column("Step Success", justify="right")
    for move in line.moves:
        evidence = move.transition_from_previous
        moves.add_row(
            str(move.position),
            move.loop,
            move.target or "-",
            f"{move.leverage:.1f}",
            f"{move.cumulative_leverage:.1f}",
            format_minutes(move.estimated_duration),
            format_rate(evidence.historical_success_rate) if evidence else "[dim]-[/dim]",
        )

    parts: list[Table | Text] = [
        Text.from_markup(
            f"Compound leverage [bold]{line.compound_leverage:.1f}[/bold]  "
            f"Expected duration [bold]{format_minutes(line.expected_duration)}[/bold]  "
            f"Confidence {format_rate(line.confidence)}"
        ),
        moves,
        Text(line.reasoning, style="italic"),
    ]
    if line.risks:
        parts.append(Text.from_markup("[bold yellow]Risks[/bold yellow]"))
        parts.extend(Text(f"  • {risk}") for risk in line.risks)
    if line.alternatives:
        parts.append(Text.from_markup("[bold cyan]Alternatives[/bold cyan]"))
        parts.extend(Text(f"  • {alt.describe()}") for alt in line.alternatives)

    return Panel(Group(*parts), title=f"Line {line.id}", expand=False)


def render_status(
    status: SequencingStatus,
    top_sequences: Sequence[LoopSequence],
    insights: Sequence[SequenceInsight],
) -> Panel:
    """Render the loop sequencing dashboard."""
    parts: list[Table | Text] = [
        Text.from_markup(
            f"Transitions: [bold]{status.transition_count}[/bold]   "
            f"Sequences: [bold]{status.sequence_count}[/bold]   "
            f"Lines: [bold]{status.line_count}[/bold]"
        ),
        Text(f"Last Analysis: {format_timestamp(status.last_analysis)}"),
        Text.from_markup("\n[bold]TOP TRANSITIONS[/bold]"),
    ]
    if status.top_transitions:
        parts.extend(
            Text(f"  {truncate(f'{t.from_loop} → {t.to_loop}', 45):<45} ({t.count:>3} times)")
            for t in status.top_transitions
        )
    else:
        parts.append(Text("  No transitions recorded yet. Run analysis to detect patterns.", style="dim"))

    parts.append(Text.from_markup("\n[bold]TOP SEQUENCES[/bold]"))
    if top_sequences:
        parts.extend(
            Text(f"  {truncate(' → '.join(s.loops), 50):<50} ({s.occurrences:>2}x)")
            for s in top_sequences
        )
    else:
        parts.append(Text("  No sequences recorded yet. Run analysis to detect patterns.", style="dim"))

    if insights:
        parts.append(Text.from_markup("\n[bold]INSIGHTS[/bold]"))
        parts.extend(Text(f"  • {truncate(i.description, 68)}") for i in insights)

    return Panel(Group(*parts), title="LOOP SEQUENCING STATUS", expand=False)


__all__ = [
    "console",
    "format_minutes",
    "format_rate",
    "format_timestamp",
    "insights_table",
    "lines_table",
    "print_json",
    "rate_color",
    "render_line",
    "render_status",
    "sequences_table",
    "transitions_table",
    "truncate",
]
