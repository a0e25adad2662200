"""Shared test helpers for Loopline tests."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import UTC, datetime, timedelta

from loopline.sequencing.models import LoopSequence, LoopTransition, RunRecord

BASE_TIME = datetime(2026, 1, 5, 9, 0, tzinfo=UTC)


def make_run(
    loop: str,
    started_at: datetime,
    duration_minutes: float = 30,
    *,
    system: str = "orchestrator",
    module: str | None = None,
    outcome: str = "success",
) -> RunRecord:
    """Build a single run record."""
    return RunRecord(
        system=system,
        module=module,
        loop=loop,
        started_at=started_at,
        completed_at=started_at + timedelta(minutes=duration_minutes),
        outcome=outcome,
    )


def chain_runs(
    loops: Sequence[str],
    *,
    start: datetime = BASE_TIME,
    duration_minutes: float = 30,
    gap_minutes: float = 10,
    system: str = "orchestrator",
    module: str | None = None,
    outcomes: Sequence[str] | None = None,
) -> list[RunRecord]:
    """Build back-to-back runs, each starting ``gap_minutes`` after the last ended."""
    runs: list[RunRecord] = []
    at = start
    for i, loop in enumerate(loops):
        run = make_run(
            loop,
            at,
            duration_minutes,
            system=system,
            module=module,
            outcome=outcomes[i] if outcomes else "success",
        )
        runs.append(run)
        at = run.completed_at + timedelta(minutes=gap_minutes)
    return runs


def make_transition(
    from_loop: str,
    to_loop: str,
    occurrences: int = 1,
    success_rate: float = 1.0,
    avg_gap_minutes: float = 10.0,
) -> LoopTransition:
    """Build a transition table entry directly."""
    return LoopTransition(
        from_loop=from_loop,
        to_loop=to_loop,
        occurrences=occurrences,
        success_rate=success_rate,
        avg_gap_minutes=avg_gap_minutes,
        contexts=["orchestrator"],
        first_seen=BASE_TIME,
        last_seen=BASE_TIME,
    )


def make_sequence(
    loops: Sequence[str],
    occurrences: int = 1,
    success_rate: float = 1.0,
    avg_total_duration: float = 120.0,
) -> LoopSequence:
    """Build a sequence table entry directly."""
    return LoopSequence(
        loops=list(loops),
        occurrences=occurrences,
        avg_total_duration=avg_total_duration,
        success_rate=success_rate,
        first_seen=BASE_TIME,
        last_seen=BASE_TIME,
    )
