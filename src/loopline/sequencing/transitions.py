"""Pairwise loop transition mining.

For each system, consecutive runs ordered by start time form a transition
``previous.loop -> next.loop`` when the next run starts within the transition
window after the previous one completed. Statistics accumulate as running
averages, so a table reflects every occurrence it has ever seen.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime

from loopline.core.logging import get_logger
from loopline.sequencing.models import (
    LoopTransition,
    RunRecord,
    TransitionKey,
)

_logger = get_logger("sequencing.transitions")

TransitionTable = dict[TransitionKey, LoopTransition]


def minutes_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 60


def running_average(old_avg: float, sample: float, n: int) -> float:
    """Fold ``sample`` into an average over ``n - 1`` prior samples."""
    return (old_avg * (n - 1) + sample) / n


def group_runs_by_system(runs: Iterable[RunRecord]) -> dict[str, list[RunRecord]]:
    """Group runs per system, each group sorted by start time.

    Systems are returned in name order.
    """
    grouped: dict[str, list[RunRecord]] = defaultdict(list)
    for run in runs:
        grouped[run.system].append(run)
    for system_runs in grouped.values():
        system_runs.sort(key=lambda r: r.started_at)
    return {system: grouped[system] for system in sorted(grouped)}


class TransitionMiner:
    """Builds and updates the shared transition table.

    The miner mutates the table it was given and never persists it.
    """

    def __init__(
        self,
        table: TransitionTable | None = None,
        window_hours: float = 24,
    ) -> None:
        self.table: TransitionTable = table if table is not None else {}
        self.window_minutes = window_hours * 60

    def record_transitions(
        self, runs_by_system: Mapping[str, Sequence[RunRecord]]
    ) -> int:
        """Record every in-window consecutive pair of each system's history.

        Args:
            runs_by_system: Runs per system. Each history is ordered by start
                time before pairing.

        Returns:
            Number of transition occurrences recorded.
        """
        recorded = 0
        for system, runs in runs_by_system.items():
            ordered = sorted(runs, key=lambda r: r.started_at)
            for current, nxt in zip(ordered, ordered[1:]):
                gap = minutes_between(current.completed_at, nxt.started_at)
                if gap >= self.window_minutes:
                    continue
                self.record(current, nxt, gap, system)
                recorded += 1

        _logger.debug(
            "transitions_recorded",
            occurrences=recorded,
            systems=len(runs_by_system),
            unique_transitions=len(self.table),
        )
        return recorded

    def record(
        self,
        current: RunRecord,
        nxt: RunRecord,
        gap_minutes: float,
        system: str,
    ) -> LoopTransition:
        """Upsert the transition ``current.loop -> nxt.loop``."""
        key = (current.loop, nxt.loop)
        both_success = 1.0 if current.succeeded and nxt.succeeded else 0.0
        existing = self.table.get(key)

        if existing is None:
            transition = LoopTransition(
                from_loop=current.loop,
                to_loop=nxt.loop,
                occurrences=1,
                success_rate=both_success,
                avg_gap_minutes=gap_minutes,
                contexts=[system],
                first_seen=current.started_at,
                last_seen=nxt.started_at,
            )
            self.table[key] = transition
            return transition

        n = existing.occurrences + 1
        existing.occurrences = n
        existing.avg_gap_minutes = running_average(existing.avg_gap_minutes, gap_minutes, n)
        existing.success_rate = running_average(existing.success_rate, both_success, n)
        if system not in existing.contexts:
            existing.contexts.append(system)
        existing.last_seen = max(existing.last_seen, nxt.started_at)
        existing.first_seen = min(existing.first_seen, current.started_at)
        return existing


__all__ = [
    "TransitionMiner",
    "TransitionTable",
    "group_runs_by_system",
    "minutes_between",
    "running_average",
]
