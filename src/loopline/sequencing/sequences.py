"""Recurring loop sequence mining.

Slides windows of every configured length across a system's ordered runs.
Windows overlap, so a pattern's frequency counts every position it occurs
at. Sequences are keyed by the exact ordered tuple of loops.
"""

from __future__ import annotations

from collections.abc import Sequence

from loopline.core.logging import get_logger
from loopline.sequencing.models import (
    LoopSequence,
    RunRecord,
    SequenceContexts,
    SequenceKey,
)
from loopline.sequencing.transitions import minutes_between, running_average

_logger = get_logger("sequencing.sequences")

SequenceTable = dict[SequenceKey, LoopSequence]


class SequenceMiner:
    """Builds and updates the shared sequence table."""

    def __init__(
        self,
        table: SequenceTable | None = None,
        window_hours: float = 48,
        min_length: int = 3,
        max_length: int = 5,
    ) -> None:
        self.table: SequenceTable = table if table is not None else {}
        self.window_minutes = window_hours * 60
        self.min_length = min_length
        self.max_length = max_length

    def detect_sequences(self, runs: Sequence[RunRecord], system: str) -> int:
        """Record every in-window run of consecutive loops.

        Args:
            runs: One system's runs, sorted by start time.
            system: The system the runs belong to.

        Returns:
            Number of sequence occurrences recorded.
        """
        recorded = 0
        for length in range(self.min_length, self.max_length + 1):
            for i in range(len(runs) - length + 1):
                window = runs[i:i + length]
                span = minutes_between(window[0].started_at, window[-1].completed_at)
                if span < self.window_minutes:
                    self.record(window, span, system)
                    recorded += 1

        _logger.debug(
            "sequences_recorded",
            system=system,
            runs=len(runs),
            occurrences=recorded,
        )
        return recorded

    def record(
        self, window: Sequence[RunRecord], span_minutes: float, system: str
    ) -> LoopSequence:
        """Upsert the sequence formed by ``window``."""
        key: SequenceKey = tuple(r.loop for r in window)
        all_success = 1.0 if all(r.succeeded for r in window) else 0.0
        modules = [r.module for r in window if r.module]
        existing = self.table.get(key)

        if existing is None:
            sequence = LoopSequence(
                loops=list(key),
                occurrences=1,
                avg_total_duration=span_minutes,
                success_rate=all_success,
                contexts=SequenceContexts(
                    systems=[system],
                    modules=list(dict.fromkeys(modules)),
                ),
                first_seen=window[0].started_at,
                last_seen=window[-1].completed_at,
            )
            self.table[key] = sequence
            return sequence

        n = existing.occurrences + 1
        existing.occurrences = n
        existing.avg_total_duration = running_average(
            existing.avg_total_duration, span_minutes, n
        )
        existing.success_rate = running_average(existing.success_rate, all_success, n)
        if system not in existing.contexts.systems:
            existing.contexts.systems.append(system)
        for module in modules:
            if module not in existing.contexts.modules:
                existing.contexts.modules.append(module)
        existing.last_seen = max(existing.last_seen, window[-1].completed_at)
        existing.first_seen = min(existing.first_seen, window[0].started_at)
        return existing


__all__ = ["SequenceMiner", "SequenceTable"]
