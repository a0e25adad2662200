"""LoopSequencingService - multi-move planning beyond single leverage decisions.

Learns which loops commonly run together from execution history and uses
that to look several moves ahead, proposing "lines" whose compound leverage
beats picking the single best next action.

Key concepts:
- Transition: a single A -> B loop hand-off with frequency and success data
- Sequence: a recurring ordered run of 3-5 loops
- Line: a proposed multi-move plan with decayed compound leverage

The service is single-writer: callers serialize analysis and generation per
dataset. Every mutating operation saves the full document before returning.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import UTC, datetime, timedelta

from loopline.core.config import SequencingConfig
from loopline.core.errors import ConfigurationError
from loopline.core.logging import AnalysisContext, get_logger, with_context
from loopline.sequencing.events import (
    ObserverCallback,
    SequencingEvent,
    SequencingNotification,
    SequencingObserver,
    as_callback,
)
from loopline.sequencing.insights import InsightGenerator
from loopline.sequencing.models import (
    Line,
    LoopSequence,
    LoopTransition,
    SequenceAnalysis,
    SequenceInsight,
    SequencingState,
    SequencingStatus,
    TransitionSummary,
)
from loopline.sequencing.planner import LinePlanner, LoopSelector
from loopline.sequencing.sequences import SequenceMiner, SequenceTable
from loopline.sequencing.sources import HistorySource, LeverageSource
from loopline.sequencing.store import SequencingStore
from loopline.sequencing.transitions import (
    TransitionMiner,
    TransitionTable,
    group_runs_by_system,
)

_logger = get_logger("sequencing.service")

STATUS_TOP_TRANSITIONS = 5


class LoopSequencingService:
    """Facade over mining, insight generation, planning, and persistence.

    Args:
        history: Source of run records. Required.
        store: Persistence for the sequencing document.
        leverage: Optional leverage ranking provider.
        config: Tunable settings; defaults reproduce the standard behaviour.
        loop_selector: Optional target-to-loop lookup for the planner.
        observers: Lifecycle observers registered up front.

    Raises:
        ConfigurationError: If ``history`` is None.
    """

    def __init__(
        self,
        history: HistorySource,
        store: SequencingStore,
        leverage: LeverageSource | None = None,
        config: SequencingConfig | None = None,
        loop_selector: LoopSelector | None = None,
        observers: Iterable[SequencingObserver | ObserverCallback] = (),
    ) -> None:
        if history is None:
            raise ConfigurationError("A history source is required for loop sequencing")

        self.history = history
        self.store = store
        self.leverage = leverage
        self.config = config or SequencingConfig()
        self.loop_selector = loop_selector

        self._transitions: TransitionTable = {}
        self._sequences: SequenceTable = {}
        self._lines: dict[str, Line] = {}
        self._last_analysis: SequenceAnalysis | None = None
        self._observers: list[tuple[object, ObserverCallback]] = []
        for observer in observers:
            self.subscribe(observer)

    # ─────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def initialize(self) -> None:
        """Load persisted state. A missing or unreadable document starts empty."""
        state = self.store.load()
        self._transitions = {t.key: t for t in state.transitions}
        self._sequences = {s.key: s for s in state.sequences}
        self._lines = {line.id: line for line in state.generated_lines}
        self._last_analysis = state.last_analysis

        _logger.info(
            "sequencing_initialized",
            transitions=len(self._transitions),
            sequences=len(self._sequences),
            lines=len(self._lines),
        )
        self._notify(SequencingNotification(event=SequencingEvent.INITIALIZED))

    def subscribe(self, observer: SequencingObserver | ObserverCallback) -> None:
        """Register an observer or callable for lifecycle notifications."""
        self._observers.append((observer, as_callback(observer)))

    def unsubscribe(self, observer: SequencingObserver | ObserverCallback) -> bool:
        """Remove a registered observer. Returns False if it was not registered."""
        for i, (registered, _) in enumerate(self._observers):
            if registered is observer:
                del self._observers[i]
                return True
        return False

    # ─────────────────────────────────────────────────────────────────────
    # Analysis
    # ─────────────────────────────────────────────────────────────────────

    def analyze_history(
        self,
        limit: int | None = None,
        since: datetime | None = None,
    ) -> SequenceAnalysis:
        """Mine the most recent runs into the transition and sequence tables.

        Accumulation is additive: analyzing overlapping history twice counts
        the overlap twice, so callers pass non-overlapping windows.

        Args:
            limit: Maximum runs to read. Defaults to ``mining.history_limit``.
            since: Only read runs started at or after this time.

        Raises:
            HistorySourceError: If the history source cannot produce runs.
        """
        mining = self.config.mining
        ctx = AnalysisContext(dataset=str(self.store.path), operation="analyze")
        with with_context(ctx):
            runs = self.history.query_runs(
                limit=limit if limit is not None else mining.history_limit,
                since=since,
            )
            _logger.info("analysis_started", runs=len(runs))

            runs_by_system = group_runs_by_system(runs)
            transition_miner = TransitionMiner(
                self._transitions, window_hours=mining.transition_window_hours
            )
            sequence_miner = SequenceMiner(
                self._sequences,
                window_hours=mining.sequence_window_hours,
                min_length=mining.min_sequence_length,
                max_length=mining.max_sequence_length,
            )
            transition_miner.record_transitions(runs_by_system)
            for system, system_runs in runs_by_system.items():
                sequence_miner.detect_sequences(system_runs, system)

            analysis = SequenceAnalysis(
                total_runs_analyzed=len(runs),
                unique_loops=len({r.loop for r in runs}),
                unique_transitions=len(self._transitions),
                unique_sequences=len(self._sequences),
                top_transitions=[
                    t.model_copy(deep=True)
                    for t in self.get_transitions()[: mining.top_n]
                ],
                top_sequences=[
                    s.model_copy(deep=True)
                    for s in self.get_sequences()[: mining.top_n]
                ],
                insights=self.generate_insights(),
            )
            self._last_analysis = analysis
            self.save()

            _logger.info(
                "analysis_complete",
                runs=analysis.total_runs_analyzed,
                unique_transitions=analysis.unique_transitions,
                unique_sequences=analysis.unique_sequences,
                insights=len(analysis.insights),
            )

        self._notify(
            SequencingNotification(event=SequencingEvent.ANALYSIS_COMPLETE, analysis=analysis)
        )
        return analysis

    def generate_insights(self, min_occurrences: int | None = None) -> list[SequenceInsight]:
        """Derive insights from the current tables without modifying them."""
        cfg = self.config.insights
        generator = InsightGenerator(
            frequent_pair_limit=cfg.frequent_pair_limit,
            starter_limit=cfg.starter_limit,
            finisher_limit=cfg.finisher_limit,
            success_pattern_limit=cfg.success_pattern_limit,
            hub_min_degree=cfg.hub_min_degree,
            success_pattern_threshold=cfg.success_pattern_threshold,
        )
        return generator.generate_insights(
            self._transitions.values(),
            self._sequences.values(),
            min_occurrences if min_occurrences is not None else cfg.min_occurrences,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Line generation
    # ─────────────────────────────────────────────────────────────────────

    def generate_line(
        self,
        starting_loop: str | None = None,
        target: str | None = None,
        depth: int | None = None,
    ) -> Line:
        """Plan, store, and return a multi-move line.

        Raises:
            StartingLoopError: If no seed move can be determined.
        """
        ctx = AnalysisContext(dataset=str(self.store.path), operation="generate_line")
        with with_context(ctx):
            planner = LinePlanner(
                self._transitions,
                self._sequences,
                leverage_source=self.leverage,
                config=self.config.planner,
                loop_selector=self.loop_selector,
            )
            line = planner.generate_line(starting_loop=starting_loop, target=target, depth=depth)
            self._lines[line.id] = line
            self.save()

            _logger.info(
                "line_generated",
                line_id=line.id,
                moves=line.total_moves,
                compound_leverage=round(line.compound_leverage, 2),
                confidence=round(line.confidence, 3),
                risks=len(line.risks),
            )

        self._notify(SequencingNotification(event=SequencingEvent.LINE_GENERATED, line=line))
        return line

    def prune_lines(self, older_than: timedelta) -> list[str]:
        """Delete generated lines older than ``older_than``. Returns removed ids."""
        cutoff = datetime.now(UTC) - older_than
        removed = [lid for lid, line in self._lines.items() if line.generated_at < cutoff]
        if not removed:
            return []

        for lid in removed:
            del self._lines[lid]
        self.save()

        _logger.info("lines_pruned", removed=len(removed), remaining=len(self._lines))
        self._notify(
            SequencingNotification(event=SequencingEvent.LINES_PRUNED, pruned_line_ids=removed)
        )
        return removed

    # ─────────────────────────────────────────────────────────────────────
    # Queries
    # ─────────────────────────────────────────────────────────────────────

    def get_transitions(
        self,
        min_occurrences: int | None = None,
        loop: str | None = None,
    ) -> list[LoopTransition]:
        """Transitions by descending occurrences, optionally filtered."""
        transitions: Iterable[LoopTransition] = self._transitions.values()
        if min_occurrences:
            transitions = (t for t in transitions if t.occurrences >= min_occurrences)
        if loop:
            transitions = (t for t in transitions if loop in (t.from_loop, t.to_loop))
        return sorted(transitions, key=lambda t: t.occurrences, reverse=True)

    def get_transition(self, from_loop: str, to_loop: str) -> LoopTransition | None:
        return self._transitions.get((from_loop, to_loop))

    def get_sequences(
        self,
        min_occurrences: int | None = None,
        contains_loop: str | None = None,
    ) -> list[LoopSequence]:
        """Sequences by descending occurrences, optionally filtered."""
        sequences: Iterable[LoopSequence] = self._sequences.values()
        if min_occurrences:
            sequences = (s for s in sequences if s.occurrences >= min_occurrences)
        if contains_loop:
            sequences = (s for s in sequences if contains_loop in s.loops)
        return sorted(sequences, key=lambda s: s.occurrences, reverse=True)

    def get_sequence(self, loops: str | Sequence[str]) -> LoopSequence | None:
        """Look up a sequence by its ordered loops or by its arrow-joined id."""
        if isinstance(loops, str):
            key = tuple(part.strip() for part in loops.split("→"))
        else:
            key = tuple(loops)
        return self._sequences.get(key)

    def get_lines(self, limit: int | None = None) -> list[Line]:
        """Generated lines, newest first."""
        lines = sorted(self._lines.values(), key=lambda line: line.generated_at, reverse=True)
        return lines[:limit] if limit else lines

    def get_line(self, line_id: str) -> Line | None:
        return self._lines.get(line_id)

    def get_last_analysis(self) -> SequenceAnalysis | None:
        return self._last_analysis

    def get_status(self) -> SequencingStatus:
        top = self.get_transitions()[:STATUS_TOP_TRANSITIONS]
        return SequencingStatus(
            transition_count=len(self._transitions),
            sequence_count=len(self._sequences),
            line_count=len(self._lines),
            last_analysis=self._last_analysis.analyzed_at if self._last_analysis else None,
            top_transitions=[
                TransitionSummary(from_loop=t.from_loop, to_loop=t.to_loop, count=t.occurrences)
                for t in top
            ],
        )

    # ─────────────────────────────────────────────────────────────────────
    # Persistence and notification
    # ─────────────────────────────────────────────────────────────────────

    def save(self) -> None:
        """Write the full in-memory state to the store."""
        self.store.save(
            SequencingState(
                transitions=list(self._transitions.values()),
                sequences=list(self._sequences.values()),
                generated_lines=list(self._lines.values()),
                last_analysis=self._last_analysis,
            )
        )

    def _notify(self, notification: SequencingNotification) -> None:
        for _, callback in list(self._observers):
            try:
                callback(notification)
            except Exception:
                _logger.warning(
                    "observer_failed",
                    sequencing_event=notification.event.value,
                    exc_info=True,
                )


__all__ = ["LoopSequencingService"]
