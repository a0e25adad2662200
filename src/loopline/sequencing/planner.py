"""Multi-move line planning.

LinePlanner builds a line greedily: a seed move, then repeated extension to
the best-scoring unvisited successor of the current loop. A candidate's score
blends its single-step leverage with the historical strength of the
transition into it:

    score = leverage_weight * leverage + history_weight * occurrences * success_rate

Leverage further out in the line is discounted geometrically by the decay
factor. Confidence starts at 1.0 and is multiplied down for every step, by
the transition's success rate where history exists and by a flat penalty
where it does not.

All inputs (tables, leverage ranking) are resident before the search starts;
the search itself performs no I/O.
"""

from __future__ import annotations

import uuid
from collections import Counter, defaultdict
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Protocol

from loopline.core.config import KeywordLoopRule, PlannerConfig
from loopline.core.errors import LeverageSourceError, StartingLoopError
from loopline.core.logging import get_logger
from loopline.sequencing.models import (
    Line,
    LineAlternative,
    LineMove,
    LoopTransition,
    TransitionEvidence,
    sequence_id,
)
from loopline.sequencing.sequences import SequenceTable
from loopline.sequencing.sources import LeverageScore, LeverageSource
from loopline.sequencing.transitions import TransitionTable

_logger = get_logger("sequencing.planner")


class LoopSelector(Protocol):
    """Maps a ranked target identifier to the loop that works on it."""

    def loop_for_target(self, target_id: str) -> str:
        ...


class KeywordLoopSelector:
    """Selects a loop by the first rule whose keyword occurs in the target id."""

    def __init__(self, rules: Sequence[KeywordLoopRule], default_loop: str) -> None:
        self.rules = list(rules)
        self.default_loop = default_loop

    def loop_for_target(self, target_id: str) -> str:
        lowered = target_id.lower()
        for rule in self.rules:
            if any(keyword.lower() in lowered for keyword in rule.keywords):
                return rule.loop
        return self.default_loop


class DurationEstimator:
    """Estimates minutes per loop from observed gaps, else per-loop defaults."""

    def __init__(
        self,
        transitions: Iterable[LoopTransition],
        loop_durations: Mapping[str, float],
        default_minutes: float = 45,
        min_minutes: float = 15,
    ) -> None:
        self._gaps: dict[str, list[float]] = defaultdict(list)
        for t in transitions:
            self._gaps[t.from_loop].append(t.avg_gap_minutes)
            if t.to_loop != t.from_loop:
                self._gaps[t.to_loop].append(t.avg_gap_minutes)
        self.loop_durations = dict(loop_durations)
        self.default_minutes = default_minutes
        self.min_minutes = min_minutes

    def estimate(self, loop: str) -> float:
        gaps = self._gaps.get(loop)
        if gaps:
            return max(sum(gaps) / len(gaps), self.min_minutes)
        return self.loop_durations.get(loop, self.default_minutes)


@dataclass
class _Candidate:
    loop: str
    leverage: float
    score: float
    transition: LoopTransition


def _contains_run(haystack: Sequence[str], needle: Sequence[str]) -> bool:
    """True if ``needle`` occurs as a contiguous run inside ``haystack``."""
    n = len(needle)
    if n == 0 or n > len(haystack):
        return False
    return any(
        tuple(haystack[i:i + n]) == tuple(needle)
        for i in range(len(haystack) - n + 1)
    )


class LinePlanner:
    """Greedy best-first planner over the implicit transition graph.

    Args:
        transitions: Transition table to plan over. Read only.
        sequences: Sequence table used for confidence and reasoning. Read only.
        leverage_source: Optional ranking provider. Without one, every move
            gets the neutral default leverage.
        config: Planner weights and thresholds.
        loop_selector: Target-to-loop lookup used when a ranked target has
            to become a move. Defaults to the configured keyword rules.
    """

    def __init__(
        self,
        transitions: TransitionTable,
        sequences: SequenceTable,
        leverage_source: LeverageSource | None = None,
        config: PlannerConfig | None = None,
        loop_selector: LoopSelector | None = None,
    ) -> None:
        self.transitions = transitions
        self.sequences = sequences
        self.leverage_source = leverage_source
        self.config = config or PlannerConfig()
        self.loop_selector: LoopSelector = loop_selector or KeywordLoopSelector(
            self.config.keyword_loops, self.config.default_loop
        )

    # ─────────────────────────────────────────────────────────────────────
    # Public API
    # ─────────────────────────────────────────────────────────────────────

    def generate_line(
        self,
        starting_loop: str | None = None,
        target: str | None = None,
        depth: int | None = None,
    ) -> Line:
        """Plan a line of up to ``depth`` moves.

        Args:
            starting_loop: Loop for move 1. When omitted the seed comes from
                the top leverage target, else the most frequent transition
                source.
            target: Module or system the line works toward.
            depth: Maximum number of moves. Defaults to ``config.max_depth``.

        Raises:
            StartingLoopError: No seed move can be determined.
            ValueError: ``depth`` is less than 1.
        """
        depth = self.config.max_depth if depth is None else depth
        if depth < 1:
            raise ValueError(f"depth must be at least 1, got {depth}")

        ranking = self._fetch_ranking()
        outgoing = self._outgoing_index()
        estimator = DurationEstimator(
            self.transitions.values(),
            self.config.loop_durations,
            self.config.default_duration_minutes,
            self.config.min_duration_minutes,
        )

        moves = [self._seed_move(starting_loop, target, ranking, estimator)]
        while len(moves) < depth:
            move = self._next_move(moves, target, ranking, outgoing, estimator)
            if move is None:
                break
            moves.append(move)

        loops = [m.loop for m in moves]
        based_on = self.find_matching_sequences(loops)
        compound = self.compound_leverage([m.leverage for m in moves])
        confidence = self._confidence(moves, bool(based_on))

        line = Line(
            id=f"line-{uuid.uuid4().hex[:12]}",
            moves=moves,
            total_moves=len(moves),
            compound_leverage=compound,
            expected_duration=moves[-1].cumulative_duration,
            confidence=confidence,
            reasoning=self._reasoning(moves, compound, based_on),
            risks=self._risks(moves),
            alternatives=self._alternatives(moves, outgoing),
            based_on_sequences=based_on,
        )
        _logger.debug(
            "line_planned",
            line_id=line.id,
            loops=loops,
            confidence=round(confidence, 3),
            compound_leverage=round(compound, 3),
        )
        return line

    def compound_leverage(self, leverages: Sequence[float]) -> float:
        """Decay-weighted sum: ``sum(leverage[i] * decay ** i)``."""
        decay = self.config.decay_factor
        return sum(lev * decay**i for i, lev in enumerate(leverages))

    def find_matching_sequences(self, loops: Sequence[str]) -> list[str]:
        """Ids of known sequences contained in, or containing, ``loops``."""
        return [
            sequence_id(key)
            for key in self.sequences
            if _contains_run(loops, key) or _contains_run(key, loops)
        ]

    # ─────────────────────────────────────────────────────────────────────
    # Leverage
    # ─────────────────────────────────────────────────────────────────────

    def _fetch_ranking(self) -> list[LeverageScore] | None:
        if self.leverage_source is None:
            return None
        try:
            ranking = self.leverage_source.rank()
        except LeverageSourceError as e:
            _logger.warning("leverage_unavailable", error=str(e))
            return None
        return ranking or None

    def _leverage_for(
        self,
        loop: str,
        target: str | None,
        ranking: list[LeverageScore] | None,
    ) -> float:
        if not ranking:
            return self.config.default_leverage
        by_id = {s.target_id: s.score for s in ranking}
        if target is not None and target in by_id:
            return by_id[target]
        if loop in by_id:
            return by_id[loop]
        top = ranking[:3]
        return sum(s.score for s in top) / len(top)

    def _known_loops(self) -> set[str]:
        known = set(self.config.loop_durations)
        for from_loop, to_loop in self.transitions:
            known.add(from_loop)
            known.add(to_loop)
        return known

    def _loop_for_target(self, target_id: str, known_loops: set[str]) -> str:
        if target_id in known_loops:
            return target_id
        return self.loop_selector.loop_for_target(target_id)

    # ─────────────────────────────────────────────────────────────────────
    # Move selection
    # ─────────────────────────────────────────────────────────────────────

    def _outgoing_index(self) -> dict[str, list[LoopTransition]]:
        index: dict[str, list[LoopTransition]] = defaultdict(list)
        for t in self.transitions.values():
            index[t.from_loop].append(t)
        for edges in index.values():
            edges.sort(key=lambda t: t.historical_score, reverse=True)
        return dict(index)

    def _make_move(
        self,
        previous: LineMove | None,
        loop: str,
        target: str | None,
        leverage: float,
        estimator: DurationEstimator,
        evidence: TransitionEvidence | None = None,
    ) -> LineMove:
        duration = estimator.estimate(loop)
        if previous is None:
            return LineMove(
                position=1,
                loop=loop,
                target=target,
                leverage=leverage,
                estimated_duration=duration,
                cumulative_leverage=leverage,
                cumulative_duration=duration,
            )
        discount = self.config.decay_factor ** previous.position
        return LineMove(
            position=previous.position + 1,
            loop=loop,
            target=target,
            leverage=leverage,
            estimated_duration=duration,
            cumulative_leverage=previous.cumulative_leverage + leverage * discount,
            cumulative_duration=previous.cumulative_duration + duration,
            transition_from_previous=evidence,
        )

    def _seed_move(
        self,
        starting_loop: str | None,
        target: str | None,
        ranking: list[LeverageScore] | None,
        estimator: DurationEstimator,
    ) -> LineMove:
        if starting_loop:
            leverage = self._leverage_for(starting_loop, target, ranking)
            return self._make_move(None, starting_loop, target, leverage, estimator)

        if ranking:
            top = ranking[0]
            loop = self._loop_for_target(top.target_id, self._known_loops())
            return self._make_move(None, loop, top.target_id, top.score, estimator)

        starters: Counter[str] = Counter()
        for t in self.transitions.values():
            starters[t.from_loop] += t.occurrences
        if not starters:
            raise StartingLoopError(
                "Cannot determine starting loop: no starting loop given, "
                "no leverage ranking available, and no transitions recorded"
            )
        loop, _ = starters.most_common(1)[0]
        return self._make_move(
            None, loop, target, self.config.default_leverage, estimator
        )

    def _next_move(
        self,
        moves: list[LineMove],
        target: str | None,
        ranking: list[LeverageScore] | None,
        outgoing: dict[str, list[LoopTransition]],
        estimator: DurationEstimator,
    ) -> LineMove | None:
        previous = moves[-1]
        used = {m.loop for m in moves}
        edges = outgoing.get(previous.loop, [])

        if not edges:
            return self._leverage_only_move(moves, target, ranking, estimator)

        candidates: list[_Candidate] = []
        for t in edges:
            if t.to_loop in used:
                continue
            leverage = self._leverage_for(t.to_loop, target, ranking)
            score = (
                self.config.leverage_weight * leverage
                + self.config.history_weight * t.historical_score
            )
            candidates.append(_Candidate(t.to_loop, leverage, score, t))

        if not candidates:
            return None

        best = max(candidates, key=lambda c: c.score)
        evidence = TransitionEvidence(
            historical_success_rate=best.transition.success_rate,
            avg_gap_minutes=best.transition.avg_gap_minutes,
        )
        return self._make_move(
            previous, best.loop, target, best.leverage, estimator, evidence
        )

    def _leverage_only_move(
        self,
        moves: list[LineMove],
        target: str | None,
        ranking: list[LeverageScore] | None,
        estimator: DurationEstimator,
    ) -> LineMove | None:
        if not ranking:
            return None
        used = {m.loop for m in moves}
        known = self._known_loops()
        for scored in ranking:
            loop = self._loop_for_target(scored.target_id, known)
            if loop in used:
                continue
            return self._make_move(
                moves[-1],
                loop,
                target if target is not None else scored.target_id,
                scored.score,
                estimator,
            )
        return None

    # ─────────────────────────────────────────────────────────────────────
    # Line analysis
    # ─────────────────────────────────────────────────────────────────────

    def _confidence(self, moves: list[LineMove], matches_sequence: bool) -> float:
        confidence = 1.0
        for move in moves[1:]:
            evidence = move.transition_from_previous
            if evidence is not None:
                confidence *= 0.5 + 0.5 * evidence.historical_success_rate
            else:
                confidence *= self.config.no_data_penalty
        if matches_sequence:
            confidence *= self.config.sequence_match_boost
        return max(0.0, min(confidence, 1.0))

    def _reasoning(
        self, moves: list[LineMove], compound: float, based_on: list[str]
    ) -> str:
        parts = [f"{len(moves)}-move line with compound leverage of {compound:.1f}."]
        if based_on:
            parts.append(f"Matches {len(based_on)} historically observed sequence(s).")

        strong = [
            f"{prev.loop} → {move.loop}"
            for prev, move in zip(moves, moves[1:])
            if move.transition_from_previous is not None
            and move.transition_from_previous.historical_success_rate
            >= self.config.strong_transition_threshold
        ]
        if strong:
            parts.append(f"Strong historical patterns: {', '.join(strong)}.")
        return " ".join(parts)

    def _risks(self, moves: list[LineMove]) -> list[str]:
        risks: list[str] = []
        for prev, move in zip(moves, moves[1:]):
            evidence = move.transition_from_previous
            step = f"{prev.loop} → {move.loop}"
            if evidence is None:
                risks.append(f"{step} has no historical data")
            elif evidence.historical_success_rate < self.config.low_success_threshold:
                risks.append(
                    f"{step} has low historical success "
                    f"({evidence.historical_success_rate:.0%})"
                )

        total = moves[-1].cumulative_duration
        if total > self.config.long_line_minutes:
            risks.append(
                f"Total estimated duration ({total:.0f} min) may be difficult "
                "to complete in one session"
            )
        if len(moves) > self.config.confidence_decay_moves:
            risks.append(
                "Confidence decreases with each move; later moves may diverge from plan"
            )
        return risks

    def _alternatives(
        self,
        moves: list[LineMove],
        outgoing: dict[str, list[LoopTransition]],
    ) -> list[LineAlternative]:
        alternatives: list[LineAlternative] = []
        last_step = min(len(moves), self.config.alternative_steps + 1)
        for i in range(1, last_step):
            prev_loop = moves[i - 1].loop
            chosen = moves[i].loop
            others = sorted(
                (t for t in outgoing.get(prev_loop, []) if t.to_loop != chosen),
                key=lambda t: t.occurrences,
                reverse=True,
            )[: self.config.alternatives_per_step]
            alternatives.extend(
                LineAlternative(
                    position=i + 1,
                    loop=t.to_loop,
                    instead_of=chosen,
                    occurrences=t.occurrences,
                )
                for t in others
            )
        return alternatives[: self.config.max_alternatives]


__all__ = [
    "DurationEstimator",
    "KeywordLoopSelector",
    "LinePlanner",
    "LoopSelector",
]
