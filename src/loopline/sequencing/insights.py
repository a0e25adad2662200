"""Structural insights derived from transition and sequence tables.

InsightGenerator is a pure derivation: it reads the tables, never mutates
them, and returns an empty list for empty input.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from collections.abc import Iterable

from loopline.sequencing.models import (
    InsightType,
    LoopSequence,
    LoopTransition,
    SequenceInsight,
)


class InsightGenerator:
    """Generates ranked SequenceInsight lists.

    Args:
        frequent_pair_limit: Maximum frequent-pair insights.
        starter_limit: Maximum common-starter insights.
        finisher_limit: Maximum common-finisher insights.
        success_pattern_limit: Maximum success-pattern insights.
        hub_min_degree: Distinct in- and out-partners required for a hub.
        success_pattern_threshold: Minimum sequence success rate for a
            success-pattern insight.
    """

    def __init__(
        self,
        frequent_pair_limit: int = 5,
        starter_limit: int = 3,
        finisher_limit: int = 3,
        success_pattern_limit: int = 3,
        hub_min_degree: int = 3,
        success_pattern_threshold: float = 0.9,
    ) -> None:
        self.frequent_pair_limit = frequent_pair_limit
        self.starter_limit = starter_limit
        self.finisher_limit = finisher_limit
        self.success_pattern_limit = success_pattern_limit
        self.hub_min_degree = hub_min_degree
        self.success_pattern_threshold = success_pattern_threshold

    def generate_insights(
        self,
        transitions: Iterable[LoopTransition],
        sequences: Iterable[LoopSequence],
        min_occurrences: int = 2,
    ) -> list[SequenceInsight]:
        """Derive insights, most significant first."""
        transition_list = list(transitions)
        sequence_list = list(sequences)

        insights: list[SequenceInsight] = []
        insights.extend(self._frequent_pairs(transition_list, min_occurrences))
        insights.extend(self._endpoints(transition_list, min_occurrences, starters=True))
        insights.extend(self._endpoints(transition_list, min_occurrences, starters=False))
        insights.extend(self._hubs(transition_list))
        insights.extend(self._success_patterns(sequence_list, min_occurrences))

        insights.sort(key=lambda i: i.significance, reverse=True)
        return insights

    def _frequent_pairs(
        self, transitions: list[LoopTransition], min_occurrences: int
    ) -> list[SequenceInsight]:
        frequent = sorted(
            (t for t in transitions if t.occurrences >= min_occurrences),
            key=lambda t: t.occurrences,
            reverse=True,
        )[: self.frequent_pair_limit]

        return [
            SequenceInsight(
                type=InsightType.FREQUENT_PAIR,
                description=(
                    f"{t.from_loop} → {t.to_loop} occurs {t.occurrences} times "
                    f"({t.success_rate:.0%} success)"
                ),
                loops=[t.from_loop, t.to_loop],
                significance=min(t.occurrences / 10, 1.0) * t.success_rate,
            )
            for t in frequent
        ]

    def _endpoints(
        self,
        transitions: list[LoopTransition],
        min_occurrences: int,
        starters: bool,
    ) -> list[SequenceInsight]:
        counts: Counter[str] = Counter()
        for t in transitions:
            counts[t.from_loop if starters else t.to_loop] += t.occurrences

        limit = self.starter_limit if starters else self.finisher_limit
        insights: list[SequenceInsight] = []
        for loop, count in counts.most_common(limit):
            if count < min_occurrences:
                continue
            if starters:
                insight_type = InsightType.COMMON_STARTER
                description = f"{loop} commonly starts sequences ({count} transitions out)"
            else:
                insight_type = InsightType.COMMON_FINISHER
                description = f"{loop} commonly ends sequences ({count} transitions in)"
            insights.append(
                SequenceInsight(
                    type=insight_type,
                    description=description,
                    loops=[loop],
                    significance=min(count / 20, 1.0),
                )
            )
        return insights

    def _hubs(self, transitions: list[LoopTransition]) -> list[SequenceInsight]:
        # Degrees count distinct partners, not occurrences
        incoming: dict[str, set[str]] = defaultdict(set)
        outgoing: dict[str, set[str]] = defaultdict(set)
        loops: dict[str, None] = {}
        for t in transitions:
            outgoing[t.from_loop].add(t.to_loop)
            incoming[t.to_loop].add(t.from_loop)
            loops.setdefault(t.from_loop)
            loops.setdefault(t.to_loop)

        insights: list[SequenceInsight] = []
        for loop in loops:
            in_degree = len(incoming[loop])
            out_degree = len(outgoing[loop])
            if in_degree >= self.hub_min_degree and out_degree >= self.hub_min_degree:
                insights.append(
                    SequenceInsight(
                        type=InsightType.HUB_LOOP,
                        description=(
                            f"{loop} is a hub with {in_degree} incoming and "
                            f"{out_degree} outgoing transitions"
                        ),
                        loops=[loop],
                        significance=min((in_degree + out_degree) / 10, 1.0),
                    )
                )
        return insights

    def _success_patterns(
        self, sequences: list[LoopSequence], min_occurrences: int
    ) -> list[SequenceInsight]:
        def significance(s: LoopSequence) -> float:
            return s.success_rate * min(s.occurrences / 5, 1.0)

        qualifying = sorted(
            (
                s for s in sequences
                if s.success_rate >= self.success_pattern_threshold
                and s.occurrences >= min_occurrences
            ),
            key=lambda s: (significance(s), s.occurrences),
            reverse=True,
        )[: self.success_pattern_limit]

        return [
            SequenceInsight(
                type=InsightType.SUCCESS_PATTERN,
                description=(
                    f"{' → '.join(s.loops)} has {s.success_rate:.0%} success rate "
                    f"over {s.occurrences} occurrences"
                ),
                loops=list(s.loops),
                significance=significance(s),
            )
            for s in qualifying
        ]


__all__ = ["InsightGenerator"]
