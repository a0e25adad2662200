"""Data models for loop sequencing.

Pydantic models for run history input, the mined transition and sequence
tables, generated lines, analysis snapshots, and the persisted document.

In memory, transitions are keyed by the ordered ``(from_loop, to_loop)``
tuple and sequences by the ordered tuple of their loops, so identifiers
containing any separator character can never collide.
"""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

SUCCESS_OUTCOME = "success"

TransitionKey = tuple[str, str]
SequenceKey = tuple[str, ...]


def _utc_now() -> datetime:
    return datetime.now(UTC)


class RunRecord(BaseModel):
    """One completed loop execution, as supplied by a history source."""

    system: str
    module: str | None = None
    loop: str
    started_at: datetime
    completed_at: datetime
    outcome: str

    @field_validator("started_at", "completed_at")
    @classmethod
    def _assume_utc(cls, v: datetime) -> datetime:
        return v if v.tzinfo is not None else v.replace(tzinfo=UTC)

    @property
    def succeeded(self) -> bool:
        return self.outcome == SUCCESS_OUTCOME


class LoopTransition(BaseModel):
    """Observed statistics for the directed edge ``from_loop -> to_loop``.

    ``success_rate`` and ``avg_gap_minutes`` are running averages over every
    occurrence ever recorded.
    """

    from_loop: str
    to_loop: str
    occurrences: int = Field(default=1, ge=1)
    success_rate: float = Field(ge=0.0, le=1.0)
    avg_gap_minutes: float
    contexts: list[str] = Field(
        default_factory=list,
        description="Systems where this transition was observed, in first-seen order.",
    )
    first_seen: datetime
    last_seen: datetime

    @property
    def key(self) -> TransitionKey:
        return (self.from_loop, self.to_loop)

    @property
    def historical_score(self) -> float:
        """Occurrences weighted by success, used to rank candidate moves."""
        return self.occurrences * self.success_rate


class SequenceContexts(BaseModel):
    systems: list[str] = Field(default_factory=list)
    modules: list[str] = Field(default_factory=list)


class LoopSequence(BaseModel):
    """A recurring ordered run of loops within one system."""

    loops: list[str] = Field(min_length=2)
    occurrences: int = Field(default=1, ge=1)
    avg_total_duration: float = Field(
        description="Minutes from first start to last completion, averaged.",
    )
    success_rate: float = Field(ge=0.0, le=1.0)
    contexts: SequenceContexts = Field(default_factory=SequenceContexts)
    first_seen: datetime
    last_seen: datetime

    @property
    def key(self) -> SequenceKey:
        return tuple(self.loops)

    @property
    def id(self) -> str:
        """Display identifier: the loops joined by arrows."""
        return sequence_id(self.loops)


def sequence_id(loops: list[str] | tuple[str, ...]) -> str:
    return "→".join(loops)


class TransitionEvidence(BaseModel):
    """Historical support for the step into a move."""

    historical_success_rate: float = Field(ge=0.0, le=1.0)
    avg_gap_minutes: float


class LineMove(BaseModel):
    """One step of a generated line."""

    position: int = Field(ge=1)
    loop: str
    target: str | None = None
    leverage: float
    estimated_duration: float
    cumulative_leverage: float
    cumulative_duration: float
    transition_from_previous: TransitionEvidence | None = None


class LineAlternative(BaseModel):
    """A historically observed move that could replace a chosen one."""

    position: int = Field(ge=1)
    loop: str
    instead_of: str
    occurrences: int

    def describe(self) -> str:
        return (
            f"Move {self.position}: {self.loop} instead of {self.instead_of} "
            f"({self.occurrences} historical occurrences)"
        )


class Line(BaseModel):
    """A generated multi-move plan. Immutable once produced."""

    model_config = ConfigDict(frozen=True)

    id: str
    moves: list[LineMove]
    total_moves: int
    compound_leverage: float
    expected_duration: float
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str
    risks: list[str] = Field(default_factory=list)
    alternatives: list[LineAlternative] = Field(default_factory=list)
    based_on_sequences: list[str] = Field(default_factory=list)
    generated_at: datetime = Field(default_factory=_utc_now)

    @model_validator(mode="after")
    def _validate_moves(self) -> Line:
        if self.total_moves != len(self.moves):
            raise ValueError(
                f"total_moves ({self.total_moves}) does not match {len(self.moves)} moves"
            )
        loops = [m.loop for m in self.moves]
        if len(set(loops)) != len(loops):
            raise ValueError(f"line revisits a loop: {' -> '.join(loops)}")
        return self

    @property
    def loops(self) -> list[str]:
        return [m.loop for m in self.moves]


class InsightType(str, Enum):
    """Kinds of structural observation derived from the tables."""

    FREQUENT_PAIR = "frequent-pair"
    COMMON_STARTER = "common-starter"
    COMMON_FINISHER = "common-finisher"
    HUB_LOOP = "hub-loop"
    ISOLATED_LOOP = "isolated-loop"
    SUCCESS_PATTERN = "success-pattern"


class SequenceInsight(BaseModel):
    type: InsightType
    description: str
    loops: list[str]
    significance: float = Field(ge=0.0, le=1.0)


class SequenceAnalysis(BaseModel):
    """Snapshot produced by one analysis run. Only the latest is kept."""

    total_runs_analyzed: int = 0
    unique_loops: int = 0
    unique_transitions: int = 0
    unique_sequences: int = 0
    top_transitions: list[LoopTransition] = Field(default_factory=list)
    top_sequences: list[LoopSequence] = Field(default_factory=list)
    insights: list[SequenceInsight] = Field(default_factory=list)
    analyzed_at: datetime = Field(default_factory=_utc_now)


class TransitionSummary(BaseModel):
    from_loop: str
    to_loop: str
    count: int


class SequencingStatus(BaseModel):
    """Counts and top transitions for dashboards."""

    transition_count: int
    sequence_count: int
    line_count: int
    last_analysis: datetime | None = None
    top_transitions: list[TransitionSummary] = Field(default_factory=list)


class SequencingState(BaseModel):
    """The persisted sequencing document."""

    transitions: list[LoopTransition] = Field(default_factory=list)
    sequences: list[LoopSequence] = Field(default_factory=list)
    generated_lines: list[Line] = Field(default_factory=list)
    last_analysis: SequenceAnalysis | None = None
    last_updated: datetime = Field(default_factory=_utc_now)
