"""Loop sequencing: transition mining, sequence detection, and line planning."""

from loopline.sequencing.events import (
    SequencingEvent,
    SequencingNotification,
    SequencingObserver,
)
from loopline.sequencing.insights import InsightGenerator
from loopline.sequencing.models import (
    InsightType,
    Line,
    LineAlternative,
    LineMove,
    LoopSequence,
    LoopTransition,
    RunRecord,
    SequenceAnalysis,
    SequenceInsight,
    SequencingState,
    SequencingStatus,
    TransitionEvidence,
)
from loopline.sequencing.planner import (
    DurationEstimator,
    KeywordLoopSelector,
    LinePlanner,
    LoopSelector,
)
from loopline.sequencing.sequences import SequenceMiner
from loopline.sequencing.service import LoopSequencingService
from loopline.sequencing.sources import (
    HistorySource,
    InMemoryHistorySource,
    JsonHistorySource,
    JsonLeverageSource,
    LeverageScore,
    LeverageSource,
    StaticLeverageSource,
)
from loopline.sequencing.store import SequencingStore
from loopline.sequencing.transitions import TransitionMiner

__all__ = [
    # Models
    "RunRecord",
    "LoopTransition",
    "LoopSequence",
    "TransitionEvidence",
    "LineMove",
    "LineAlternative",
    "Line",
    "InsightType",
    "SequenceInsight",
    "SequenceAnalysis",
    "SequencingState",
    "SequencingStatus",
    # Collaborators
    "HistorySource",
    "InMemoryHistorySource",
    "JsonHistorySource",
    "LeverageScore",
    "LeverageSource",
    "StaticLeverageSource",
    "JsonLeverageSource",
    # Mining and derivation
    "TransitionMiner",
    "SequenceMiner",
    "InsightGenerator",
    # Planning
    "LinePlanner",
    "LoopSelector",
    "KeywordLoopSelector",
    "DurationEstimator",
    # Service
    "SequencingStore",
    "LoopSequencingService",
    "SequencingEvent",
    "SequencingNotification",
    "SequencingObserver",
]
