"""Lifecycle notifications for the sequencing service.

Callers register interest explicitly, either with an object implementing
SequencingObserver or with a plain callable taking a SequencingNotification.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Protocol, runtime_checkable

from loopline.sequencing.models import Line, SequenceAnalysis


class SequencingEvent(Enum):
    """Events emitted by LoopSequencingService."""

    INITIALIZED = "initialized"
    ANALYSIS_COMPLETE = "analysis_complete"
    LINE_GENERATED = "line_generated"
    LINES_PRUNED = "lines_pruned"


@dataclass
class SequencingNotification:
    """Payload delivered to observers."""

    event: SequencingEvent
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    analysis: SequenceAnalysis | None = None
    """Set for ANALYSIS_COMPLETE."""

    line: Line | None = None
    """Set for LINE_GENERATED."""

    pruned_line_ids: list[str] = field(default_factory=list)
    """Set for LINES_PRUNED."""


@runtime_checkable
class SequencingObserver(Protocol):
    """Protocol for objects that want lifecycle notifications."""

    def on_sequencing_event(self, notification: SequencingNotification) -> None:
        ...


ObserverCallback = Callable[[SequencingNotification], None]


def as_callback(observer: SequencingObserver | ObserverCallback) -> ObserverCallback:
    """Normalize an observer object or callable into a callable."""
    if isinstance(observer, SequencingObserver):
        return observer.on_sequencing_event
    return observer


__all__ = [
    "ObserverCallback",
    "SequencingEvent",
    "SequencingNotification",
    "SequencingObserver",
    "as_callback",
]
