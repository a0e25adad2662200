"""Exception hierarchy for Loopline.

All sequencing exceptions inherit from SequencingError, so callers can catch
broadly or narrowly. Empty tables are not errors: derivations over them
return empty results instead of raising.
"""

from __future__ import annotations


class SequencingError(Exception):
    """Base exception for all sequencing errors."""


class ConfigurationError(SequencingError):
    """Raised when a required collaborator or setting is missing or invalid.

    Example: constructing the service without a history source.
    """


class HistorySourceError(SequencingError):
    """Raised when the history source cannot produce run records.

    Examples: unreadable history file, malformed run record.
    """


class LeverageSourceError(SequencingError):
    """Raised by a leverage source that cannot produce a ranking.

    The planner treats this as "no leverage available" and degrades to
    historical-frequency-only planning.
    """


class PlanningError(SequencingError):
    """Raised when a line cannot be planned."""


class StartingLoopError(PlanningError):
    """Raised when no seed move can be determined.

    Happens when no starting loop is given, no leverage ranking is
    available, and no transition data has been recorded.
    """

    def __init__(self, message: str = "Cannot determine starting loop") -> None:
        super().__init__(message)


__all__ = [
    "ConfigurationError",
    "HistorySourceError",
    "LeverageSourceError",
    "PlanningError",
    "SequencingError",
    "StartingLoopError",
]
