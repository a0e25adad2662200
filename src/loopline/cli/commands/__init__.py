# loopline/cli/commands: Command modules for the Loopline CLI.
#
# Each module in this package provides one or more CLI commands.

from .analysis import analyze, insights, status
from .lines import line, lines, plan, prune_lines
from .patterns import sequence, sequences, transition, transitions

__all__ = [
    # analysis.py
    "analyze",
    "status",
    "insights",
    # patterns.py
    "transitions",
    "transition",
    "sequences",
    "sequence",
    # lines.py
    "plan",
    "lines",
    "line",
    "prune_lines",
]
