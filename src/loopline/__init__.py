"""Loopline - transition mining and multi-move planning for loop executions."""

__version__ = "0.1.0"
