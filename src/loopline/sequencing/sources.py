"""External collaborators consumed by the sequencing core.

- HistorySource: supplies run records, newest-limited and time-bounded
- LeverageSource: supplies a ranked list of single-step target scores

Both are protocols; the in-memory and JSON-file implementations here cover
tests, embedding, and the CLI.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from loopline.core.errors import HistorySourceError, LeverageSourceError
from loopline.sequencing.models import RunRecord


@dataclass(frozen=True)
class LeverageScore:
    """Single-step value of working on a target."""

    target_id: str
    score: float


@runtime_checkable
class HistorySource(Protocol):
    """Protocol for run-history providers."""

    def query_runs(
        self, limit: int = 500, since: datetime | None = None
    ) -> list[RunRecord]:
        """Return up to ``limit`` of the most recent runs started at or after ``since``."""
        ...


@runtime_checkable
class LeverageSource(Protocol):
    """Protocol for leverage-ranking providers.

    Implementations return scores sorted best first and raise
    LeverageSourceError when no ranking can be produced.
    """

    def rank(self) -> list[LeverageScore]:
        ...


def select_recent(
    runs: Iterable[RunRecord], limit: int, since: datetime | None = None
) -> list[RunRecord]:
    """Apply the history query contract to an in-memory collection."""
    candidates = [r for r in runs if since is None or r.started_at >= since]
    candidates.sort(key=lambda r: r.started_at, reverse=True)
    return candidates[:limit]


class InMemoryHistorySource:
    """History source backed by a list of run records."""

    def __init__(self, runs: Iterable[RunRecord] = ()) -> None:
        self._runs = list(runs)

    def query_runs(
        self, limit: int = 500, since: datetime | None = None
    ) -> list[RunRecord]:
        return select_recent(self._runs, limit, since)


class JsonHistorySource:
    """History source reading run records from a JSON or JSON Lines file.

    Accepted layouts: a JSON array of records, an object with a ``runs``
    array, or one JSON object per line.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def query_runs(
        self, limit: int = 500, since: datetime | None = None
    ) -> list[RunRecord]:
        return select_recent(self._read(), limit, since)

    def _read(self) -> list[RunRecord]:
        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise HistorySourceError(f"Cannot read history file {self.path}: {e}") from e

        try:
            raw = _parse_records(text)
            return [RunRecord.model_validate(item) for item in raw]
        except ValueError as e:
            raise HistorySourceError(f"Malformed history file {self.path}: {e}") from e


def _parse_records(text: str) -> list[Any]:
    stripped = text.strip()
    if not stripped:
        return []
    if stripped[0] in "[{":
        try:
            data = json.loads(stripped)
        except json.JSONDecodeError:
            # Not a single document; fall through to JSON Lines
            data = None
        if isinstance(data, list):
            return data
        if isinstance(data, dict):
            runs = data.get("runs")
            if isinstance(runs, list):
                return runs
            return [data]
    return [json.loads(line) for line in stripped.splitlines() if line.strip()]


class StaticLeverageSource:
    """Leverage source over a fixed ranking."""

    def __init__(self, scores: Iterable[LeverageScore]) -> None:
        self._scores = sorted(scores, key=lambda s: s.score, reverse=True)

    @classmethod
    def from_mapping(cls, scores: dict[str, float]) -> StaticLeverageSource:
        return cls(LeverageScore(target_id=k, score=v) for k, v in scores.items())

    def rank(self) -> list[LeverageScore]:
        return list(self._scores)


class JsonLeverageSource:
    """Leverage source reading ``[{"targetId": ..., "score": ...}]`` from a file.

    ``target_id`` is accepted as a spelling of ``targetId``, and an object
    mapping target ids to scores is accepted as well.
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def rank(self) -> list[LeverageScore]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise LeverageSourceError(f"Cannot read leverage file {self.path}: {e}") from e

        if isinstance(data, dict):
            return StaticLeverageSource.from_mapping(
                {str(k): self._score(v) for k, v in data.items()}
            ).rank()

        if not isinstance(data, list):
            raise LeverageSourceError(f"Leverage file {self.path} must hold a list or object")

        scores: list[LeverageScore] = []
        for item in data:
            if not isinstance(item, dict):
                raise LeverageSourceError(f"Leverage entry is not an object: {item!r}")
            target = item.get("targetId", item.get("target_id"))
            if target is None or "score" not in item:
                raise LeverageSourceError(f"Leverage entry missing targetId or score: {item}")
            scores.append(LeverageScore(target_id=str(target), score=self._score(item["score"])))
        return StaticLeverageSource(scores).rank()

    def _score(self, value: Any) -> float:
        try:
            return float(value)
        except (TypeError, ValueError) as e:
            raise LeverageSourceError(
                f"Non-numeric leverage score in {self.path}: {value!r}"
            ) from e


__all__ = [
    "HistorySource",
    "InMemoryHistorySource",
    "JsonHistorySource",
    "JsonLeverageSource",
    "LeverageScore",
    "LeverageSource",
    "StaticLeverageSource",
    "select_recent",
]
