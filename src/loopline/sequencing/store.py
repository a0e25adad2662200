"""JSON document persistence for sequencing state.

The whole state (transitions, sequences, generated lines, last analysis)
lives in one JSON document. ``save()`` overwrites it atomically through a
temporary file and rename; ``load()`` on a missing or unreadable document
returns an empty state so the system can always cold-start.
"""

from __future__ import annotations

import json
import tempfile
from datetime import UTC, datetime
from pathlib import Path

from loopline.core.logging import get_logger
from loopline.sequencing.models import SequencingState

_logger = get_logger("sequencing.store")


class SequencingStore:
    """Loads and saves the sequencing document at ``path``."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def load(self) -> SequencingState:
        """Load the persisted state, or an empty state if there is none."""
        if not self.path.exists():
            _logger.debug("store_missing", path=str(self.path))
            return SequencingState()

        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
            state = SequencingState.model_validate(data)
        except (OSError, ValueError) as e:
            _logger.warning("store_load_failed", path=str(self.path), error=str(e))
            return SequencingState()

        _logger.debug(
            "store_loaded",
            path=str(self.path),
            transitions=len(state.transitions),
            sequences=len(state.sequences),
            lines=len(state.generated_lines),
        )
        return state

    def save(self, state: SequencingState) -> None:
        """Overwrite the document with ``state``, stamping ``last_updated``."""
        state.last_updated = datetime.now(UTC)
        self.path.parent.mkdir(parents=True, exist_ok=True)

        # Atomic write: temp file in the same directory, then rename
        with tempfile.NamedTemporaryFile(
            mode="w",
            dir=self.path.parent,
            suffix=".tmp",
            delete=False,
            encoding="utf-8",
        ) as f:
            json.dump(state.model_dump(mode="json"), f, indent=2)
            temp_path = Path(f.name)

        temp_path.replace(self.path)
        _logger.debug("store_saved", path=str(self.path))


__all__ = ["SequencingStore"]
