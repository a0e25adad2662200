"""Tests for JSON document persistence."""

import json
from datetime import UTC, datetime
from pathlib import Path

from loopline.sequencing.models import SequenceAnalysis, SequencingState
from loopline.sequencing.planner import LinePlanner
from loopline.sequencing.store import SequencingStore
from tests.helpers import make_sequence, make_transition


class TestSequencingStore:
    """Load/save behaviour of SequencingStore."""

    def test_missing_file_is_empty_state(self, tmp_path: Path):
        state = SequencingStore(tmp_path / "absent.json").load()

        assert state.transitions == []
        assert state.sequences == []
        assert state.generated_lines == []
        assert state.last_analysis is None

    def test_round_trip_preserves_tables(self, tmp_path: Path):
        store = SequencingStore(tmp_path / "nested" / "sequencing.json")
        transition = make_transition("A", "B", occurrences=3, success_rate=2 / 3)
        sequence = make_sequence(["A", "B", "C"], occurrences=2)
        line = LinePlanner({transition.key: transition}, {}).generate_line(starting_loop="A")
        state = SequencingState(
            transitions=[transition],
            sequences=[sequence],
            generated_lines=[line],
            last_analysis=SequenceAnalysis(total_runs_analyzed=12),
        )

        store.save(state)
        loaded = store.load()

        assert loaded.transitions == [transition]
        assert loaded.sequences == [sequence]
        assert loaded.generated_lines == [line]
        assert loaded.last_analysis is not None
        assert loaded.last_analysis.total_runs_analyzed == 12

    def test_save_stamps_last_updated(self, tmp_path: Path):
        store = SequencingStore(tmp_path / "sequencing.json")
        state = SequencingState(last_updated=datetime(2020, 1, 1, tzinfo=UTC))

        store.save(state)

        assert store.load().last_updated.year > 2020

    def test_save_writes_snake_case_document(self, tmp_path: Path):
        path = tmp_path / "sequencing.json"
        SequencingStore(path).save(SequencingState(transitions=[make_transition("A", "B")]))

        data = json.loads(path.read_text())

        assert set(data) == {
            "transitions", "sequences", "generated_lines", "last_analysis", "last_updated",
        }
        assert data["transitions"][0]["from_loop"] == "A"

    def test_save_leaves_no_temp_files(self, tmp_path: Path):
        store = SequencingStore(tmp_path / "sequencing.json")

        store.save(SequencingState())
        store.save(SequencingState())

        assert [p.name for p in tmp_path.iterdir()] == ["sequencing.json"]

    def test_corrupt_file_cold_starts(self, tmp_path: Path):
        path = tmp_path / "sequencing.json"
        path.write_text("{not json")

        assert SequencingStore(path).load().transitions == []

    def test_invalid_document_cold_starts(self, tmp_path: Path):
        path = tmp_path / "sequencing.json"
        path.write_text(json.dumps({"transitions": [{"from_loop": "A"}]}))

        assert SequencingStore(path).load().transitions == []

    def test_undecodable_file_cold_starts(self, tmp_path: Path):
        path = tmp_path / "sequencing.json"
        path.write_bytes(b'{"transitions": [\xff\xfe]}')

        state = SequencingStore(path).load()

        assert state.transitions == []
        assert state.last_analysis is None
