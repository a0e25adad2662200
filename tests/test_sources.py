"""Tests for history and leverage sources."""

import json
from datetime import timedelta
from pathlib import Path

import pytest

from loopline.core.errors import HistorySourceError, LeverageSourceError
from loopline.sequencing.sources import (
    HistorySource,
    InMemoryHistorySource,
    JsonHistorySource,
    JsonLeverageSource,
    LeverageSource,
    StaticLeverageSource,
)
from tests.helpers import BASE_TIME, chain_runs


def _run_dict(loop: str, hour: int) -> dict:
    start = BASE_TIME + timedelta(hours=hour)
    return {
        "system": "orchestrator",
        "loop": loop,
        "started_at": start.isoformat(),
        "completed_at": (start + timedelta(minutes=30)).isoformat(),
        "outcome": "success",
    }


# =============================================================================
# History sources
# =============================================================================


class TestInMemoryHistorySource:
    def test_satisfies_protocol(self):
        assert isinstance(InMemoryHistorySource(), HistorySource)

    def test_newest_first_with_limit(self):
        runs = chain_runs(["a", "b", "c", "d"])
        source = InMemoryHistorySource(runs)

        assert [r.loop for r in source.query_runs(limit=2)] == ["d", "c"]

    def test_since_filters_older_runs(self):
        runs = chain_runs(["a", "b", "c"])
        source = InMemoryHistorySource(runs)

        recent = source.query_runs(since=runs[1].started_at)

        assert [r.loop for r in recent] == ["c", "b"]


class TestJsonHistorySource:
    def test_reads_json_array(self, tmp_path: Path):
        path = tmp_path / "runs.json"
        path.write_text(json.dumps([_run_dict("a", 0), _run_dict("b", 1)]))

        runs = JsonHistorySource(path).query_runs()

        assert [r.loop for r in runs] == ["b", "a"]

    def test_reads_runs_object(self, tmp_path: Path):
        path = tmp_path / "runs.json"
        path.write_text(json.dumps({"runs": [_run_dict("a", 0)]}))

        assert len(JsonHistorySource(path).query_runs()) == 1

    def test_reads_json_lines(self, tmp_path: Path):
        path = tmp_path / "runs.jsonl"
        path.write_text("\n".join(json.dumps(_run_dict(loop, i)) for i, loop in enumerate("abc")))

        assert len(JsonHistorySource(path).query_runs()) == 3

    def test_naive_timestamps_are_utc(self, tmp_path: Path):
        path = tmp_path / "runs.json"
        path.write_text(json.dumps([{
            "system": "s",
            "loop": "a",
            "started_at": "2026-01-05T09:00:00",
            "completed_at": "2026-01-05T09:30:00",
            "outcome": "success",
        }]))

        run = JsonHistorySource(path).query_runs(since=BASE_TIME)[0]

        assert run.started_at == BASE_TIME

    def test_empty_file_has_no_runs(self, tmp_path: Path):
        path = tmp_path / "runs.json"
        path.write_text("")

        assert JsonHistorySource(path).query_runs() == []

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(HistorySourceError, match="Cannot read"):
            JsonHistorySource(tmp_path / "missing.json").query_runs()

    def test_malformed_record_raises(self, tmp_path: Path):
        path = tmp_path / "runs.json"
        path.write_text(json.dumps([{"system": "s"}]))

        with pytest.raises(HistorySourceError, match="Malformed"):
            JsonHistorySource(path).query_runs()

    def test_undecodable_file_raises(self, tmp_path: Path):
        path = tmp_path / "runs.json"
        path.write_bytes(b"[\xff\xfe]")

        with pytest.raises(HistorySourceError, match="Cannot read"):
            JsonHistorySource(path).query_runs()


# =============================================================================
# Leverage sources
# =============================================================================


class TestStaticLeverageSource:
    def test_satisfies_protocol(self):
        assert isinstance(StaticLeverageSource([]), LeverageSource)

    def test_ranked_descending(self):
        source = StaticLeverageSource.from_mapping({"low": 1, "high": 9, "mid": 5})

        assert [s.target_id for s in source.rank()] == ["high", "mid", "low"]


class TestJsonLeverageSource:
    def test_reads_target_id_list(self, tmp_path: Path):
        path = tmp_path / "leverage.json"
        path.write_text(json.dumps([
            {"targetId": "auth", "score": 4},
            {"target_id": "billing", "score": 8.5},
        ]))

        ranking = JsonLeverageSource(path).rank()

        assert [(s.target_id, s.score) for s in ranking] == [("billing", 8.5), ("auth", 4.0)]

    def test_reads_mapping(self, tmp_path: Path):
        path = tmp_path / "leverage.json"
        path.write_text(json.dumps({"auth": 2, "billing": 3}))

        assert JsonLeverageSource(path).rank()[0].target_id == "billing"

    def test_missing_fields_raise(self, tmp_path: Path):
        path = tmp_path / "leverage.json"
        path.write_text(json.dumps([{"score": 3}]))

        with pytest.raises(LeverageSourceError, match="missing targetId"):
            JsonLeverageSource(path).rank()

    def test_unreadable_file_raises(self, tmp_path: Path):
        with pytest.raises(LeverageSourceError):
            JsonLeverageSource(tmp_path / "missing.json").rank()

    def test_scalar_document_raises(self, tmp_path: Path):
        path = tmp_path / "leverage.json"
        path.write_text("42")

        with pytest.raises(LeverageSourceError, match="list or object"):
            JsonLeverageSource(path).rank()

    def test_non_numeric_score_raises(self, tmp_path: Path):
        path = tmp_path / "leverage.json"
        path.write_text(json.dumps([{"targetId": "auth", "score": "high"}]))

        with pytest.raises(LeverageSourceError, match="Non-numeric"):
            JsonLeverageSource(path).rank()

    def test_non_numeric_mapping_score_raises(self, tmp_path: Path):
        path = tmp_path / "leverage.json"
        path.write_text(json.dumps({"auth": None}))

        with pytest.raises(LeverageSourceError, match="Non-numeric"):
            JsonLeverageSource(path).rank()

    def test_undecodable_file_raises(self, tmp_path: Path):
        path = tmp_path / "leverage.json"
        path.write_bytes(b"\xff\xfe")

        with pytest.raises(LeverageSourceError, match="Cannot read"):
            JsonLeverageSource(path).rank()
