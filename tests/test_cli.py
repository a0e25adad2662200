"""Tests for the Loopline CLI.

Every test points --data at a temp file, so commands share state the same
way separate invocations do on disk.
"""

from __future__ import annotations

import json
from datetime import timedelta
from pathlib import Path

import pytest
from typer.testing import CliRunner

from loopline import __version__
from loopline.cli import app
from tests.helpers import BASE_TIME, chain_runs

runner = CliRunner()

ENG = "engineering-loop"
BUG = "bugfix-loop"
LEARN = "learning-loop"


@pytest.fixture
def data_file(tmp_path: Path) -> Path:
    return tmp_path / "state" / "sequencing.json"


@pytest.fixture
def history_file(tmp_path: Path) -> Path:
    """History of one system running engineering -> bugfix -> learning three times."""
    runs = chain_runs([ENG, BUG, LEARN] * 3, module="core")
    runs += chain_runs([ENG, BUG], system="beta", start=BASE_TIME + timedelta(days=1))
    path = tmp_path / "runs.json"
    path.write_text(json.dumps([r.model_dump(mode="json") for r in runs]))
    return path


def invoke(data_file: Path, *args: str):
    return runner.invoke(app, ["--data", str(data_file), *args])


@pytest.fixture
def analyzed(data_file: Path, history_file: Path) -> Path:
    """Data file after one analysis run."""
    result = invoke(data_file, "analyze", str(history_file))
    assert result.exit_code == 0, result.output
    return data_file


# =============================================================================
# Global options
# =============================================================================


class TestGlobalOptions:
    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_invalid_log_level(self, data_file):
        result = runner.invoke(app, ["--log-level", "LOUD", "--data", str(data_file), "status"])

        assert result.exit_code == 2

    def test_invalid_config_file(self, tmp_path, data_file):
        config = tmp_path / "bad.yaml"
        config.write_text("planner:\n  max_depth: 0\n")

        result = runner.invoke(app, ["--config", str(config), "--data", str(data_file), "status"])

        assert result.exit_code == 1
        assert "Configuration error" in result.stdout

    def test_config_file_store_path(self, tmp_path):
        store = tmp_path / "from-config.json"
        config = tmp_path / "loopline.yaml"
        config.write_text(f"store_path: {store}\n")
        history = tmp_path / "runs.json"
        history.write_text(json.dumps([r.model_dump(mode="json") for r in chain_runs([ENG, BUG])]))

        result = runner.invoke(app, ["--config", str(config), "analyze", str(history)])

        assert result.exit_code == 0, result.output
        assert store.exists()

    def test_both_log_format_without_file_fails(self, data_file):
        result = runner.invoke(app, ["--log-format", "both", "--data", str(data_file), "status"])

        assert result.exit_code == 1
        assert "Logging configuration error" in result.stdout


# =============================================================================
# Analysis commands
# =============================================================================


class TestAnalyzeCommand:
    def test_analyze_json(self, data_file, history_file):
        result = invoke(data_file, "analyze", str(history_file), "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["total_runs_analyzed"] == 11
        assert data["unique_transitions"] == 3
        assert data["top_transitions"][0]["from_loop"] == ENG
        assert data_file.exists()

    def test_analyze_human_output(self, data_file, history_file):
        result = invoke(data_file, "analyze", str(history_file))

        assert result.exit_code == 0
        assert "Runs analyzed" in result.stdout
        assert "Top Transitions" in result.stdout

    def test_analyze_limit_and_since(self, data_file, history_file):
        result = invoke(
            data_file, "analyze", str(history_file),
            "--since", (BASE_TIME + timedelta(days=1)).isoformat(), "--json",
        )

        assert json.loads(result.stdout)["total_runs_analyzed"] == 2

    def test_analyze_bad_since(self, data_file, history_file):
        result = invoke(data_file, "analyze", str(history_file), "--since", "yesterday")

        assert result.exit_code == 2

    def test_analyze_missing_file(self, data_file, tmp_path):
        result = invoke(data_file, "analyze", str(tmp_path / "missing.json"))

        assert result.exit_code == 2

    def test_analyze_malformed_history(self, data_file, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text(json.dumps([{"loop": "x"}]))

        result = invoke(data_file, "analyze", str(bad))

        assert result.exit_code == 1
        assert "Malformed history file" in result.stdout


class TestStatusCommand:
    def test_empty_status(self, data_file):
        result = invoke(data_file, "status")

        assert result.exit_code == 0
        assert "LOOP SEQUENCING STATUS" in result.stdout
        assert "No transitions recorded yet" in result.stdout

    def test_status_json(self, analyzed):
        result = invoke(analyzed, "status", "--json")

        data = json.loads(result.stdout)
        assert data["transition_count"] == 3
        assert data["top_transitions"][0] == {"from_loop": ENG, "to_loop": BUG, "count": 4}
        assert len(data["top_sequences"]) == 3
        assert len(data["insights"]) <= 3
        assert data["last_analysis"] is not None

    def test_status_dashboard(self, analyzed):
        result = invoke(analyzed, "status")

        assert result.exit_code == 0
        assert "TOP TRANSITIONS" in result.stdout
        assert "TOP SEQUENCES" in result.stdout


class TestInsightsCommand:
    def test_no_insights(self, data_file):
        result = invoke(data_file, "insights")

        assert result.exit_code == 0
        assert "No insights yet" in result.stdout

    def test_insights_json(self, analyzed):
        result = invoke(analyzed, "insights", "--json")

        data = json.loads(result.stdout)
        assert data
        assert {"type", "description", "loops", "significance"} <= set(data[0])


# =============================================================================
# Transition and sequence queries
# =============================================================================


class TestPatternCommands:
    def test_transitions_filtered(self, analyzed):
        result = invoke(analyzed, "transitions", "--loop", LEARN, "--json")

        pairs = {(t["from_loop"], t["to_loop"]) for t in json.loads(result.stdout)}
        assert pairs == {(BUG, LEARN), (LEARN, ENG)}

    def test_transitions_table(self, analyzed):
        result = invoke(analyzed, "transitions")

        assert result.exit_code == 0
        assert "Loop Transitions" in result.stdout

    def test_transition_detail(self, analyzed):
        result = invoke(analyzed, "transition", ENG, BUG, "--json")

        data = json.loads(result.stdout)
        assert data["occurrences"] == 4
        assert data["contexts"] == ["beta", "orchestrator"]

    def test_transition_not_found(self, analyzed):
        result = invoke(analyzed, "transition", LEARN, BUG)

        assert result.exit_code == 1
        assert "Transition not found" in result.stdout

    def test_sequences_contains(self, analyzed):
        result = invoke(analyzed, "sequences", "--contains", LEARN, "--json")

        data = json.loads(result.stdout)
        assert data
        assert all(LEARN in s["loops"] for s in data)

    def test_sequence_by_loops_and_id(self, analyzed):
        by_loops = invoke(analyzed, "sequence", ENG, BUG, LEARN, "--json")
        by_id = invoke(analyzed, "sequence", f"{ENG}→{BUG}→{LEARN}", "--json")

        assert json.loads(by_loops.stdout) == json.loads(by_id.stdout)
        assert json.loads(by_loops.stdout)["occurrences"] == 3

    def test_sequence_not_found(self, analyzed):
        result = invoke(analyzed, "sequence", LEARN, BUG, ENG)

        assert result.exit_code == 1


# =============================================================================
# Line commands
# =============================================================================


class TestLineCommands:
    def test_plan_without_data_fails(self, data_file):
        result = invoke(data_file, "plan")

        assert result.exit_code == 1
        assert "Cannot determine starting loop" in result.stdout

    def test_plan_json(self, analyzed):
        result = invoke(analyzed, "plan", "--start", ENG, "--depth", "3", "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert [m["loop"] for m in data["moves"]] == [ENG, BUG, LEARN]
        assert data["total_moves"] == 3
        assert 0.0 <= data["confidence"] <= 1.0

    def test_plan_human_output(self, analyzed):
        result = invoke(analyzed, "plan", "--start", ENG)

        assert result.exit_code == 0
        assert "Compound leverage" in result.stdout

    def test_plan_with_leverage_file(self, analyzed, tmp_path):
        leverage = tmp_path / "leverage.json"
        leverage.write_text(json.dumps([{"targetId": BUG, "score": 9}]))

        result = invoke(analyzed, "plan", "--leverage", str(leverage), "--json")

        data = json.loads(result.stdout)
        assert data["moves"][0]["loop"] == BUG
        assert data["moves"][0]["leverage"] == 9

    def test_plan_with_bad_leverage_file_degrades(self, analyzed, tmp_path):
        leverage = tmp_path / "leverage.json"
        leverage.write_text(json.dumps([{"targetId": BUG, "score": "high"}]))

        result = runner.invoke(app, [
            "--log-level", "ERROR", "--data", str(analyzed),
            "plan", "--start", ENG, "--leverage", str(leverage), "--json",
        ])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert all(m["leverage"] == 5.0 for m in data["moves"])

    def test_lines_and_line(self, analyzed):
        planned = json.loads(invoke(analyzed, "plan", "--start", ENG, "--json").stdout)

        listed = json.loads(invoke(analyzed, "lines", "--json").stdout)
        shown = json.loads(invoke(analyzed, "line", planned["id"], "--json").stdout)

        assert [g["id"] for g in listed] == [planned["id"]]
        assert shown == planned

    def test_line_not_found(self, analyzed):
        result = invoke(analyzed, "line", "line-missing")

        assert result.exit_code == 1

    def test_no_lines(self, data_file):
        result = invoke(data_file, "lines")

        assert "No lines generated yet" in result.stdout

    def test_prune_lines(self, analyzed):
        planned = json.loads(invoke(analyzed, "plan", "--start", ENG, "--json").stdout)

        kept = json.loads(invoke(analyzed, "prune-lines", "--json").stdout)
        pruned = json.loads(
            invoke(analyzed, "prune-lines", "--older-than-days", "0", "--json").stdout
        )

        assert kept == {"removed": []}
        assert pruned == {"removed": [planned["id"]]}
        assert json.loads(invoke(analyzed, "lines", "--json").stdout) == []
