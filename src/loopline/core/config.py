"""Configuration models for Loopline.

Pydantic models for the tunable constants of mining, insight generation and
line planning, loadable from YAML. Every default reproduces the behaviour the
planner has always had; the values exist as settings so deployments can tune
them.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator


class KeywordLoopRule(BaseModel):
    """Maps target identifiers containing any keyword to a loop."""

    keywords: list[str] = Field(min_length=1)
    loop: str


def _default_keyword_rules() -> list[KeywordLoopRule]:
    return [
        KeywordLoopRule(keywords=["loop"], loop="engineering-loop"),
        KeywordLoopRule(keywords=["test"], loop="engineering-loop"),
        KeywordLoopRule(keywords=["bug", "fix"], loop="bugfix-loop"),
        KeywordLoopRule(keywords=["docs", "doc"], loop="engineering-loop"),
    ]


def _default_loop_durations() -> dict[str, float]:
    return {
        "engineering-loop": 60,
        "bugfix-loop": 30,
        "learning-loop": 20,
        "proposal-loop": 45,
        "meta-loop": 90,
        "distribution-loop": 15,
        "audit-loop": 30,
    }


class MiningConfig(BaseModel):
    """Settings for transition and sequence mining."""

    transition_window_hours: float = Field(
        default=24,
        gt=0,
        description="Runs further apart than this never form a transition.",
    )
    sequence_window_hours: float = Field(
        default=48,
        gt=0,
        description="Maximum span from first start to last completion of a sequence window.",
    )
    min_sequence_length: int = Field(default=3, ge=2)
    max_sequence_length: int = Field(default=5, ge=2)
    history_limit: int = Field(
        default=500,
        gt=0,
        description="Number of most recent runs read per analysis.",
    )
    top_n: int = Field(
        default=10,
        gt=0,
        description="Transitions and sequences kept in an analysis snapshot.",
    )

    @model_validator(mode="after")
    def _validate_lengths(self) -> MiningConfig:
        if self.min_sequence_length > self.max_sequence_length:
            raise ValueError(
                f"min_sequence_length ({self.min_sequence_length}) must not exceed "
                f"max_sequence_length ({self.max_sequence_length})"
            )
        return self


class InsightConfig(BaseModel):
    """Thresholds and limits for derived insights."""

    min_occurrences: int = Field(
        default=2,
        ge=1,
        description="Minimum occurrences for a pattern to be significant.",
    )
    frequent_pair_limit: int = Field(default=5, ge=0)
    starter_limit: int = Field(default=3, ge=0)
    finisher_limit: int = Field(default=3, ge=0)
    success_pattern_limit: int = Field(default=3, ge=0)
    hub_min_degree: int = Field(
        default=3,
        ge=1,
        description="Distinct incoming and outgoing partners needed for a hub.",
    )
    success_pattern_threshold: float = Field(default=0.9, ge=0.0, le=1.0)


class PlannerConfig(BaseModel):
    """Scoring weights and thresholds for line planning."""

    max_depth: int = Field(default=5, ge=1, description="Default moves per line.")
    decay_factor: float = Field(
        default=0.85,
        gt=0.0,
        le=1.0,
        description="Per-move discount applied to leverage further out in a line.",
    )
    leverage_weight: float = Field(default=0.6, ge=0.0)
    history_weight: float = Field(default=0.4, ge=0.0)
    default_leverage: float = Field(
        default=5.0,
        description="Neutral leverage used when no ranking is available.",
    )
    no_data_penalty: float = Field(
        default=0.7,
        ge=0.0,
        le=1.0,
        description="Confidence multiplier for a step without transition history.",
    )
    sequence_match_boost: float = Field(default=1.1, ge=1.0)
    min_duration_minutes: float = Field(default=15, ge=0)
    default_duration_minutes: float = Field(default=45, gt=0)
    loop_durations: dict[str, float] = Field(default_factory=_default_loop_durations)
    long_line_minutes: float = Field(default=240, gt=0)
    low_success_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    strong_transition_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    confidence_decay_moves: int = Field(
        default=3,
        ge=1,
        description="Lines longer than this carry a confidence-decay risk.",
    )
    alternative_steps: int = Field(default=2, ge=0)
    alternatives_per_step: int = Field(default=2, ge=0)
    max_alternatives: int = Field(default=5, ge=0)
    default_loop: str = "engineering-loop"
    keyword_loops: list[KeywordLoopRule] = Field(default_factory=_default_keyword_rules)


class LogConfig(BaseModel):
    """Configuration for structured logging."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    format: Literal["json", "console", "both"] = "console"
    file_path: Path | None = None
    max_file_size_mb: int = Field(default=10, gt=0, le=1000)
    backup_count: int = Field(default=3, ge=0, le=100)

    @model_validator(mode="after")
    def _validate_file_path(self) -> LogConfig:
        if self.format == "both" and self.file_path is None:
            raise ValueError("file_path is required when format='both'")
        return self


class SequencingConfig(BaseModel):
    """Top-level Loopline configuration."""

    store_path: Path = Field(
        default=Path(".loopline/sequencing.json"),
        description="Location of the persisted sequencing document.",
    )
    mining: MiningConfig = Field(default_factory=MiningConfig)
    insights: InsightConfig = Field(default_factory=InsightConfig)
    planner: PlannerConfig = Field(default_factory=PlannerConfig)
    logging: LogConfig = Field(default_factory=LogConfig)

    @classmethod
    def from_yaml(cls, path: Path) -> SequencingConfig:
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})

    @classmethod
    def from_yaml_string(cls, yaml_str: str) -> SequencingConfig:
        """Load configuration from a YAML string."""
        data = yaml.safe_load(yaml_str)
        return cls.model_validate(data or {})
