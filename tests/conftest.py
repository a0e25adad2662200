"""Pytest fixtures for Loopline tests."""

from __future__ import annotations

import logging
from collections.abc import Generator
from pathlib import Path

import pytest
import structlog

from loopline.core.config import SequencingConfig
from loopline.sequencing import (
    InMemoryHistorySource,
    LoopSequencingService,
    SequencingStore,
)


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset CLI option state and logging configuration around each test."""
    from loopline.cli import helpers

    helpers.reset_cli_state()
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    yield

    helpers.reset_cli_state()
    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)


@pytest.fixture
def store_path(tmp_path: Path) -> Path:
    """Location for a sequencing document inside the test's temp dir."""
    return tmp_path / "state" / "sequencing.json"


@pytest.fixture
def history() -> InMemoryHistorySource:
    return InMemoryHistorySource()


@pytest.fixture
def service(history: InMemoryHistorySource, store_path: Path) -> LoopSequencingService:
    """An initialized service over an empty in-memory history."""
    svc = LoopSequencingService(
        history=history,
        store=SequencingStore(store_path),
        config=SequencingConfig(store_path=store_path),
    )
    svc.initialize()
    return svc
