"""Shared utilities for Loopline CLI commands.

- Global option state (config file, data file, logging)
- Config loading and service construction
- Error reporting for sequencing failures
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Literal

import typer
import yaml
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape

from loopline.core.config import SequencingConfig
from loopline.core.errors import ConfigurationError, SequencingError
from loopline.core.logging import configure_logging, get_logger

if TYPE_CHECKING:
    from loopline.sequencing import LoopSequencingService

_logger = get_logger("cli")


# =============================================================================
# Global option state
# =============================================================================


@dataclass
class CliLoggingConfig:
    """CLI logging options, applied once per process."""

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] | None = None
    file: Path | None = None
    format: Literal["json", "console", "both"] | None = None
    configured: bool = False


@dataclass
class CliSettings:
    """Paths chosen through global options."""

    config_path: Path | None = None
    data_path: Path | None = None


_log_config = CliLoggingConfig()
_settings = CliSettings()


def set_log_level(level: str) -> None:
    _log_config.level = level.upper()  # type: ignore[assignment]


def set_log_file(path: Path | None) -> None:
    _log_config.file = path


def set_log_format(fmt: str) -> None:
    _log_config.format = fmt  # type: ignore[assignment]


def set_config_path(path: Path | None) -> None:
    _settings.config_path = path


def set_data_path(path: Path | None) -> None:
    _settings.data_path = path


def reset_cli_state() -> None:
    """Reset global option state (primarily for testing)."""
    global _log_config, _settings
    _log_config = CliLoggingConfig()
    _settings = CliSettings()


# =============================================================================
# Config and service construction
# =============================================================================


def load_config() -> SequencingConfig:
    """Load the YAML config if one was given, applying the --data override.

    Raises:
        ConfigurationError: If the config file cannot be read or is invalid.
    """
    if _settings.config_path is not None:
        try:
            config = SequencingConfig.from_yaml(_settings.config_path)
        except (OSError, yaml.YAMLError, ValidationError) as e:
            raise ConfigurationError(f"Invalid config {_settings.config_path}: {e}") from e
    else:
        config = SequencingConfig()
    if _settings.data_path is not None:
        config.store_path = _settings.data_path
    return config


def configure_global_logging(console: Console, config: SequencingConfig) -> None:
    """Configure logging from the config file, overridden by CLI options.

    Raises:
        typer.Exit: If the logging options are inconsistent.
    """
    if _log_config.configured:
        return
    log = config.logging
    try:
        configure_logging(
            level=_log_config.level or log.level,
            format=_log_config.format or log.format,
            file_path=_log_config.file or log.file_path,
            max_file_size_mb=log.max_file_size_mb,
            backup_count=log.backup_count,
        )
    except ValueError as e:
        console.print(f"[red]Logging configuration error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None
    _log_config.configured = True


def build_service(
    history_path: Path | None = None,
    leverage_path: Path | None = None,
) -> LoopSequencingService:
    """Create and initialize a service for the configured data file.

    Without a history file the service gets an empty history source, which
    is enough for queries and line generation.
    """
    from loopline.sequencing import (
        InMemoryHistorySource,
        JsonHistorySource,
        JsonLeverageSource,
        LoopSequencingService,
        SequencingStore,
    )

    config = load_config()
    history = JsonHistorySource(history_path) if history_path else InMemoryHistorySource()
    leverage = JsonLeverageSource(leverage_path) if leverage_path else None
    service = LoopSequencingService(
        history=history,
        store=SequencingStore(config.store_path),
        leverage=leverage,
        config=config,
    )
    service.initialize()
    return service


@contextmanager
def handle_sequencing_errors(console: Console) -> Iterator[None]:
    """Report SequencingError as a red message and exit with status 1."""
    try:
        yield
    except SequencingError as e:
        _logger.debug("command_failed", error_type=type(e).__name__, error=str(e))
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        raise typer.Exit(1) from None


__all__ = [
    "CliLoggingConfig",
    "CliSettings",
    "build_service",
    "configure_global_logging",
    "handle_sequencing_errors",
    "load_config",
    "reset_cli_state",
    "set_config_path",
    "set_data_path",
    "set_log_file",
    "set_log_format",
    "set_log_level",
]
