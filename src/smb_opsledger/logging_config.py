# SMB OpsLedger - Operations & Finance back office for SMBs
# Copyright (c) 2025 Maxence Bernard (maxencebernardhub)
# Licensed under the MIT License. See LICENSE file for details.

"""Structured logging configuration for SMB OpsLedger."""

import logging
import sys
from typing import Literal, Optional

import structlog

from .config import AppConfig


def configure_logging(
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING",
    format: Literal["json", "console"] = "console",
) -> None:
    """
    Configure structured logging for the application.

    Log records go to stderr so that report output printed on stdout
    (tables, JSON, CSV paths) stays machine-readable.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR).
        format: Output format (json or console).
    """
    # Set up standard library logging
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, level),
        force=True,
    )

    # Choose processors based on format
    if format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=False,
            exception_formatter=structlog.dev.plain_traceback,
        )

    # Common processors
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_app_config(
    app_config: AppConfig, level_override: Optional[str] = None
) -> None:
    """Configure logging from the [logging] section, optionally forcing a level."""
    level = (level_override or app_config.logging.level).upper()
    configure_logging(level=level, format=app_config.logging.format)  # type: ignore[arg-type]
