"""Logging configuration for the into-md CLI.

Everything is routed through loguru:
- stderr shows WARNING+ always and INFO only in verbose mode
- DEBUG goes to the optional log file only
- stdlib loggers of httpx, playwright and friends are intercepted at WARNING+
"""

from __future__ import annotations

import logging
import os
import sys
import warnings
from datetime import datetime
from pathlib import Path
from typing import Any

import click
from click import Context
from loguru import logger

from intomd import __version__

# Third-party loggers to intercept and route to loguru
INTERCEPTED_LOGGERS = [
    "httpx",
    "httpcore",
    "playwright",
    "playwright.async_api",
    "readability",
    "readability.readability",
    "asyncio",
]

SUPPRESSED_WARNINGS = [
    r"coroutine .* was never awaited",
]

CONSOLE_FORMAT = "<level>{level: <8}</level> | <cyan>{message}</cyan>"
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <5} | {module}:{line: <3} | {message}"


class InterceptHandler(logging.Handler):
    """Intercept standard logging and forward to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.bind(
            name=record.name,
            module=record.module,
            function=record.funcName,
            line=record.lineno,
        ).opt(exception=record.exc_info).log(level, record.getMessage())


def _should_show_log(record: Any, verbose: bool) -> bool:
    """Console filter: WARNING+ always, INFO only when verbose, never DEBUG."""
    level = record["level"].name
    if level == "DEBUG":
        return False
    if level == "INFO":
        return verbose
    return True


def setup_logging(
    verbose: bool,
    log_dir: str | None = None,
    log_level: str = "DEBUG",
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> tuple[int, Path | None]:
    """Configure loguru handlers and stdlib interception.

    Args:
        verbose: Show INFO diagnostics (detector reason, cache hits) on stderr
        log_dir: Directory for log files, ``~`` expanded.
                 Overridden by the INTOMD_LOG_DIR env var.
        log_level: Log level for file output
        rotation: Log file rotation size
        retention: Log file retention period

    Returns:
        Tuple of (console_handler_id, log_file_path or None)
    """
    for pattern in SUPPRESSED_WARNINGS:
        warnings.filterwarnings("ignore", message=pattern)

    logger.remove()
    console_handler_id = logger.add(
        sys.stderr,
        level="INFO",
        format=CONSOLE_FORMAT,
        filter=lambda record: _should_show_log(record, verbose),
    )

    env_log_dir = os.environ.get("INTOMD_LOG_DIR")
    if env_log_dir:
        log_dir = env_log_dir

    log_file_path: Path | None = None
    if log_dir:
        log_path = Path(log_dir).expanduser()
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        log_file_path = log_path / f"intomd_{timestamp}.log"
        logger.add(
            log_file_path,
            level=log_level,
            rotation=rotation,
            retention=retention,
            format=FILE_FORMAT,
        )

    _setup_log_interception()
    return console_handler_id, log_file_path


def _setup_log_interception() -> None:
    intercept_handler = InterceptHandler()
    for logger_name in INTERCEPTED_LOGGERS:
        stdlib_logger = logging.getLogger(logger_name)
        stdlib_logger.handlers.clear()
        stdlib_logger.addHandler(intercept_handler)
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(logging.WARNING)


def print_version(ctx: Context, param: Any, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    click.echo(f"into-md {__version__}")
    ctx.exit(0)
