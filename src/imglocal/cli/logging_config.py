"""Logging configuration for the imglocal CLI.

Everything goes through loguru: our own messages, plus httpx/httpcore logs
intercepted from the standard logging module at WARNING and above.
"""

from __future__ import annotations

import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any

from click import Context
from loguru import logger

from imglocal import __version__

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <5} | {module}:{line: <3} | {message}"

# Third-party loggers to intercept and route to loguru
INTERCEPTED_LOGGERS = [
    "httpx",
    "httpcore",
    "asyncio",
]


class ConsoleLogPause:
    """Removes the console log handler while a live display owns stderr.

    Usage:
        with ConsoleLogPause(handler_id, verbose) as pause:
            ...  # rich Progress runs here
        # pause.handler_id is the re-added handler
    """

    def __init__(self, handler_id: int | None, verbose: bool = False) -> None:
        self.handler_id = handler_id
        self.verbose = verbose
        self._paused = False

    def __enter__(self) -> ConsoleLogPause:
        if self.handler_id is not None:
            try:
                logger.remove(self.handler_id)
                self._paused = True
            except ValueError:
                pass  # already removed
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        if self._paused:
            self.handler_id = _add_console_handler(self.verbose)
            self._paused = False


def _add_console_handler(verbose: bool) -> int:
    return logger.add(
        sys.stderr,
        level="INFO",
        format=CONSOLE_FORMAT,
        filter=lambda record: _should_show_log(record, verbose),
    )


class InterceptHandler(logging.Handler):
    """Intercept standard logging and forward to loguru.

    Uses the record's own location info rather than frame tracing.
    """

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


def setup_logging(
    verbose: bool,
    log_dir: str | None = None,
    log_level: str = "DEBUG",
    rotation: str = "10 MB",
    retention: str = "7 days",
    quiet: bool = False,
) -> tuple[int | None, Path | None]:
    """Configure logging based on configuration.

    Args:
        verbose: Show every INFO message on the console, not just milestones.
        log_dir: Directory for log files. Supports ~ expansion.
                 Can be overridden by IMGLOCAL_LOG_DIR env var.
        log_level: Log level for file output.
        rotation: Log file rotation size.
        retention: Log file retention period.
        quiet: If True, disable console logging entirely.

    Returns:
        Tuple of (console_handler_id, log_file_path).
        Log file path is None if file logging is disabled.
    """
    logger.remove()

    # DEBUG goes to file only; console shows INFO+ with filter
    console_handler_id: int | None = None
    if not quiet:
        console_handler_id = _add_console_handler(verbose)

    env_log_dir = os.environ.get("IMGLOCAL_LOG_DIR")
    if env_log_dir:
        log_dir = env_log_dir

    log_file_path: Path | None = None
    if log_dir:
        log_path = Path(log_dir).expanduser()
        log_path.mkdir(parents=True, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S_%f")
        log_file_path = log_path / f"imglocal_{timestamp}.log"
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
    """Route third-party stdlib logs to loguru, WARNING+ only."""
    intercept_handler = InterceptHandler()

    for logger_name in INTERCEPTED_LOGGERS:
        stdlib_logger = logging.getLogger(logger_name)
        stdlib_logger.handlers.clear()
        stdlib_logger.addHandler(intercept_handler)
        stdlib_logger.propagate = False
        stdlib_logger.setLevel(logging.WARNING)


def _is_third_party_log(name: str) -> bool:
    name_lower = name.lower()
    return any(
        name_lower == intercepted or name_lower.startswith(f"{intercepted}.")
        for intercepted in INTERCEPTED_LOGGERS
    )


def _should_show_log(record: Any, verbose: bool) -> bool:
    """Filter function for console logging.

    DEBUG never reaches the console. Without verbose, INFO is limited to
    milestones (saved files, updated documents).
    """
    level = record["level"].name

    if level == "DEBUG":
        return False

    if level in ("WARNING", "ERROR", "CRITICAL"):
        return True

    name = record.get("extra", {}).get("name", "")
    if level == "INFO" and _is_third_party_log(name):
        return False

    if not verbose and level == "INFO":
        msg = record.get("message", "")
        if not any(kw in msg for kw in ("Saved", "Updated", "Cancelled")):
            return False

    return True


def print_version(ctx: Context, param: Any, value: bool) -> None:
    """Print version and exit."""
    if not value or ctx.resilient_parsing:
        return
    from imglocal.cli.console import get_console

    get_console().print(f"imglocal {__version__}")
    ctx.exit(0)
