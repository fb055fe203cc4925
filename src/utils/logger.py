"""Centralized logging configuration using Loguru."""

from __future__ import annotations

import pathlib
import sys
from typing import Any

from loguru import logger


CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | [AutoBuild] <level>{message}</level>"


def setup_logging(
    *,
    console_level: str = "INFO",
    file_level: str = "DEBUG",
    log_directory: str | None = None,
    log_filename: str = "autobuild.log",
    enqueue: bool = True,
) -> None:
    """Configure process-wide logging sinks.

    Parameters
    ----------
    console_level:
        Minimum log level for console output.
    file_level:
        Minimum log level for file output.
    log_directory:
        Relative or absolute path where the log file should be stored. When
        ``None`` no file sink is installed.
    log_filename:
        Name of the file that captures structured log output.
    enqueue:
        Forwarded to Loguru; disable it when the caller needs records flushed
        synchronously (tests, short-lived CLI invocations that exit via
        ``SystemExit``).

    Records below ``ERROR`` go to stdout and errors go to stderr so that batch
    logs captured by a CI driver keep failures visible on the error stream.
    Existing handlers are removed to avoid duplicate entries when
    reconfiguring during runtime.
    """

    logger.remove()

    level = console_level.upper()
    logger.add(
        sys.stdout,
        level=level,
        format=CONSOLE_FORMAT,
        filter=lambda record: record["level"].no < logger.level("ERROR").no,
        enqueue=enqueue,
        backtrace=True,
        diagnose=False,
        colorize=True,
    )
    logger.add(
        sys.stderr,
        level="ERROR",
        format=CONSOLE_FORMAT,
        enqueue=enqueue,
        backtrace=True,
        diagnose=False,
        colorize=True,
    )

    file_path: pathlib.Path | None = None
    if log_directory is not None:
        log_path = pathlib.Path(log_directory).expanduser().resolve()
        log_path.mkdir(parents=True, exist_ok=True)
        file_path = log_path / log_filename
        logger.add(
            file_path,
            level=file_level.upper(),
            enqueue=enqueue,
            backtrace=False,
            diagnose=False,
            rotation="10 MB",
            retention="30 days",
            compression="zip",
            serialize=True,
        )

    logger.bind(
        console_level=console_level,
        file_level=file_level,
        log_file=str(file_path) if file_path else None,
    ).debug("Logging configured")


def log_build_event(event: str, **metadata: Any) -> None:
    """Emit a structured log entry related to the build lifecycle.

    Parameters
    ----------
    event:
        Describes the build event being logged (e.g., ``"succeeded"``).
    **metadata:
        Additional keyword metadata such as ``platform``, ``output_path``,
        ``build_number`` or ``elapsed``. Never pass secrets here.
    """

    logger.bind(event=event, **metadata).info("build_event {}", event)


__all__ = ["setup_logging", "log_build_event", "CONSOLE_FORMAT"]
