"""Logging configuration for the reporting agent"""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path

import logfire
from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "sqlreport"


def setup_logger(log_dir: str = "logs", level: str = "INFO") -> logging.Logger:
    """
    Setup dual logging: console (rich) + rotating file.

    Args:
        log_dir: Directory for the rotating log file
        level: Console log level name

    Returns:
        Configured package logger
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    # Remove existing handlers to avoid duplicates
    logger.handlers.clear()

    console_handler = RichHandler(
        rich_tracebacks=True,
        markup=False,
        show_time=True,
        show_path=False,
        console=Console(stderr=True),
    )
    console_handler.setLevel(getattr(logging, level.upper(), logging.INFO))
    console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    logger.addHandler(console_handler)

    logs_dir = Path(log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)
    file_handler = RotatingFileHandler(
        logs_dir / "sqlreport.log",
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    logger.addHandler(file_handler)

    logger.propagate = False
    return logger


def configure_tracing() -> None:
    """Send pydantic-ai spans to Logfire when LOGFIRE_TOKEN is set."""
    logfire.configure(send_to_logfire="if-token-present", console=False)
    logfire.instrument_pydantic_ai()
