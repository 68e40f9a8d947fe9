"""Logging setup shared by the dashboard, scripts and scheduled jobs."""

from __future__ import annotations

import logging
import logging.config
from typing import Optional

from .config import LOG_LEVEL


def build_logging_config(level: str = LOG_LEVEL) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                # RichHandler renders its own timestamp and level column
                "format": "%(name)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "default": {
                "class": "rich.logging.RichHandler",
                "formatter": "default",
                "level": "DEBUG",
                "rich_tracebacks": True,
                "show_time": True,
                "show_path": False,
                "log_time_format": "%Y-%m-%d %H:%M:%S",
            },
        },
        "loggers": {
            "finance_insights": {
                "handlers": ["default"],
                "level": level,
                "propagate": False,
            },
        },
    }


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the rich-backed logging configuration to the package logger."""
    logging.config.dictConfig(build_logging_config((level or LOG_LEVEL).upper()))
