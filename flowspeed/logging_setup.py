"""Logging for the plugin process: a rotating file, optionally the console."""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from typing import List

from .config import AppConfig, LoggingConfig

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _level(name: str, default: int) -> int:
    return getattr(logging, name.upper(), default)


def build_handlers(config: AppConfig) -> List[logging.Handler]:
    settings: LoggingConfig = config.logging
    log_dir = config.paths.logs_dir
    log_dir.mkdir(parents=True, exist_ok=True)

    handlers: List[logging.Handler] = [
        RotatingFileHandler(
            log_dir / settings.file_name,
            maxBytes=settings.max_bytes,
            backupCount=settings.backup_count,
            encoding="utf-8",
        )
    ]
    if settings.console:
        handlers.append(logging.StreamHandler())

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(config: AppConfig) -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(_level(config.logging.level, logging.INFO))

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
    for handler in build_handlers(config):
        root_logger.addHandler(handler)

    # the refresh pump runs a job every few hundred ms; APScheduler logs each one at INFO
    logging.getLogger("apscheduler").setLevel(_level(config.logging.scheduler_level, logging.WARNING))
