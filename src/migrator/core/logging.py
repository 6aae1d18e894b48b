"""Logging setup for migrator.

All modules log through loguru's ``logger``. This module wires the sinks
(stdout and/or a rotating file) and routes the standard ``logging`` records
emitted by SQLAlchemy, Alembic and database drivers into loguru.
"""

from __future__ import annotations

import inspect
import logging
import sys

from loguru import logger

from .config import LoggingConfig

# Chatty third-party loggers only reach the sinks at WARNING and above.
QUIET_LOGGERS = (
    "sqlalchemy.pool",
    "sqlalchemy.engine",
    "alembic.runtime.migration",
    "psycopg",
    "asyncio",
)


class InterceptHandler(logging.Handler):
    """Forward standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find the caller that issued the logging call so loguru reports it.
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_logging(config: LoggingConfig) -> list[int]:
    """Replace loguru's sinks according to ``config``.

    Args:
        config: Logging configuration.

    Returns:
        Handler ids of the sinks that were added.
    """
    logger.remove()
    handler_ids: list[int] = []

    if config.log_to_stdout:
        handler_ids.append(logger.add(sys.stdout, level=config.level))

    if config.log_file is not None:
        config.log_file.parent.mkdir(parents=True, exist_ok=True)
        handler_ids.append(
            logger.add(
                config.log_file,
                level=config.level,
                rotation=config.rotation,
                retention=config.retention,
                compression=config.compression,
            )
        )

    root = logging.getLogger()
    if not any(isinstance(h, InterceptHandler) for h in root.handlers):
        root.addHandler(InterceptHandler())
    # loguru-only levels such as TRACE have no stdlib equivalent.
    root.setLevel(logging.getLevelNamesMapping().get(config.level, logging.DEBUG))

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"log_level: {config.level}")
    logger.info(f"log_file: {config.log_file}")
    logger.info(f"log_to_stdout: {config.log_to_stdout}")

    return handler_ids


def remove_intercept_handler() -> None:
    """Detach the stdlib bridge installed by configure_logging."""
    root = logging.getLogger()
    for handler in [h for h in root.handlers if isinstance(h, InterceptHandler)]:
        root.removeHandler(handler)
