"""Logging configuration using loguru.

Server and CLI share one setup: stdlib records from uvicorn, sqlalchemy and
alembic are bridged into loguru so that request logs, cascade reports and
maintenance job output all come out in the same format.
"""

from __future__ import annotations

import logging
import sys

from loguru import logger

# Libraries that log every request or statement at INFO.
_CHATTY = ("uvicorn.access", "httpx", "httpcore")


class _InterceptHandler(logging.Handler):
    """Bridge stdlib logging records into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str = "INFO", *, log_sql: bool = False) -> None:
    """Configure loguru as the sole logging sink.

    Call once per process (server lifespan or a CLI command).  With *log_sql*
    the statements SQLAlchemy emits are logged too, which is how the batch
    UPDATEs of a cascade or a reconcile run can be inspected.
    """
    level = level.upper()

    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=(
            "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
            "<level>{message}</level>"
        ),
    )

    logging.basicConfig(handlers=[_InterceptHandler()], level=0, force=True)

    for name in _CHATTY:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if log_sql else logging.WARNING)

    logger.info("Logging initialised (level={}, sql={})", level, log_sql)
