"""
Logging Configuration Module

All loggers live under the ``tasador`` namespace. Records may carry the id
of the agent whose workspace they concern; lines without one show ``-``.

Usage:
    from tasador.logging_config import setup_logging, get_logger, get_agent_logger

    setup_logging()  # once, at process start
    logger = get_logger(__name__)
    session_logger = get_agent_logger(__name__, "agent-1")
    session_logger.info("Session opened")
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional

from tasador.config import get_config

PACKAGE_LOGGER = "tasador"
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(agent)s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers kept at WARNING
_QUIET_LOGGERS = ("httpx", "httpcore", "urllib3", "asyncio", "werkzeug")

_logging_configured = False


class AgentFilter(logging.Filter):
    """Gives every record an ``agent`` attribute so the format never fails."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "agent"):
            record.agent = "-"
        return True


def _build_handlers(numeric_level: int, log_file: Optional[str]) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(path, encoding="utf-8"))

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(numeric_level)
        handler.setFormatter(formatter)
        handler.addFilter(AgentFilter())
    return handlers


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    force: bool = False,
) -> None:
    """Configure the package logger.

    Args:
        level: DEBUG, INFO, WARNING, ERROR or CRITICAL (case-insensitive).
            Defaults to the configured level.
        log_file: Also write to this file (UTF-8). Defaults to the
            configured file, if any.
        force: Reconfigure even if setup already ran.
    """
    global _logging_configured

    if _logging_configured and not force:
        return

    config = get_config()
    level = (level or config.logging.level).upper()
    numeric_level = getattr(logging, level, logging.INFO)
    if log_file is None:
        log_file = config.logging.log_file

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(numeric_level)
    package_logger.handlers.clear()
    for handler in _build_handlers(numeric_level, log_file):
        package_logger.addHandler(handler)
    package_logger.propagate = False

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    """Logger for a module, placed under the package namespace."""
    if not _logging_configured:
        setup_logging()

    if not name.startswith(PACKAGE_LOGGER):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def get_agent_logger(name: str, agent_id: str) -> logging.LoggerAdapter:
    """Logger whose records are tagged with ``agent_id``."""
    return logging.LoggerAdapter(get_logger(name), {"agent": agent_id})


def reset_logging() -> None:
    """Forget the setup and drop the handlers (useful for testing)."""
    global _logging_configured
    _logging_configured = False
    logging.getLogger(PACKAGE_LOGGER).handlers.clear()
