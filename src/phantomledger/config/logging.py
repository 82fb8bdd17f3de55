"""Root logger setup for the phantomledger CLI."""

from __future__ import annotations

import logging
import os

LOG_LEVEL_ENV = "PHANTOMLEDGER_LOG_LEVEL"
# alembic announces every (no-op) upgrade at INFO on each startup
_QUIET_LOGGERS = ("alembic.runtime.migration",)


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Configure the root logger for CLI output.

    ``level`` defaults to ``PHANTOMLEDGER_LOG_LEVEL`` (a level name) or INFO.
    """

    if level is None:
        name = os.getenv(LOG_LEVEL_ENV, "INFO").strip().upper()
        resolved = logging.getLevelNamesMapping().get(name)
        level = logging.INFO if resolved is None else resolved

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        force=force,
    )
    for logger_name in _QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(level, logging.WARNING))
