"""Logging setup for the nestor CLI."""

from __future__ import annotations

import logging
import sys
from typing import Final

# chatty at INFO: one line per migration step and per pooled connection
_LIBRARY_LOGGERS: Final[tuple[str, ...]] = ("alembic", "sqlalchemy.engine")


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Initialise the root logger once.

    Records go to stderr; stdout is reserved for command output. Library
    loggers stay at WARNING unless ``level`` asks for DEBUG.
    """

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        datefmt="%H:%M:%S",
        stream=sys.stderr,
        force=force,
    )
    library_level = level if level <= logging.DEBUG else logging.WARNING
    for name in _LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
