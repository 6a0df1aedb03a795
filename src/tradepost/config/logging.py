"""Root logger setup for the command line."""

from __future__ import annotations

import logging
from typing import Final

LOG_FORMAT: Final[str] = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"

# per-statement driver chatter, even under --verbose
QUIET_LOGGERS: Final[tuple[str, ...]] = ("aiosqlite",)


def configure_logging(*, level: int = logging.INFO, force: bool = False) -> None:
    """Send records at ``level`` and above to stderr.

    ``force=True`` replaces handlers installed by an earlier call.
    """

    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt="%H:%M:%S", force=force)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))
