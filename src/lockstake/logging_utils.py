"""Logging setup for command-line use."""

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure a single stderr handler on the 'lockstake' logger.

    Level comes from the argument, then LOCKSTAKE_LOG_LEVEL, then WARNING.
    Safe to call more than once.
    """
    level_name = (level or os.environ.get("LOCKSTAKE_LOG_LEVEL") or "WARNING").strip().upper()
    resolved = getattr(logging, level_name, logging.WARNING)

    root = logging.getLogger("lockstake")
    root.setLevel(resolved)
    if getattr(root, "_lockstake_configured", False):
        for handler in root.handlers:
            handler.setLevel(resolved)
        return

    handler = logging.StreamHandler()
    handler.setLevel(resolved)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.propagate = False
    setattr(root, "_lockstake_configured", True)
