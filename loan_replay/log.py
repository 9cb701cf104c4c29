"""Logging setup shared by the CLI and the web app."""

from __future__ import annotations

import logging
import os
from typing import Optional, Union

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: Optional[Union[int, str]] = None) -> None:
    """Configure root logging once.

    ``level`` falls back to the ``LOAN_REPLAY_LOG_LEVEL`` environment variable
    and then to ``WARNING``.
    """
    if level is None:
        level = os.environ.get("LOAN_REPLAY_LOG_LEVEL", "WARNING")
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("loan_replay").setLevel(level)
