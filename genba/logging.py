"""loguru sink configuration."""

from __future__ import annotations

import sys

from loguru import logger


def setup_logging(level: str = "INFO", serialize: bool = False) -> None:
    """Replace the default loguru sink with one at *level*.

    ``serialize=True`` emits one JSON object per line (for the API server).
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), serialize=serialize, backtrace=False)
    logger.enable("genba")
