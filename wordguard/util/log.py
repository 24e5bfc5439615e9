"""Logger construction for a server session.

The session owns its logger: it is created when the session starts, handed
down to every component, and closed when the session ends. Nothing here
touches the root logger, and nothing ever writes to stdout because stdout
carries the protocol stream.
"""

import logging
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def open_logger(
    name: str = "wordguard",
    file: Path | None = None,
    level: str | int = logging.INFO,
    stream=None,
) -> logging.Logger:
    """Create a logger writing to stderr and, optionally, to a file."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.propagate = False

    # A previous session in the same process may have left handlers behind
    close_logger(logger)

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler(stream or sys.stderr)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if file is not None:
        file = Path(file)
        file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(file, encoding="utf-8")
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def close_logger(logger: logging.Logger) -> None:
    """Flush and detach every handler of the logger."""
    for handler in list(logger.handlers):
        handler.flush()
        handler.close()
        logger.removeHandler(handler)
