"""Logging setup for feed_sync.

Logs go to stderr: stdout is reserved for the STDIO transport.
"""

import logging
import sys

from feed_sync.config import ServerConfig


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

logger = logging.getLogger("feed_sync")


def setup_logging(config: ServerConfig) -> logging.Logger:
    """Configure the feed_sync logger hierarchy.

    Safe to call more than once; the stderr handler is only installed once.

    Args:
        config: Server configuration providing the log level

    Returns:
        The package root logger
    """
    logger.setLevel(config.log_level)

    if not any(getattr(h, "_feed_sync_handler", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._feed_sync_handler = True
        logger.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logger.propagate = False

    return logger
