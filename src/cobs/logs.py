from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Send ``cobs`` log records to the current stderr at ``level``.

    Calling it again replaces the handler installed by the previous call.
    """

    logger = logging.getLogger("cobs")
    logger.setLevel(level.upper())
    for handler in list(logger.handlers):
        if getattr(handler, "_cobs_console", False):
            logger.removeHandler(handler)
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._cobs_console = True  # type: ignore[attr-defined]
    logger.addHandler(handler)


__all__ = ["configure_logging", "LOG_FORMAT"]
