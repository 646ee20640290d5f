"""Logging bootstrap for the web runtime."""
import logging
from typing import Union


LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: Union[str, int] = "INFO") -> None:
    if isinstance(level, str):
        level = logging.getLevelName(level.strip().upper() or "INFO")
        if not isinstance(level, int):
            level = logging.INFO
    logging.basicConfig(level=level, format=LOG_FORMAT)
    logging.getLogger("torwatch").setLevel(level)
    # urllib3 logs every connection at debug level.
    logging.getLogger("urllib3").setLevel(max(level, logging.WARNING))
