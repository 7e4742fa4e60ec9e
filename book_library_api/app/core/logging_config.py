"""
Logging setup for the Book Library API.

Every module logs through ``logging.getLogger(__name__)``; this module
only decides where those records go.  Records are written to stderr
and, when ``LOG_FILE`` is set, appended to that file as well.
"""

import logging
from pathlib import Path
from typing import List, Optional


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO/DEBUG.
QUIET_LOGGERS = ("urllib3", "httpx")


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Send application logs to stderr and optionally to ``logfile``.

    Calling it again, or after a test runner has installed its own
    handlers, leaves the existing configuration untouched.  Unknown
    ``level`` names fall back to ``INFO``.
    """
    handlers: List[logging.Handler] = [logging.StreamHandler()]
    if logfile:
        handlers.append(logging.FileHandler(Path(logfile).expanduser(), encoding="utf-8", delay=True))

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=DATE_FORMAT,
        handlers=handlers,
    )
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
