"""
Process-wide logging for the CityGuard API.

``create_app`` calls ``setup_logging`` with ``LOG_LEVEL`` and ``LOG_FILE``
from the settings.  Service modules log through
``logging.getLogger(__name__)``: ad review decisions, uploads and storage
clean-up failures, donor and request changes, job publication.  Records
go to stderr and, when ``LOG_FILE`` is set, to that file as UTF-8 so
Arabic messages stay readable.
"""

import logging
from pathlib import Path
from typing import Optional


def setup_logging(level: str = "INFO", logfile: Optional[str] = None) -> None:
    """Attach the CityGuard handlers to the root logger.

    Parameters
    ----------
    level : str
        Level name such as ``"DEBUG"`` or ``"info"``; unknown names fall
        back to ``INFO``.
    logfile : Optional[str]
        File that also receives every record.  Its parent directory is
        created on demand.

    Calling it again is a no-op once the root logger has handlers, so
    the test suite can build the app repeatedly.
    """
    root = logging.getLogger()
    if root.handlers:
        return

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    root.setLevel(numeric_level)

    formatter = logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    handlers = [logging.StreamHandler()]
    if logfile:
        log_path = Path(logfile).resolve()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, encoding="utf-8"))
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    # The engine logs every SQL statement at INFO.
    if numeric_level > logging.DEBUG:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
