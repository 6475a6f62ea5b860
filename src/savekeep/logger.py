"""Logging setup for savekeep.

Usage in any module::

    from savekeep.logger import get_logger
    logger = get_logger(__name__)
    logger.info("Backing up %s", game)

Handlers live only on the root ``savekeep`` logger and are attached once by
``setup_logging`` (the CLI calls it). Library code only asks for loggers.
"""

from __future__ import annotations

import logging
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.logging import RichHandler

ROOT_LOGGER = "savekeep"
_FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s:%(funcName)s:%(lineno)d %(message)s"

_lock = threading.Lock()
_configured = False


def get_logger(name: str = ROOT_LOGGER) -> logging.Logger:
    """Return a logger in the ``savekeep`` hierarchy."""
    if name != ROOT_LOGGER and not name.startswith(ROOT_LOGGER + "."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


def _coerce_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.WARNING)


def setup_logging(
    level: Union[str, int] = "WARNING",
    log_file: Optional[Path] = None,
    *,
    file_level: Union[str, int] = "DEBUG",
) -> logging.Logger:
    """Attach the console (and optional rotating file) handler to the root logger.

    Calling it again only updates handler levels.
    """
    global _configured

    root = logging.getLogger(ROOT_LOGGER)
    console_level = _coerce_level(level)
    with _lock:
        if _configured:
            for handler in root.handlers:
                if isinstance(handler, RichHandler):
                    handler.setLevel(console_level)
            return root

        root.setLevel(logging.DEBUG)
        root.propagate = False

        console = RichHandler(
            console=Console(stderr=True),
            show_path=False,
            markup=False,
            rich_tracebacks=False,
        )
        console.setLevel(console_level)
        root.addHandler(console)

        if log_file is not None:
            log_file.parent.mkdir(parents=True, exist_ok=True)
            file_handler = RotatingFileHandler(
                log_file, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
            )
            file_handler.setLevel(_coerce_level(file_level))
            file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
            root.addHandler(file_handler)

        _configured = True
    return root


def reset_logging() -> None:
    """Detach all handlers (tests)."""
    global _configured

    root = logging.getLogger(ROOT_LOGGER)
    with _lock:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            handler.close()
        root.propagate = True
        _configured = False
