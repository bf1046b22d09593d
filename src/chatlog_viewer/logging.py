"""Log handlers for the chatlog-viewer commands.

Every module logs through a child of the ``chatlog_viewer`` logger. The
command entry points call ``setup_logging`` once so those records land in
``<log_dir>/<command>.log`` and, unless disabled, on stderr.
"""

import logging
import sys
from pathlib import Path

ROOT_LOGGER = "chatlog_viewer"

DEFAULT_LOG_DIR = Path.home() / ".chatlog-viewer" / "logs"

_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logging(
    name: str,
    log_dir: Path | None = None,
    level: int = logging.INFO,
    console: bool = True,
) -> logging.Logger:
    """Attach file and stderr handlers to the package logger.

    Handlers are attached on the first call only; later calls just adjust
    the level, so a command invoked repeatedly in one process keeps writing
    to the file it opened first.

    Args:
        name: Command name, used as the log file stem
        log_dir: Where ``<name>.log`` is written (default ~/.chatlog-viewer/logs/)
        level: Threshold for the logger and its handlers
        console: Also echo records to stderr

    Returns:
        The ``chatlog_viewer`` logger
    """
    log_dir = log_dir or DEFAULT_LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)

    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(level)
    if logger.handlers:
        return logger

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)
    handlers: list[logging.Handler] = [
        logging.FileHandler(log_dir / f"{name}.log", encoding="utf-8")
    ]
    if console:
        handlers.append(logging.StreamHandler(sys.stderr))

    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return the ``chatlog_viewer.<name>`` logger for a module."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
