import logging
from pathlib import Path
import sys
from typing import List

from .path import StrPath


__all__ = [
    'attach_run_log',
    'detach_run_log',
    'LOG_FORMAT',
    'LOGGER_NAME'
]


LOGGER_NAME = 'mydumper_backup'
"""Name of the package logger. All modules log through children of this logger."""

LOG_FORMAT = '%(asctime)s %(levelname)s %(message)s'


def attach_run_log(log_path: StrPath, /, console: bool = True) -> List[logging.Handler]:
    """Starts writing the package log to a fresh run log file (and optionally the console).

        The log file is truncated, so it contains only the transcript of the current run.

        :param log_path: Path of the run log file. Its parent directory is created if required.
        :param console: If true, log records are also echoed to stdout.
        :return: The handlers which were installed. Pass them to `detach_run_log()` when the run is over.
        :except OSError: If the log file could not be opened.
    """

    log_path = Path(log_path)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: List[logging.Handler] = [logging.FileHandler(log_path, mode='w', encoding='utf8')]
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return handlers


def detach_run_log(handlers: List[logging.Handler], /) -> None:
    """Removes and closes handlers previously installed by `attach_run_log()`."""

    logger = logging.getLogger(LOGGER_NAME)
    for handler in handlers:
        logger.removeHandler(handler)
        handler.close()
