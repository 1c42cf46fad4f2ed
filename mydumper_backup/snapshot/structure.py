from datetime import datetime
from pathlib import Path
import shutil
from typing import Iterable

from ..exception import CriticalError
from ..utility import StrPath


__all__ = [
    'compute_backup_path',
    'compute_log_path',
    'LATEST_LINK_NAME',
    'LOG_FILE_SUFFIX',
    'METADATA_FILENAME',
    'prepare_directories',
    'publish_latest',
    'remove_backup_directory',
    'ROOT_DIRECTORY_NAME'
]


ROOT_DIRECTORY_NAME = 'mydumper'
"""Required name of the backup root directory. Guards against pointing the tool at an unrelated directory, whose
    contents retention would otherwise delete."""

METADATA_FILENAME = 'metadata'
"""Name of the file the dump tool writes into a backup directory. Its presence marks a complete snapshot."""

LATEST_LINK_NAME = 'latest'
"""Name of the symlink within the root directory which refers to the most recent complete snapshot."""

LOG_FILE_SUFFIX = '.log'


def compute_backup_path(root_directory: StrPath, date_format: str, timestamp: datetime, /) -> Path:
    """Computes the directory a snapshot taken at `timestamp` is written to.
        The format may contain path separators, producing nested snapshot directories."""

    return Path(root_directory, timestamp.strftime(date_format))


def compute_log_path(log_directory: StrPath, date_format: str, timestamp: datetime, /) -> Path:
    """Computes the run log file for a run started at `timestamp`. Always directly within `log_directory`."""

    name = timestamp.strftime(date_format).strip('/').replace('/', '-')
    return Path(log_directory, name + LOG_FILE_SUFFIX)


def prepare_directories(backup_path: StrPath, log_directory: StrPath, hook_directories: Iterable[StrPath], /) -> None:
    """Creates the directories a run needs, if they don't already exist: the parent of the backup directory, the log
        directory, and the hook directories.

        :except OSError: If a directory could not be created.
    """

    Path(backup_path).parent.mkdir(parents=True, exist_ok=True)
    Path(log_directory).mkdir(parents=True, exist_ok=True)
    for directory in hook_directories:
        Path(directory).mkdir(parents=True, exist_ok=True)


def remove_backup_directory(backup_path: StrPath, /) -> bool:
    """Deletes a backup directory and everything in it, e.g. a partial snapshot left by an earlier failed run.

        :return: True if something was deleted, false if the directory didn't exist.
        :except OSError: If the directory could not be (fully) deleted.
    """

    backup_path = Path(backup_path)
    if backup_path.is_symlink() or backup_path.is_file():
        backup_path.unlink()
        return True
    elif backup_path.exists():
        shutil.rmtree(backup_path)
        return True
    else:
        return False


def publish_latest(backup_path: StrPath, root_directory: StrPath, /) -> Path:
    """Points the "latest" symlink in the root directory at a newly completed snapshot.

        The old link is removed and a new one is created, so for a brief moment no link exists.

        :return: Path of the symlink.
        :except CriticalError: If something other than a symlink or file occupies the link's path.
        :except OSError: If the link could not be replaced.
    """

    link_path = Path(root_directory, LATEST_LINK_NAME)
    if link_path.is_symlink() or link_path.is_file():
        link_path.unlink()
    elif link_path.exists():
        raise CriticalError(f'Cannot publish latest snapshot: "{link_path}" exists and is not a symlink')
    link_path.symlink_to(Path(backup_path).absolute(), target_is_directory=True)
    return link_path
