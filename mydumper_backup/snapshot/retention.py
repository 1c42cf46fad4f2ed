from dataclasses import dataclass, field
import os
from pathlib import Path
import shutil
from typing import Callable, List

from ..utility import StrPath
from .structure import METADATA_FILENAME


__all__ = [
    'enforce_retention',
    'find_snapshots',
    'RetentionCallbacks',
    'RetentionResults',
    'Snapshot'
]


@dataclass(frozen=True)
class Snapshot:
    """A complete backup directory found under the backup root."""

    path: Path

    created: float
    """Modification time of the snapshot's metadata file (seconds since the epoch). The metadata file is written once,
        when the dump completes, so this is the snapshot's age."""


@dataclass
class RetentionResults:
    """Return results of `enforce_retention()`."""

    removed: List[Path] = field(default_factory=list)
    """Snapshots that were deleted, oldest first."""

    remaining: int = 0
    """Number of snapshots present after enforcement (as of the final scan)."""


@dataclass(frozen=True)
class RetentionCallbacks:
    """Callbacks for events that occur in `enforce_retention()`."""

    on_delete: Callable[[Snapshot], None] = lambda snapshot: None
    """Called just before a snapshot is deleted."""

    on_delete_error: Callable[[Path, OSError], None] = lambda path, error: None
    """Called when deleting a snapshot fails. Enforcement stops at the first failure.
        First argument is the path, second argument is the raised exception."""


def find_snapshots(root_directory: StrPath, /) -> List[Snapshot]:
    """Finds all snapshots at any depth under the root directory, ordered oldest first.

        Symlinks are not followed, so the "latest" link does not produce a duplicate entry. Ties in age keep the order of
        the directory scan.

        :except OSError: If a metadata file could not be queried.
    """

    root_directory = Path(root_directory)
    snapshots: List[Snapshot] = []
    for directory, _, filenames in os.walk(root_directory):
        directory_path = Path(directory)
        if METADATA_FILENAME in filenames and directory_path != root_directory:
            created = (directory_path / METADATA_FILENAME).stat().st_mtime
            snapshots.append(Snapshot(directory_path, created))
    snapshots.sort(key=lambda snapshot: snapshot.created)
    return snapshots


def _remove_empty_parents(path: Path, root_directory: StrPath, /) -> None:
    """Removes directories left empty between a deleted snapshot and the root directory, e.g. "2024" after deleting
        "2024/12-31". Stops at the first directory which is not empty."""

    root_directory = Path(root_directory)
    parent = path.parent
    while parent != root_directory and root_directory in parent.parents:
        try:
            parent.rmdir()
        except OSError:
            # Not empty.
            return
        parent = parent.parent


def enforce_retention(root_directory: StrPath, keep: int, /,
                      callbacks: RetentionCallbacks = RetentionCallbacks()) -> RetentionResults:
    """Deletes the oldest snapshots until at most `keep` remain. A `keep` of 0 disables retention.

        The snapshots are rescanned after every deletion, so the result is correct even if the directory changes during
        enforcement.

        :param root_directory: The backup root directory.
        :param keep: Maximum number of snapshots to retain.
        :param callbacks: Callbacks for certain events during execution. See `RetentionCallbacks`.
        :except OSError: If the snapshots could not be enumerated.
    """

    results = RetentionResults()
    if keep == 0:
        return results

    while True:
        snapshots = find_snapshots(root_directory)
        results.remaining = len(snapshots)
        if len(snapshots) <= keep:
            return results

        oldest = snapshots[0]
        callbacks.on_delete(oldest)

        try:
            shutil.rmtree(oldest.path)
        except OSError as e:
            callbacks.on_delete_error(Path(e.filename or oldest.path), e)
            return results
        results.removed.append(oldest.path)
        _remove_empty_parents(oldest.path, root_directory)
