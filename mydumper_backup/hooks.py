from dataclasses import dataclass
import functools
from pathlib import Path
import stat
from typing import Callable, List

from .exception import CriticalError
from .tools import run_tool, ToolResult
from .utility import StrPath


__all__ = [
    'find_hooks',
    'HookCallbacks',
    'run_hooks'
]


_EXECUTE_BITS = stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH


@dataclass(frozen=True)
class HookCallbacks:
    """Callbacks for events that occur in `run_hooks()`."""

    on_before_hook: Callable[[Path], None] = lambda path: None
    """Called just before a hook is started."""

    on_output_line: Callable[[Path, str], None] = lambda path, line: None
    """Called for each line the hook writes to stdout or stderr, while it runs."""

    on_after_hook: Callable[[Path, ToolResult], None] = lambda path, result: None
    """Called after a hook exits, whether or not it succeeded."""


def find_hooks(directory: StrPath, /) -> List[Path]:
    """Finds the hooks in a directory: regular files directly within it that have any execute permission bit set.
        Other entries (subdirectories, non-executable files, dangling symlinks) are ignored.

        :return: Paths of the hooks, sorted lexically by file name. Empty if the directory doesn't exist.
        :except OSError: If the directory could not be enumerated.
    """

    directory = Path(directory)
    if not directory.is_dir():
        return []

    hooks: List[Path] = []
    for entry in directory.iterdir():
        try:
            mode = entry.stat().st_mode
        except FileNotFoundError:
            # Dangling symlink.
            continue
        if stat.S_ISREG(mode) and mode & _EXECUTE_BITS:
            hooks.append(entry)
    hooks.sort(key=lambda path: path.name)
    return hooks


def run_hooks(directory: StrPath, phase: str, /, callbacks: HookCallbacks = HookCallbacks()) -> int:
    """Runs all hooks in a directory one at a time, in the order given by `find_hooks()`.

        :param directory: The hook directory.
        :param phase: Name of the lifecycle point, e.g. "pre" or "post". Only used in error messages.
        :param callbacks: Callbacks for certain events during execution. See `HookCallbacks`.
        :return: The number of hooks run.
        :except CriticalError: If a hook could not be run or exited with nonzero status. Remaining hooks are not run.
    """

    try:
        hooks = find_hooks(directory)
    except OSError as e:
        raise CriticalError(f'{phase.capitalize()} hook failed: could not enumerate "{directory}": {e}') from e

    for hook in hooks:
        callbacks.on_before_hook(hook)
        on_output_line = functools.partial(callbacks.on_output_line, hook)
        try:
            result = run_tool([str(hook)], on_output_line=on_output_line)
        except OSError as e:
            raise CriticalError(f'{phase.capitalize()} hook failed: could not run "{hook}": {e}') from e
        callbacks.on_after_hook(hook, result)
        if not result.succeeded:
            raise CriticalError(f'{phase.capitalize()} hook failed: "{hook}" exited with code {result.exit_code}')

    return len(hooks)
