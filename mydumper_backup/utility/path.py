import os
from typing import Union


__all__ = [
    'path_name_equal',
    'StrPath'
]


StrPath = Union[str, os.PathLike]
"""Anything that can be used as a filesystem path."""


def path_name_equal(name1: str, name2: str) -> bool:
    """Checks if two path components are the same, using case sensitivity appropriate for the current system."""

    return os.path.normcase(name1) == os.path.normcase(name2)
