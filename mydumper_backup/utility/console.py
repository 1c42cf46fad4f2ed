import sys


__all__ = [
    'print_error',
    'print_warning'
]


def print_error(message: str) -> None:
    """Prints an error message to stderr. Should be used for fatal errors occurring outside of a backup run."""

    print(f'ERROR: {message}', file=sys.stderr)


def print_warning(message: str) -> None:
    """Prints a warning message to stdout. Should be used for nonfatal conditions outside of a backup run."""

    print(f'WARNING: {message}')
