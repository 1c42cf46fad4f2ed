__all__ = [
    'ConfigError',
    'CriticalError',
    'FatalArgumentError',
    'FatalError'
]


class FatalError(Exception):
    """High-level, unrecoverable application error. Prefer not use this class itself, create a specific subclass.
        This type of error probably shouldn't be caught except at the highest scope."""

    def __init__(self, message: str) -> None:
        """
            :param message: Description of the error. This is written to the run log and the status file, so should be
                informative enough for an operator.
        """

        super().__init__(message)
        self.message = message


class CriticalError(FatalError):
    """Indicates that a backup run cannot continue: a gating precondition failed, a hook failed, or the dump tool
        failed. Always results in a "critical" status record."""


class ConfigError(FatalError):
    """Indicates that the configuration could not be loaded, so no backup run can be attempted."""


class FatalArgumentError(FatalError):
    """Indicates that command line arguments are invalid."""

    def __init__(self, message: str, usage: str) -> None:
        """
            :param message: Specific description of the error.
            :param usage: Program usage information string to display to the user.
        """

        super().__init__(message)
        self.usage = usage
