import argparse
import sys
from typing import NoReturn, Optional, Sequence

from .config import CONFIG_PATH_ENV_VAR, ConfigParseError, DEFAULT_CONFIG_PATH, get_config_path, read_backup_config
from .coordinator import RunCoordinator
from .exception import ConfigError, CriticalError, FatalArgumentError
from .status import Status
from .utility import print_error, print_warning


__all__ = [
    'api_entrypoint',
    'EXIT_CODE_FAILURE',
    'EXIT_CODE_SUCCESS',
    'EXIT_CODE_UNEXPECTED_FAILURE',
    'script_entrypoint',
    'script_main'
]


def script_entrypoint() -> NoReturn:
    """Process-level entrypoint of the backup program.
        Collects arguments from `sys.argv`, performs all processing, then terminates the process with `sys.exit()`."""

    exit_code = script_main(sys.argv)
    sys.exit(exit_code)


def script_main(arguments: Sequence[str], /) -> int:
    """Intermediate entrypoint function which may be handy for testing purposes.

        :param arguments: The program command line arguments.
        :return: Process exit code.
    """

    # Strip off the "program name" argument.
    arguments = arguments[1:]

    try:
        api_entrypoint(arguments)
        return EXIT_CODE_SUCCESS
    except FatalArgumentError as e:
        print(e.usage, file=sys.stderr)
        print(e.message, file=sys.stderr)
        return EXIT_CODE_FAILURE
    except (ConfigError, CriticalError) as e:
        print_error(e.message)
        return EXIT_CODE_FAILURE
    except Exception as e:
        print_error(f'Unhandled exception: {repr(e)}')
        return EXIT_CODE_UNEXPECTED_FAILURE


def api_entrypoint(arguments: Sequence[str], /) -> Optional[Status]:
    """API-level entrypoint of the backup program. Loads the configuration and performs one backup run.

        :param arguments: The program command line arguments. Should not include the "program name" zeroth argument.
        :return: The outcome of the run, or `None` if backups are disabled by configuration.
        :except FatalArgumentError: If the command line arguments are invalid.
        :except ConfigError: If the configuration could not be loaded.
        :except CriticalError: If the backup run failed.
    """

    get_argument_parser().parse_args(arguments)

    config_path = get_config_path()
    try:
        config = read_backup_config(config_path)
    except OSError as e:
        raise ConfigError(f'Failed to read configuration file "{config_path}": {e}') from e
    except ConfigParseError as e:
        raise ConfigError(str(e)) from e

    if not config.enabled:
        print_warning('Backups are disabled by configuration, nothing to do')
        return None

    return RunCoordinator(config).run()


def get_argument_parser() -> argparse.ArgumentParser:
    """Creates the command line argument parser. The program takes no arguments other than `--help`; all behaviour is
        driven by the configuration file."""

    return ArgumentParser(
        'mydumper-backup', description='Backs up a MySQL server with mydumper.',
        epilog=f'The configuration file is read from ${CONFIG_PATH_ENV_VAR} if set, otherwise from '
               f'{DEFAULT_CONFIG_PATH}.')


class ArgumentParser(argparse.ArgumentParser):
    """Custom `argparse.ArgumentParser` implementation so we can throw exceptions for invalid arguments instead of
        exiting the process."""

    def error(self, message: str) -> NoReturn:
        full_message = f'{self.prog}: error: {message}'     # Same as base ArgumentParser
        raise FatalArgumentError(full_message, self.format_usage())


# Process exit codes.
EXIT_CODE_SUCCESS = 0
EXIT_CODE_FAILURE = 1
EXIT_CODE_UNEXPECTED_FAILURE = 255
