from dataclasses import dataclass
import os
from pathlib import Path
import re
import shlex
from typing import Callable, Dict, Mapping, NoReturn, Optional, Tuple

from .utility import StrPath


__all__ = [
    'BackupConfig',
    'CONFIG_PATH_ENV_VAR',
    'ConfigParseError',
    'DEFAULT_CONFIG_PATH',
    'get_config_path',
    'parse_backup_config',
    'read_backup_config'
]


CONFIG_PATH_ENV_VAR = 'MYDUMPER_BACKUP_CONFIG'
"""Environment variable which may override the location of the configuration file."""

DEFAULT_CONFIG_PATH = Path('/etc/mydumper-backup.conf')


@dataclass(frozen=True)
class BackupConfig:
    """The effective configuration of the backup tool. Constructed once at startup and passed to each component."""

    enabled: bool = True
    """If false, a run does nothing and succeeds."""

    backup_root_dir: Path = Path('/var/backups/mydumper')
    """Directory containing all snapshots and the "latest" pointer. Its name must be `ROOT_DIRECTORY_NAME`."""

    backup_dir_format: str = '%Y-%m-%d'
    """`strftime()` format of a snapshot's directory name, relative to `backup_root_dir`."""

    log_dir: Path = Path('/var/log/mydumper-backup')
    pre_dir: Path = Path('/etc/mydumper-backup/pre.d')
    post_dir: Path = Path('/etc/mydumper-backup/post.d')

    compress: bool = True

    keep: int = 7
    """Maximum number of snapshots to retain. 0 disables retention."""

    mysql_user: str = 'root'
    mysql_password: str = ''
    mysql_host: str = 'localhost'
    mysql_socket: str = ''

    threads: int = 4
    """Number of dump threads passed to the dump tool."""

    mydumper_opts: Tuple[str, ...] = ()
    """Extra arguments passed through to the dump tool verbatim."""

    mail_rcpts: Tuple[str, ...] = ()
    mail_from: str = 'root'
    smtp_host: str = 'localhost'

    status_file: Path = Path('/var/lib/mydumper-backup/status')
    """Where the status record of the most recent run is kept."""


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ('1', 'true', 'yes', 'on'):
        return True
    elif lowered in ('0', 'false', 'no', 'off', ''):
        return False
    else:
        raise ValueError(f'"{value}" is not a boolean')


def _parse_non_negative_int(value: str) -> int:
    number = int(value)
    if number < 0:
        raise ValueError(f'{number} is negative')
    return number


def _parse_positive_int(value: str) -> int:
    number = int(value)
    if number <= 0:
        raise ValueError(f'{number} is not positive')
    return number


def _parse_recipients(value: str) -> Tuple[str, ...]:
    return tuple(r for r in re.split(r'[\s,]+', value) if r)


_FIELD_PARSERS: Mapping[str, Callable[[str], object]] = {
    'enabled': _parse_bool,
    'backup_root_dir': Path,
    'backup_dir_format': str,
    'log_dir': Path,
    'pre_dir': Path,
    'post_dir': Path,
    'compress': _parse_bool,
    'keep': _parse_non_negative_int,
    'mysql_user': str,
    'mysql_password': str,
    'mysql_host': str,
    'mysql_socket': str,
    'threads': _parse_positive_int,
    'mydumper_opts': lambda value: tuple(shlex.split(value)),
    'mail_rcpts': _parse_recipients,
    'mail_from': str,
    'smtp_host': str,
    'status_file': Path
}
"""Maps each recognised configuration key to the function converting its textual value."""


def _strip_comment(line: str, /) -> str:
    """Removes a trailing comment from a line. As in the shell, a `#` only starts a comment at the beginning of an
        unquoted word, so values such as `pass#word` are kept intact."""

    quote = None
    escaped = False
    at_word_start = True
    for index, char in enumerate(line):
        if escaped:
            escaped = False
        elif quote is not None:
            if char == quote:
                quote = None
            elif char == '\\' and quote == '"':
                escaped = True
        elif char == '\\':
            escaped = True
        elif char in '\'"':
            quote = char
        elif char.isspace():
            at_word_start = True
            continue
        elif char == '#' and at_word_start:
            return line[:index]
        at_word_start = False
    return line


def parse_backup_config(text: str, /, source: str = '<string>') -> BackupConfig:
    """Parses configuration file contents.

        The format is shell-like: one `key=value` assignment per line, `#` starts a comment, values may be quoted.
        Keys which are not given take their default value.

        :param text: The configuration file contents.
        :param source: Name of the configuration source, used in error messages.
        :except ConfigParseError: If the text is not a valid configuration.
    """

    def parse_error(reason: str, e: Optional[Exception] = None, /) -> NoReturn:
        if e is None:
            raise ConfigParseError(source, reason)
        else:
            raise ConfigParseError(source, reason) from e

    values: Dict[str, object] = {}
    for line_number, line in enumerate(text.splitlines(), start=1):
        try:
            tokens = shlex.split(_strip_comment(line))
        except ValueError as e:
            parse_error(f'Line {line_number}: {e}', e)
        if not tokens:
            continue
        if len(tokens) != 1 or '=' not in tokens[0]:
            parse_error(f'Line {line_number}: expected "key=value"')

        key, _, value = tokens[0].partition('=')
        parser = _FIELD_PARSERS.get(key)
        if parser is None:
            parse_error(f'Line {line_number}: unknown key "{key}"')
        try:
            values[key] = parser(value)
        except ValueError as e:
            parse_error(f'Line {line_number}: invalid value for "{key}": {e}', e)

    return BackupConfig(**values)


def read_backup_config(path: StrPath, /) -> BackupConfig:
    """Reads the configuration file. A nonexistent file yields the default configuration.

        :except OSError: If the file exists but could not be read.
        :except ConfigParseError: If the file is not a valid configuration.
    """

    try:
        with open(path, 'r', encoding='utf8') as file:
            text = file.read()
    except FileNotFoundError:
        return BackupConfig()
    return parse_backup_config(text, source=str(path))


def get_config_path() -> Path:
    """Gets the location of the configuration file, honouring `CONFIG_PATH_ENV_VAR`."""

    return Path(os.environ.get(CONFIG_PATH_ENV_VAR) or DEFAULT_CONFIG_PATH)


class ConfigParseError(Exception):
    """Raised when a configuration file cannot be parsed due to invalid format or values."""

    def __init__(self, source: str, reason: str) -> None:
        super().__init__(f'Failed to parse configuration "{source}": {reason}')
        self.source = source
        self.reason = reason
