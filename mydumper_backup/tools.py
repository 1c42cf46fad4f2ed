from dataclasses import dataclass
from pathlib import Path
import subprocess
from typing import Callable, List, Optional, Sequence

from .config import BackupConfig


__all__ = [
    'CLIENT_TOOL_NAME',
    'DUMP_TOOL_NAME',
    'LOOPBACK_HOSTS',
    'compose_client_probe_arguments',
    'compose_credential_arguments',
    'compose_dump_arguments',
    'redact_arguments',
    'run_tool',
    'ToolResult'
]


CLIENT_TOOL_NAME = 'mysql'
"""Executable name of the database client."""

DUMP_TOOL_NAME = 'mydumper'
"""Executable name of the dump tool."""

LOOPBACK_HOSTS = frozenset(('localhost', '127.0.0.1', '::1'))
"""Host names for which a configured socket is preferred over a TCP connection."""

_PASSWORD_PREFIX = '--password='


@dataclass(frozen=True)
class ToolResult:
    """Outcome of running an external program to completion."""

    arguments: Sequence[str]
    exit_code: int
    output: str
    """Combined stdout and stderr of the program."""

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0


def run_tool(arguments: Sequence[str], /, on_output_line: Optional[Callable[[str], None]] = None) -> ToolResult:
    """Runs an external program, blocking until it exits. stdout and stderr are captured together.

        :param arguments: The program path followed by its arguments.
        :param on_output_line: If given, called with each line of output (without line terminator) as soon as the
            program writes it.
        :except OSError: If the program could not be started.
    """

    output_lines: List[str] = []
    with subprocess.Popen(list(arguments), stdin=subprocess.DEVNULL, stdout=subprocess.PIPE,
                          stderr=subprocess.STDOUT, encoding='utf8', errors='replace') as process:
        for line in process.stdout:
            output_lines.append(line)
            if on_output_line is not None:
                on_output_line(line.rstrip('\r\n'))
        exit_code = process.wait()
    return ToolResult(tuple(arguments), exit_code, ''.join(output_lines))


def compose_credential_arguments(config: BackupConfig, /) -> List[str]:
    """Creates the connection arguments shared by the database client and the dump tool.

        The user is always given. The password is given only if one is configured. For a loopback host, a configured
        socket is used instead of the host; otherwise the host is always given.
    """

    arguments = [f'--user={config.mysql_user}']
    if config.mysql_password:
        arguments.append(f'{_PASSWORD_PREFIX}{config.mysql_password}')
    if config.mysql_host in LOOPBACK_HOSTS and config.mysql_socket:
        arguments.append(f'--socket={config.mysql_socket}')
    else:
        arguments.append(f'--host={config.mysql_host}')
    return arguments


def compose_dump_arguments(config: BackupConfig, output_path: Path, /,
                           dump_tool: Optional[str] = None) -> List[str]:
    """Creates the full dump tool command line for backing up into `output_path`.

        :param dump_tool: Path of the dump tool executable. Defaults to `DUMP_TOOL_NAME`.
    """

    arguments = [
        dump_tool or DUMP_TOOL_NAME,
        '--less-locking',
        '--triggers',
        '--events',
        '--routines',
        f'--outputdir={output_path}',
        '--verbose=3',
        '--use-savepoints',
        f'--threads={config.threads}'
    ]
    if config.compress:
        arguments.append('--compress')
    arguments += compose_credential_arguments(config)
    arguments += config.mydumper_opts
    return arguments


def compose_client_probe_arguments(config: BackupConfig, /, client_tool: Optional[str] = None) -> List[str]:
    """Creates the database client command line which checks connectivity with a trivial read-only query."""

    return [client_tool or CLIENT_TOOL_NAME] + compose_credential_arguments(config) + ['--execute=SELECT 1']


def redact_arguments(arguments: Sequence[str], /) -> List[str]:
    """Replaces secret values in a command line so it can be logged."""

    return [f'{_PASSWORD_PREFIX}***' if a.startswith(_PASSWORD_PREFIX) else a for a in arguments]
