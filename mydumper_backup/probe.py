from dataclasses import dataclass
import logging
import shutil

from .config import BackupConfig
from .exception import CriticalError
from .snapshot import ROOT_DIRECTORY_NAME
from .tools import CLIENT_TOOL_NAME, compose_client_probe_arguments, DUMP_TOOL_NAME, run_tool
from .utility import path_name_equal


__all__ = [
    'is_supported_version',
    'probe_environment',
    'ProbeResults',
    'SUPPORTED_DUMP_TOOL_VERSIONS'
]


logger = logging.getLogger(__name__)


SUPPORTED_DUMP_TOOL_VERSIONS = ('0.9', '0.10', '0.11', '0.12', '0.13', '0.14', '0.15', '0.16')
"""Major versions of the dump tool that the generated command line is known to work with."""


@dataclass(frozen=True)
class ProbeResults:
    """What was discovered about the environment by `probe_environment()`."""

    client_tool: str
    """Resolved path of the database client."""

    dump_tool: str
    """Resolved path of the dump tool."""

    dump_tool_version: str
    """First line of the dump tool's version banner."""


def is_supported_version(banner: str, /) -> bool:
    """Checks if a dump tool version banner (e.g. "mydumper 0.10.0, built against MySQL 5.7.30") names one of
        `SUPPORTED_DUMP_TOOL_VERSIONS`."""

    for version in SUPPORTED_DUMP_TOOL_VERSIONS:
        if f'{DUMP_TOOL_NAME} {version}.' in banner or f'{DUMP_TOOL_NAME} v{version}.' in banner:
            return True
    return False


def probe_environment(config: BackupConfig, /) -> ProbeResults:
    """Checks that a backup can be attempted at all. Checks are done in a fixed order and the first failure aborts.

        :return: The located tools.
        :except CriticalError: If any precondition is not met.
    """

    root_name = config.backup_root_dir.name
    if not path_name_equal(root_name, ROOT_DIRECTORY_NAME):
        raise CriticalError(f'Misconfigured root: backup root directory "{config.backup_root_dir}" must be named '
                            f'"{ROOT_DIRECTORY_NAME}"')

    client_tool = shutil.which(CLIENT_TOOL_NAME)
    if client_tool is None:
        raise CriticalError(f'Client missing: "{CLIENT_TOOL_NAME}" not found on PATH')

    dump_tool = shutil.which(DUMP_TOOL_NAME)
    if dump_tool is None:
        raise CriticalError(f'Dump tool missing: "{DUMP_TOOL_NAME}" not found on PATH')

    try:
        version_result = run_tool([dump_tool, '--version'])
    except OSError as e:
        raise CriticalError(f'Dump tool missing: failed to run "{dump_tool}": {e}') from e
    banner = version_result.output.strip()
    if not version_result.succeeded or not is_supported_version(banner):
        raise CriticalError(f'Unsupported dump tool version: "{banner}"')
    version = banner.splitlines()[0]
    logger.info('Using %s (%s)', dump_tool, version)

    try:
        connect_result = run_tool(compose_client_probe_arguments(config, client_tool=client_tool))
    except OSError as e:
        raise CriticalError(f'Bad credentials or host: failed to run "{client_tool}": {e}') from e
    if not connect_result.succeeded:
        for line in connect_result.output.splitlines():
            logger.info('%s: %s', CLIENT_TOOL_NAME, line)
        raise CriticalError(f'Bad credentials or host: connectivity check exited with code {connect_result.exit_code}')

    return ProbeResults(client_tool, dump_tool, version)
