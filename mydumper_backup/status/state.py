from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Dict, NoReturn, Optional

from ..utility import StrPath


__all__ = [
    'read_status_record',
    'Status',
    'StatusRecord',
    'StatusRecordParseError',
    'write_status_record'
]


class Status(Enum):
    """Outcome of a backup run."""

    OK = 'ok'
    WARNING = 'warning'
    """The dump completed, but something noteworthy was logged."""
    CRITICAL = 'critical'
    """The run was aborted; no new snapshot was produced."""

    @property
    def label(self) -> str:
        """Upper case name, for notification subjects."""

        return self.value.upper()


@dataclass(frozen=True)
class StatusRecord:
    """The persisted outcome of the most recent run."""

    status: Status
    description: str
    started_at: datetime
    """Local time at which the run started."""


_FIELDS = ('status', 'description', 'started_at')


def write_status_record(path: StrPath, value: StatusRecord, /) -> None:
    """Writes a status record to file as `key=value` lines, replacing any previous record.

        The new contents are written to a temporary file which then replaces the record, so readers never see a partial
        record.

        :except OSError: If the file could not be written to.
    """

    path = Path(path)
    # Monitoring parses this line by line, so values must not span lines.
    description = ' '.join(value.description.split())
    lines = (
        f'status={value.status.value}',
        f'description={description}',
        f'started_at={value.started_at.isoformat()}'
    )
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_path = path.with_name(path.name + '.tmp')
    with open(temp_path, 'w', encoding='utf8') as file:
        file.write('\n'.join(lines) + '\n')
    temp_path.replace(path)


def read_status_record(path: StrPath, /) -> StatusRecord:
    """Reads a status record from file.

        :except OSError: If the file could not be read.
        :except StatusRecordParseError: If the file is not a valid status record.
    """

    def parse_error(reason: str, e: Optional[Exception] = None, /) -> NoReturn:
        if e is None:
            raise StatusRecordParseError(str(path), reason)
        else:
            raise StatusRecordParseError(str(path), reason) from e

    with open(path, 'r', encoding='utf8') as file:
        lines = file.read().splitlines()

    values: Dict[str, str] = {}
    for line in lines:
        if not line:
            continue
        key, separator, value = line.partition('=')
        if not separator:
            parse_error(f'Expected "key=value", got "{line}"')
        values[key] = value

    if set(values.keys()) != set(_FIELDS):
        parse_error(f'Expected fields {set(_FIELDS)}')

    try:
        status = Status(values['status'])
    except ValueError as e:
        parse_error(f'Field "status" must be one of {[s.value for s in Status]}', e)

    try:
        started_at = datetime.fromisoformat(values['started_at'])
    except ValueError as e:
        parse_error('Field "started_at" must be an ISO-8601 date string', e)

    return StatusRecord(status, values['description'], started_at)


class StatusRecordParseError(Exception):
    """Raised when a status file cannot be parsed due to invalid format."""

    def __init__(self, file_path: str, reason: str) -> None:
        super().__init__(f'Failed to parse status file "{file_path}": {reason}')
        self.file_path = file_path
        self.reason = reason
