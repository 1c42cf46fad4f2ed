from email.message import EmailMessage
from pathlib import Path
import smtplib

from ..config import BackupConfig
from ..utility import StrPath
from .state import Status, StatusRecord


__all__ = [
    'build_notification',
    'read_log_text',
    'send_notification',
    'verify_log',
    'WARNING_MARKER'
]


WARNING_MARKER = 'WARNING'
"""Text which, when present anywhere in a run log, downgrades a successful run to a warning. Matches both the dump
    tool's own warnings and records logged at warning level."""


def read_log_text(log_path: StrPath, /) -> str:
    """Reads a run log. Undecodable bytes are replaced rather than raising.

        :except OSError: If the file could not be read.
    """

    return Path(log_path).read_text(encoding='utf8', errors='replace')


def verify_log(log_path: StrPath, /) -> Status:
    """Determines the status of a run whose dump succeeded, by scanning its log for `WARNING_MARKER`.

        :return: `Status.WARNING` if the marker is present, otherwise `Status.OK`.
        :except OSError: If the log could not be read.
    """

    if WARNING_MARKER in read_log_text(log_path):
        return Status.WARNING
    else:
        return Status.OK


def build_notification(config: BackupConfig, record: StatusRecord, log_text: str, hostname: str, /) -> EmailMessage:
    """Creates the notification mail for a run. The body is the run log transcript."""

    description = ' '.join(record.description.split())
    message = EmailMessage()
    message['Subject'] = f'[{hostname}] mydumper backup {record.status.label}: {description}'
    message['From'] = config.mail_from
    message['To'] = ', '.join(config.mail_rcpts)
    message.set_content(log_text)
    return message


def send_notification(config: BackupConfig, record: StatusRecord, log_text: str, hostname: str, /) -> bool:
    """Mails the outcome of a run to the configured recipients through `config.smtp_host`.

        :return: True if a message was sent, false if no recipients are configured.
        :except OSError: If the mail server could not be reached.
        :except smtplib.SMTPException: If the mail server rejected the message.
    """

    if not config.mail_rcpts:
        return False

    message = build_notification(config, record, log_text, hostname)
    with smtplib.SMTP(config.smtp_host) as smtp:
        smtp.send_message(message)
    return True
