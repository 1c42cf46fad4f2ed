from email.message import EmailMessage
import os
from pathlib import Path
import smtplib
from typing import List

import pytest


@pytest.fixture
def tmpdir(tmpdir) -> Path:
    return Path(tmpdir)


@pytest.fixture
def bin_dir(tmpdir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Directory placed first on PATH, for fake external tools."""

    path = tmpdir / 'bin'
    path.mkdir()
    monkeypatch.setenv('PATH', f'{path}{os.pathsep}{os.environ.get("PATH", "")}')
    return path


@pytest.fixture
def smtp_outbox(monkeypatch: pytest.MonkeyPatch) -> List[EmailMessage]:
    """Replaces the SMTP client. Messages "sent" are collected in the returned list."""

    outbox: List[EmailMessage] = []

    class FakeSMTP:
        def __init__(self, host: str = '', port: int = 0) -> None:
            self.host = host

        def __enter__(self):
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            return False

        def send_message(self, message: EmailMessage) -> None:
            outbox.append(message)

    monkeypatch.setattr(smtplib, 'SMTP', FakeSMTP)
    return outbox
