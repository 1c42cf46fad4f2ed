from pathlib import Path

import pytest

from mydumper_backup.exception import CriticalError
from mydumper_backup.probe import is_supported_version, probe_environment

from helpers import AssertFilesystemUnmodified, DEFAULT_VERSION_BANNER, install_fake_tools, make_config


def test_is_supported_version() -> None:
    assert is_supported_version('mydumper 0.9.5, built against MySQL 5.7.21')
    assert is_supported_version('mydumper 0.10.0, built against MySQL 5.7.30')
    assert is_supported_version('mydumper v0.16.1-1, built against MySQL 8.0.35 with SSL support')
    assert not is_supported_version('mydumper 0.6.2, built against MySQL 5.5.41')
    assert not is_supported_version('mydumper 1.0.0, built against MySQL 8.0.10')
    assert not is_supported_version('myloader 0.10.0, built against MySQL 5.7.30')
    assert not is_supported_version('')


def test_probe_environment_success(tmpdir: Path, bin_dir: Path) -> None:
    install_fake_tools(bin_dir)
    config = make_config(tmpdir)

    with AssertFilesystemUnmodified(config.backup_root_dir.parent):
        results = probe_environment(config)

    assert results.client_tool == str(bin_dir / 'mysql')
    assert results.dump_tool == str(bin_dir / 'mydumper')
    assert results.dump_tool_version == DEFAULT_VERSION_BANNER
    client_arguments = (bin_dir / 'mysql.args').read_text().split()
    assert client_arguments == ['--user=backup', '--password=s3cret', '--socket=/run/mysqld/mysqld.sock',
                                '--execute=SELECT', '1']


def test_probe_environment_misconfigured_root(tmpdir: Path, bin_dir: Path) -> None:
    install_fake_tools(bin_dir)
    config = make_config(tmpdir, backup_root_dir=tmpdir / 'home')

    with pytest.raises(CriticalError, match='Misconfigured root'):
        probe_environment(config)
    # Nothing else was checked.
    assert not (bin_dir / 'mysql.args').exists()


def test_probe_environment_client_missing(tmpdir: Path, bin_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    install_fake_tools(bin_dir, client=False)
    monkeypatch.setenv('PATH', str(bin_dir))

    with pytest.raises(CriticalError, match='Client missing'):
        probe_environment(make_config(tmpdir))


def test_probe_environment_dump_tool_missing(tmpdir: Path, bin_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    install_fake_tools(bin_dir, dump_tool=False)
    monkeypatch.setenv('PATH', str(bin_dir))

    with pytest.raises(CriticalError, match='Dump tool missing'):
        probe_environment(make_config(tmpdir))


def test_probe_environment_unsupported_version(tmpdir: Path, bin_dir: Path) -> None:
    install_fake_tools(bin_dir, version_banner='mydumper 0.6.2, built against MySQL 5.5.41')

    with pytest.raises(CriticalError, match='Unsupported dump tool version'):
        probe_environment(make_config(tmpdir))
    assert not (bin_dir / 'mysql.args').exists()


def test_probe_environment_bad_credentials(tmpdir: Path, bin_dir: Path) -> None:
    install_fake_tools(bin_dir, client_exit_code=1)

    with pytest.raises(CriticalError, match='Bad credentials or host'):
        probe_environment(make_config(tmpdir))
