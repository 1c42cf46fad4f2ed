from datetime import datetime
from os import PathLike, utime
from pathlib import Path
from typing import Dict, Optional, Set, Tuple, Union

from mydumper_backup.config import BackupConfig


__all__ = [
    'AssertFilesystemUnmodified',
    'DEFAULT_VERSION_BANNER',
    'dir_entries',
    'install_fake_tools',
    'make_config',
    'write_config_file',
    'write_executable',
    'write_file_with_mtime',
    'write_snapshot'
]


DEFAULT_VERSION_BANNER = 'mydumper 0.10.0, built against MySQL 5.7.30'


class AssertFilesystemUnmodified:
    """Context object that asserts that the content of the specified paths is the same when exiting as when entering."""

    def __init__(self, *paths: PathLike) -> None:
        self.paths = tuple(map(Path, paths))

    def __enter__(self):
        self.states_before = tuple(map(self._filesystem_state, self.paths))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.states_after = tuple(map(self._filesystem_state, self.paths))
        assert self.states_after == self.states_before

    @staticmethod
    def _filesystem_state(path: Path) -> Optional[Dict[str, Tuple[str, Union[bytes, str, None], int]]]:
        """Captures the names, types, contents and modification times of everything under a path.
            Returns `None` if the path doesn't exist, to allow checking that a path is not created."""

        if not path.exists() and not path.is_symlink():
            return None
        entries = [path] + sorted(path.rglob('*')) if path.is_dir() else [path]
        state = {}
        for entry in entries:
            name = str(entry.relative_to(path))
            if entry.is_symlink():
                state[name] = ('link', str(entry.readlink()), 0)
            elif entry.is_dir():
                state[name] = ('dir', None, 0)
            else:
                state[name] = ('file', entry.read_bytes(), entry.stat().st_mtime_ns)
        return state


def dir_entries(path: Path, /) -> Set[str]:
    """Gets a set of the names of a directory's entries."""

    return set((e.name for e in path.iterdir()))


def write_file_with_mtime(file: Path, contents: str, m_a_time: datetime, encoding: Optional[str] = None) -> None:
    """Writes text to a file and sets the last modified and access times."""

    file.write_text(contents, encoding=encoding)
    timestamp = m_a_time.timestamp()
    utime(file, (timestamp, timestamp))


def write_snapshot(root: Path, name: str, created: datetime) -> Path:
    """Creates a complete snapshot directory, with a metadata file whose age is `created`."""

    path = root / name
    path.mkdir(parents=True)
    (path / 'db.table-schema.sql').write_text('CREATE TABLE t (id INT);')
    write_file_with_mtime(path / 'metadata', f'Started dump at: {created}\n', created)
    return path


def write_executable(path: Path, script: str) -> Path:
    """Writes a shell script and makes it executable."""

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text('#!/bin/sh\n' + script, encoding='utf8')
    path.chmod(0o755)
    return path


_FAKE_DUMP_TOOL = '''\
out=''
for arg in "$@"; do
    case "$arg" in
        --version) echo '@BANNER@'; exit 0 ;;
        --outputdir=*) out="${arg#--outputdir=}" ;;
    esac
done
echo "$@" > '@BIN@/mydumper.args'
mkdir -p "$out"
echo 'partial data' > "$out/db.table.00000.sql"
cat <<'OUTPUT'
@OUTPUT@
OUTPUT
if [ @WRITE_METADATA@ = yes ]; then
    echo 'Started dump' > "$out/metadata"
fi
exit @EXIT_CODE@
'''

_FAKE_CLIENT = '''\
echo "$@" > '@BIN@/mysql.args'
exit @EXIT_CODE@
'''


def install_fake_tools(bin_dir: Path, *, client: bool = True, dump_tool: bool = True,
                       version_banner: str = DEFAULT_VERSION_BANNER, client_exit_code: int = 0,
                       dump_exit_code: int = 0, dump_output: str = '** Message: Finished dump',
                       write_metadata: bool = True) -> Path:
    """Creates stand-ins for the database client and the dump tool in `bin_dir`.

        The fake dump tool creates the output directory with some data, prints `dump_output`, writes the metadata file if
        requested, then exits with `dump_exit_code`. Both fakes record their arguments in `<name>.args` files in
        `bin_dir`.
    """

    if client:
        script = _FAKE_CLIENT.replace('@BIN@', str(bin_dir)).replace('@EXIT_CODE@', str(client_exit_code))
        write_executable(bin_dir / 'mysql', script)
    if dump_tool:
        script = (_FAKE_DUMP_TOOL
                  .replace('@BANNER@', version_banner)
                  .replace('@BIN@', str(bin_dir))
                  .replace('@OUTPUT@', dump_output)
                  .replace('@WRITE_METADATA@', 'yes' if write_metadata else 'no')
                  .replace('@EXIT_CODE@', str(dump_exit_code)))
        write_executable(bin_dir / 'mydumper', script)
    return bin_dir


def make_config(base: Path, **overrides) -> BackupConfig:
    """Creates a configuration with all paths inside `base`."""

    values = dict(
        backup_root_dir=base / 'backups' / 'mydumper',
        log_dir=base / 'log',
        pre_dir=base / 'hooks' / 'pre.d',
        post_dir=base / 'hooks' / 'post.d',
        status_file=base / 'state' / 'status',
        mysql_user='backup',
        mysql_password='s3cret',
        mysql_socket='/run/mysqld/mysqld.sock',
        threads=2,
        keep=3
    )
    values.update(overrides)
    return BackupConfig(**values)


def write_config_file(path: Path, config: BackupConfig) -> Path:
    """Writes a configuration file equivalent to `config`."""

    def quote(value: str) -> str:
        return "'" + value.replace("'", "'\\''") + "'"

    lines = [
        f'enabled={"true" if config.enabled else "false"}',
        f'backup_root_dir={quote(str(config.backup_root_dir))}',
        f'backup_dir_format={quote(config.backup_dir_format)}',
        f'log_dir={quote(str(config.log_dir))}',
        f'pre_dir={quote(str(config.pre_dir))}',
        f'post_dir={quote(str(config.post_dir))}',
        f'compress={"yes" if config.compress else "no"}',
        f'keep={config.keep}',
        f'mysql_user={quote(config.mysql_user)}',
        f'mysql_password={quote(config.mysql_password)}',
        f'mysql_host={quote(config.mysql_host)}',
        f'mysql_socket={quote(config.mysql_socket)}',
        f'threads={config.threads}',
        f'mydumper_opts={quote(" ".join(config.mydumper_opts))}',
        f'mail_rcpts={quote(" ".join(config.mail_rcpts))}',
        f'mail_from={quote(config.mail_from)}',
        f'smtp_host={quote(config.smtp_host)}',
        f'status_file={quote(str(config.status_file))}'
    ]
    path.write_text('\n'.join(lines) + '\n', encoding='utf8')
    return path
