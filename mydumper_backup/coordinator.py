from datetime import datetime
import logging
from pathlib import Path
import smtplib
import socket
from typing import List, Optional, Sequence

from .config import BackupConfig
from .exception import CriticalError
from .hooks import HookCallbacks, run_hooks
from .probe import probe_environment
from .snapshot import compute_backup_path, compute_log_path, enforce_retention, METADATA_FILENAME, \
    prepare_directories, publish_latest, remove_backup_directory, RetentionCallbacks, Snapshot
from .status import read_log_text, send_notification, Status, StatusRecord, verify_log, write_status_record
from .tools import compose_dump_arguments, redact_arguments, run_tool, ToolResult
from .utility import attach_run_log, detach_run_log


__all__ = [
    'RunCoordinator'
]


logger = logging.getLogger(__name__)


class RunCoordinator:
    """Performs one backup run: checks the environment, runs the hooks and the dump tool, maintains the snapshot
        directory, then records and reports the outcome.

        Every run writes exactly one status record and attempts exactly one notification, whether it succeeds or fails.
    """

    def __init__(self, config: BackupConfig, /, now: Optional[datetime] = None, hostname: Optional[str] = None,
                 console: bool = True) -> None:
        """
            :param config: The effective configuration.
            :param now: The run's start time, from which the snapshot name is derived. Defaults to the current time.
            :param hostname: Name of this machine for notifications. Defaults to the system host name.
            :param console: If true, the run log is also echoed to stdout.
        """

        self.config = config
        self.started_at = now or datetime.now()
        self.hostname = hostname or socket.gethostname()
        self.backup_path: Path = compute_backup_path(
            config.backup_root_dir, config.backup_dir_format, self.started_at)
        self.log_path: Path = compute_log_path(config.log_dir, config.backup_dir_format, self.started_at)
        self._console = console
        self._reported = False

    def run(self) -> Status:
        """Executes the backup run.

            :return: `Status.OK` or `Status.WARNING`.
            :except CriticalError: If the run was aborted. The critical status has already been recorded and reported.
            :except Exception: Any unexpected error is also recorded and reported as critical, then re-raised.
        """

        handlers: List[logging.Handler] = []
        try:
            handlers = self._attach_run_log()
            return self._run_stages()
        except CriticalError as e:
            logger.error('Backup failed: %s', e.message)
            self._report(Status.CRITICAL, e.message)
            raise
        except Exception as e:
            logger.exception('Unexpected failure')
            self._report(Status.CRITICAL, f'Unexpected failure: {e!r}')
            raise
        finally:
            detach_run_log(handlers)

    def _attach_run_log(self) -> List[logging.Handler]:
        """Starts the run log.

            :except CriticalError: If the log file could not be created.
        """

        try:
            return attach_run_log(self.log_path, console=self._console)
        except OSError as e:
            raise CriticalError(f'Failed to create run log "{self.log_path}": {e}') from e

    def _run_stages(self) -> Status:
        logger.info('Starting backup to %s', self.backup_path)

        probe_results = probe_environment(self.config)
        self._prepare_directories()
        dump_arguments = compose_dump_arguments(self.config, self.backup_path, dump_tool=probe_results.dump_tool)

        self._run_hooks(self.config.pre_dir, 'pre')
        self._remove_stale_backup()
        self._dump(dump_arguments)
        self._publish_latest()
        self._run_hooks(self.config.post_dir, 'post')
        self._enforce_retention()

        return self._verify_and_report()

    def _prepare_directories(self) -> None:
        """Creates the directory scaffolding.

            :except CriticalError: If a directory could not be created.
        """

        try:
            prepare_directories(self.backup_path, self.config.log_dir, (self.config.pre_dir, self.config.post_dir))
        except OSError as e:
            raise CriticalError(f'Failed to create directories: {e}') from e

    @staticmethod
    def _run_hooks(directory: Path, phase: str, /) -> None:
        """Runs the hooks of one lifecycle point, logging each hook's output.

            :except CriticalError: If a hook failed.
        """

        def on_before_hook(path: Path) -> None:
            logger.info('Running %s hook %s', phase, path.name)

        def on_output_line(path: Path, line: str) -> None:
            logger.info('%s: %s', path.name, line)

        def on_after_hook(path: Path, result: ToolResult) -> None:
            logger.info('Hook %s exited with code %d', path.name, result.exit_code)

        callbacks = HookCallbacks(on_before_hook=on_before_hook, on_output_line=on_output_line,
                                  on_after_hook=on_after_hook)
        count = run_hooks(directory, phase, callbacks)
        logger.info('Ran %d %s hooks', count, phase)

    def _remove_stale_backup(self) -> None:
        """Deletes whatever an earlier run on the same date left at the backup path.

            :except CriticalError: If it could not be deleted.
        """

        try:
            removed = remove_backup_directory(self.backup_path)
        except OSError as e:
            raise CriticalError(f'Failed to remove stale backup directory "{self.backup_path}": {e}') from e
        if removed:
            logger.info('Removed stale backup directory %s', self.backup_path)

    def _dump(self, arguments: Sequence[str], /) -> None:
        """Runs the dump tool into the backup path. The tool's output is streamed into the run log.
            On failure, the partial output is deleted.

            :except CriticalError: If the dump tool failed or produced no metadata file.
        """

        logger.info('Running %s', ' '.join(redact_arguments(arguments)))
        try:
            result = run_tool(arguments, on_output_line=lambda line: logger.info('%s', line))
        except OSError as e:
            self._remove_partial_backup()
            raise CriticalError(f'Dump tool failed: could not run "{arguments[0]}": {e}') from e

        if not result.succeeded:
            self._remove_partial_backup()
            raise CriticalError(f'Dump tool failed with exit code {result.exit_code}')
        if not (self.backup_path / METADATA_FILENAME).is_file():
            self._remove_partial_backup()
            raise CriticalError(f'Dump tool failed: no {METADATA_FILENAME} file in "{self.backup_path}"')

        logger.info('Dump completed')

    def _remove_partial_backup(self) -> None:
        try:
            remove_backup_directory(self.backup_path)
        except OSError as e:
            logger.error('Failed to remove partial backup directory "%s": %s', self.backup_path, e)

    def _publish_latest(self) -> None:
        """Points the "latest" link at the new snapshot.

            :except CriticalError: If the link could not be replaced.
        """

        try:
            link_path = publish_latest(self.backup_path, self.config.backup_root_dir)
        except OSError as e:
            raise CriticalError(f'Failed to publish latest snapshot: {e}') from e
        logger.info('Updated %s', link_path)

    def _enforce_retention(self) -> None:
        """Deletes old snapshots. Problems are logged as warnings rather than failing the run, since the new snapshot is
            already complete."""

        def on_delete(snapshot: Snapshot) -> None:
            logger.info('Deleting old snapshot %s', snapshot.path)

        def on_delete_error(path: Path, e: OSError) -> None:
            logger.warning('Failed to delete "%s": %s', path, e)

        if self.config.keep == 0:
            logger.info('Retention disabled')
            return

        try:
            results = enforce_retention(self.config.backup_root_dir, self.config.keep,
                                        RetentionCallbacks(on_delete=on_delete, on_delete_error=on_delete_error))
        except OSError as e:
            logger.warning('Failed to enumerate snapshots: %s', e)
        else:
            logger.info('Retention: deleted %d, kept %d (limit %d)',
                        len(results.removed), results.remaining, self.config.keep)

    def _verify_and_report(self) -> Status:
        """Determines the final status from the run log, then records and reports it.

            :except OSError: If the run log could not be read.
        """

        status = verify_log(self.log_path)
        if status is Status.OK:
            description = f'Backup {self.backup_path} completed'
        else:
            description = f'Backup {self.backup_path} completed with warnings'
        logger.info('%s', description)
        self._report(status, description)
        return status

    def _report(self, status: Status, description: str, /) -> None:
        """Writes the status record and sends the notification, at most once per run.
            Both are best-effort: failures are logged and otherwise ignored."""

        if self._reported:
            return
        self._reported = True

        record = StatusRecord(status, description, self.started_at)
        try:
            write_status_record(self.config.status_file, record)
        except OSError as e:
            logger.error('Failed to write status file "%s": %s', self.config.status_file, e)

        try:
            log_text = read_log_text(self.log_path)
        except OSError as e:
            log_text = f'Run log "{self.log_path}" is unavailable: {e}'

        try:
            sent = send_notification(self.config, record, log_text, self.hostname)
        except (OSError, smtplib.SMTPException) as e:
            logger.error('Failed to send notification: %s', e)
        else:
            if sent:
                logger.info('Sent notification to %s', ', '.join(self.config.mail_rcpts))
