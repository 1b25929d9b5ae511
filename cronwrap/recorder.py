"""
Recorder - the "run" operation.

Runs one job, then ALWAYS persists its outcome, success or failure.
Recording failures is the reason this tool exists.

Two failures are reported independently:
- the job failed (non-zero exit, timeout, could not launch)
- the status record could not be written

Neither raises. The caller gets a RunResult and decides what to do; the
CLI lets the job's failure dominate its exit code.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from cronwrap.config import DEFAULT_FILE_MODE, Settings
from cronwrap.errors import JobExecutionFailure, PersistenceFailure
from cronwrap.execution import ExecutionResult, execute
from cronwrap.status import StatusRecord, StatusStore
from cronwrap.status.identity import current_identity, environment_snapshot

logger = logging.getLogger(__name__)


EXIT_SUCCESS = 0
EXIT_JOB_FAILED = 1
EXIT_NOT_RECORDED = 3


@dataclass
class RunResult:
    """
    Outcome of one recorded run.

    Attributes:
        name: Effective job name
        execution: What happened to the command
        record: The record that was (or should have been) persisted
        status_path: Where the record was written, None if it was not
        persistence_error: Why the record could not be written, if it wasn't
    """

    name: str
    execution: ExecutionResult
    record: StatusRecord
    status_path: Optional[Path] = None
    persistence_error: Optional[PersistenceFailure] = None

    @property
    def job_failed(self) -> bool:
        return not self.execution.success

    @property
    def persisted(self) -> bool:
        return self.persistence_error is None and self.status_path is not None

    def exit_code(self) -> int:
        """
        Exit code for a CLI caller.

        The job's own failure dominates: a failed job exits 1 whether or not
        it was recorded. A successful job that could not be recorded exits 3.
        """
        if self.job_failed:
            return EXIT_JOB_FAILED
        if self.persistence_error is not None:
            return EXIT_NOT_RECORDED
        return EXIT_SUCCESS

    def raise_for_job_failure(self) -> None:
        """Raise JobExecutionFailure if the job failed."""
        if self.job_failed:
            raise JobExecutionFailure(self.name, self.execution.error, self.execution.exit_status)


def resolve_name(command: Sequence[str], name: Optional[str] = None) -> str:
    """
    Effective job name: the explicit name, else the space-joined command.

    Raises:
        ValueError: If the resulting name is empty
    """
    effective = name if name else " ".join(command)
    if not effective:
        raise ValueError("job name must not be empty")
    return effective


def run(
    settings: Settings,
    command: Sequence[str],
    name: Optional[str] = None,
    timeout: Optional[float] = None,
    mode: int = DEFAULT_FILE_MODE,
    store: Optional[StatusStore] = None,
) -> RunResult:
    """
    Run a job and record its outcome.

    Args:
        settings: Invocation settings (status directory, enrichment)
        command: Program and arguments, at least one token
        name: Job name. Defaults to the space-joined command line.
        timeout: Deadline in seconds. None or <= 0 means no deadline.
        mode: Permission bits for the status file
        store: Store to write to. Defaults to one on settings.status_dir.

    Returns:
        RunResult carrying the job outcome and the persistence outcome

    Raises:
        ValueError: If command is empty or the job name resolves to ""
    """
    argv = list(command)
    if not argv:
        raise ValueError("command must contain at least one token")
    job_name = resolve_name(argv, name)
    store = store or StatusStore(settings.status_dir)

    result = execute(argv, timeout=timeout)
    if not result.success:
        logger.error(
            f"[Recorder] Cronjob {job_name!r} ({argv}) failed: {result.error}.\n"
            f"Output follows:\n\n{result.output}"
        )
    else:
        logger.debug(f"[Recorder] {result.summary()}")

    user_name, user_id = current_identity()
    environment = environment_snapshot() if settings.capture_environment else None
    record = StatusRecord.from_execution(
        job_name,
        result,
        user_name=user_name,
        user_id=user_id,
        environment=environment,
    )

    try:
        path = store.write(record, mode=mode)
    except PersistenceFailure as e:
        logger.error(f"[Recorder] Could not write status file for {job_name!r}: {e}")
        return RunResult(name=job_name, execution=result, record=record, persistence_error=e)

    return RunResult(name=job_name, execution=result, record=record, status_path=path)
