"""
Command executor.

Runs one external command via subprocess.Popen.

Design rules:
- One subprocess per call, stdin attached to the null device
- stdout and stderr share one pipe (combined, each stream in order)
- Optional deadline measured from process start
- Deadline exceeded = SIGKILL to the process group, partial output kept
- Non-zero exit code = PROCESS_FAILURE with the real code
- Could not start, timed out, or killed by a signal = LAUNCH_FAILURE
  with the sentinel exit status
- Never raises for job failures; never touches the status store
"""

import logging
import os
import signal
import subprocess
from typing import Optional, Sequence

from .results import (
    SENTINEL_EXIT_STATUS,
    ExecutionOutcome,
    ExecutionResult,
    utc_now,
)

logger = logging.getLogger(__name__)

# Children get their own process group so a timeout kill also reaches
# grandchildren that still hold the output pipe.
_USE_PROCESS_GROUP = os.name == "posix"


def _kill(process: subprocess.Popen) -> None:
    """Forcibly kill the process (and its group on POSIX)."""
    try:
        if _USE_PROCESS_GROUP:
            os.killpg(process.pid, signal.SIGKILL)
        else:
            process.kill()
    except (ProcessLookupError, PermissionError):
        pass  # Process already gone


def _signal_name(number: int) -> str:
    try:
        return signal.Signals(number).name
    except ValueError:
        return f"signal {number}"


def execute(command: Sequence[str], timeout: Optional[float] = None) -> ExecutionResult:
    """
    Run a command to completion or until its deadline.

    Args:
        command: Program and arguments. Must contain at least one token.
        timeout: Deadline in seconds. None or <= 0 means no deadline.

    Returns:
        ExecutionResult describing the outcome. Launch failures and
        timeouts are returned, not raised.

    Raises:
        ValueError: If command is empty
    """
    argv = [str(token) for token in command]
    if not argv:
        raise ValueError("command must contain at least one token")

    deadline = timeout if timeout is not None and timeout > 0 else None
    started_at = utc_now()
    logger.debug(f"[Executor] Executing: {argv} (timeout={deadline})")

    try:
        process = subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            start_new_session=_USE_PROCESS_GROUP,
        )
    except (OSError, ValueError) as e:
        logger.debug(f"[Executor] Could not start {argv[0]!r}: {e}")
        return ExecutionResult(
            command=argv,
            outcome=ExecutionOutcome.LAUNCH_FAILURE,
            exit_status=SENTINEL_EXIT_STATUS,
            error=str(e),
            started_at=started_at,
            completed_at=utc_now(),
        )

    logger.debug(f"[Executor] Started PID {process.pid}")

    timed_out = False
    try:
        raw_output, _ = process.communicate(timeout=deadline)
    except subprocess.TimeoutExpired:
        timed_out = True
        logger.debug(f"[Executor] PID {process.pid} exceeded {deadline}s, sending SIGKILL")
        _kill(process)
        # Retrying communicate() returns everything read so far plus the rest.
        raw_output, _ = process.communicate()
    except BaseException:
        _kill(process)
        process.wait()
        raise

    completed_at = utc_now()
    output = raw_output.decode("utf-8", errors="replace") if raw_output else ""
    returncode = process.returncode
    logger.debug(f"[Executor] PID {process.pid} exited with code {returncode}")

    if timed_out:
        return ExecutionResult(
            command=argv,
            outcome=ExecutionOutcome.LAUNCH_FAILURE,
            exit_status=SENTINEL_EXIT_STATUS,
            error=f"timed out after {deadline:g}s",
            output=output,
            timed_out=True,
            started_at=started_at,
            completed_at=completed_at,
        )

    if returncode == 0:
        return ExecutionResult(
            command=argv,
            outcome=ExecutionOutcome.SUCCESS,
            output=output,
            started_at=started_at,
            completed_at=completed_at,
        )

    if returncode < 0:
        return ExecutionResult(
            command=argv,
            outcome=ExecutionOutcome.LAUNCH_FAILURE,
            exit_status=SENTINEL_EXIT_STATUS,
            error=f"terminated by signal {_signal_name(-returncode)}",
            output=output,
            started_at=started_at,
            completed_at=completed_at,
        )

    return ExecutionResult(
        command=argv,
        outcome=ExecutionOutcome.PROCESS_FAILURE,
        exit_status=returncode,
        error=f"exit status {returncode}",
        output=output,
        started_at=started_at,
        completed_at=completed_at,
    )
