"""
Execution result models.

Structured representation of one command execution.
Results are machine-readable and human-readable.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Exit status recorded when the failure was not a normal process exit
# (launch failure, timeout kill, signal). Never a real exit code.
SENTINEL_EXIT_STATUS = -17


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ExecutionOutcome(str, Enum):
    """
    Terminal outcome classification.

    SUCCESS: Process exited with code 0
    PROCESS_FAILURE: Process exited with a non-zero code
    LAUNCH_FAILURE: Process could not be started, hit its deadline,
                    or was killed by a signal
    """

    SUCCESS = "success"
    PROCESS_FAILURE = "process_failure"
    LAUNCH_FAILURE = "launch_failure"


class ExecutionResult(BaseModel):
    """
    Result of running one command.

    This model is the single source of truth for what happened to the
    subprocess. It does not know about job names or the status store.
    """

    model_config = ConfigDict(extra="forbid")

    command: List[str]
    """The argv that was executed."""

    outcome: ExecutionOutcome

    exit_status: int = 0
    """Real exit code, or SENTINEL_EXIT_STATUS for launch failures."""

    error: str = ""
    """Empty on success, otherwise a description of the failure."""

    output: str = ""
    """Combined stdout and stderr, including partial output on timeout."""

    timed_out: bool = False
    """Whether the process was killed because its deadline elapsed."""

    started_at: datetime = Field(default_factory=utc_now)
    completed_at: Optional[datetime] = None

    @property
    def success(self) -> bool:
        return self.outcome == ExecutionOutcome.SUCCESS

    def duration_seconds(self) -> Optional[float]:
        """Calculate execution duration in seconds."""
        if self.completed_at is None:
            return None
        return (self.completed_at - self.started_at).total_seconds()

    def summary(self) -> str:
        """Human-readable summary of the execution result."""
        duration = self.duration_seconds()
        duration_str = f" ({duration:.1f}s)" if duration is not None else ""
        cmd = " ".join(self.command)

        if self.outcome == ExecutionOutcome.SUCCESS:
            return f"SUCCESS{duration_str}: {cmd}"
        if self.outcome == ExecutionOutcome.PROCESS_FAILURE:
            return f"FAILED{duration_str}: {cmd} - {self.error}"
        return f"NOT RUN TO COMPLETION{duration_str}: {cmd} - {self.error}"
