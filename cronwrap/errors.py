"""
cronwrap error types.

Write side and read side fail differently:
- A failed job is DATA. It is recorded, never raised by the recorder.
- A failed write (PersistenceFailure) is reported next to the job outcome.
- A failed read (NotFound / Corrupt) is surfaced to reporters and inspectors,
  which decide whether to abort or skip.
"""

from pathlib import Path
from typing import Optional


class CronwrapError(Exception):
    """Base exception for all cronwrap failures."""

    pass


class ConfigurationError(CronwrapError):
    """Raised when an operator-supplied value (file mode, duration) is invalid."""

    pass


class JobExecutionFailure(CronwrapError):
    """
    The wrapped command exited non-zero, was killed, or could not be launched.

    The recorder never raises this; it is provided for callers that want to
    turn a failed ExecutionResult into an exception.
    """

    def __init__(self, name: str, error: str, exit_status: int):
        self.name = name
        self.error = error
        self.exit_status = exit_status
        super().__init__(f"Job {name!r} failed: {error}")


class PersistenceFailure(CronwrapError):
    """
    A status record could not be written.

    Raised for a missing or unwritable status directory, a full disk,
    or a failed rename.
    """

    def __init__(self, name: str, path: Path, cause: Exception):
        self.name = name
        self.path = path
        self.cause = cause
        super().__init__(f"Could not write status file {path} for {name!r}: {cause}")


class StatusReadError(CronwrapError):
    """Base exception for failures while reading a status record."""

    def __init__(self, message: str, identifier: str, path: Optional[Path] = None):
        self.identifier = identifier
        self.path = path
        super().__init__(message)


class NotFound(StatusReadError):
    """No status record exists yet for the requested job."""

    def __init__(self, identifier: str, path: Optional[Path] = None):
        super().__init__(f"No status recorded for {identifier!r} (looked in {path})", identifier, path)


class Corrupt(StatusReadError):
    """A status record exists but cannot be parsed."""

    def __init__(self, identifier: str, path: Optional[Path], reason: str):
        self.reason = reason
        super().__init__(f"Could not read status {path} for {identifier!r}: {reason}", identifier, path)
