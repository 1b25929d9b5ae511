"""
Status record model.

One StatusRecord describes the most recent run of one job. It is written
as a single JSON object per file and replaced wholesale on the next run.

Readers ignore fields they do not know, so newer writers can add fields
without breaking older readers.
"""

import re
from datetime import datetime
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from cronwrap.execution.results import ExecutionResult


# Nanosecond timestamps (written by other tools) are trimmed to microseconds.
_LONG_FRACTION = re.compile(r"(\.\d{6})\d+")


class StatusRecord(BaseModel):
    """
    Durable outcome snapshot of a job's most recent run.

    Invariants:
    - success is True exactly when error is empty
    - a successful record has exit_status 0
    """

    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    """Job identity. Defaults to the space-joined command line."""

    last_run: datetime
    """Wall-clock time the run started."""

    command_line: List[str]
    """The argv that was executed."""

    user_name: Optional[str] = None
    user_id: Optional[str] = None
    """Best-effort identity of the invoking user. None if unavailable."""

    environment: Optional[List[str]] = None
    """Best-effort KEY=VALUE snapshot of the environment at run time."""

    output: str = ""
    """Combined stdout and stderr, untruncated."""

    error: str = ""
    """Empty on success, otherwise the failure description."""

    exit_status: int = 0
    """Process exit code, or the sentinel for non-exit failures."""

    success: bool

    @field_validator("last_run", mode="before")
    @classmethod
    def _trim_fraction(cls, value: Any) -> Any:
        if isinstance(value, str):
            return _LONG_FRACTION.sub(r"\1", value, count=1)
        return value

    @model_validator(mode="after")
    def _check_outcome(self) -> "StatusRecord":
        if self.success != (self.error == ""):
            raise ValueError(
                f"success={self.success} contradicts error={self.error!r}"
            )
        if self.success and self.exit_status != 0:
            raise ValueError(f"successful record has exit_status {self.exit_status}")
        return self

    @classmethod
    def from_execution(
        cls,
        name: str,
        result: ExecutionResult,
        user_name: Optional[str] = None,
        user_id: Optional[str] = None,
        environment: Optional[List[str]] = None,
    ) -> "StatusRecord":
        """Build the record for one finished execution."""
        return cls(
            name=name,
            last_run=result.started_at,
            command_line=list(result.command),
            user_name=user_name,
            user_id=user_id,
            environment=environment,
            output=result.output,
            error=result.error,
            exit_status=result.exit_status,
            success=result.success,
        )

    def to_json(self) -> str:
        """Serialize to the on-disk form: one JSON object and a newline."""
        return self.model_dump_json() + "\n"
