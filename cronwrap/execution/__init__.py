"""
Execution harness for wrapped commands.

Runs one command under an optional deadline and classifies the outcome.
"""

from .executor import execute
from .results import (
    SENTINEL_EXIT_STATUS,
    ExecutionOutcome,
    ExecutionResult,
)

__all__ = [
    "execute",
    "ExecutionOutcome",
    "ExecutionResult",
    "SENTINEL_EXIT_STATUS",
]
