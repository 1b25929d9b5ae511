"""
Human-readable inspection of individual status records.

An identifier is either a path to a status file or a job name. Existing
files win; anything else is looked up by job name.
"""

import json
import logging
import shlex
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from cronwrap.errors import StatusReadError
from cronwrap.status import StatusRecord, StatusStore

logger = logging.getLogger(__name__)


def _quote(value: Optional[str]) -> str:
    return json.dumps(value or "", ensure_ascii=False)


@dataclass(frozen=True)
class Inspection:
    """A record together with where it was found."""

    identifier: str
    path: Path
    record: StatusRecord


class Inspector:
    """
    Reads named records and renders them for operators.

    By default a missing or unparsable record aborts the inspection
    (the operator asked for it explicitly). With strict=False the failure
    is logged, kept in `failures`, and the next identifier is processed.
    """

    def __init__(self, store: StatusStore, verbose: bool = False, strict: bool = True):
        self.store = store
        self.verbose = verbose
        self.strict = strict
        self.failures: List[StatusReadError] = []

    def resolve(self, identifier: str) -> Path:
        """Path of the record an identifier refers to."""
        candidate = Path(identifier)
        try:
            if candidate.is_file():
                return candidate
        except (OSError, ValueError):
            # Not usable as a path (too long, NUL byte); treat it as a job name.
            pass
        return self.store.path_for(identifier)

    def lookup(self, identifiers: Iterable[str]) -> Iterator[Inspection]:
        """
        Yield the record for each identifier.

        Raises:
            NotFound, Corrupt: Only when strict
        """
        for identifier in identifiers:
            path = self.resolve(identifier)
            try:
                record = self.store.read_path(path, identifier=identifier)
            except StatusReadError as e:
                if self.strict:
                    raise
                logger.warning(f"[Inspect] {e}")
                self.failures.append(e)
                continue
            yield Inspection(identifier=identifier, path=path, record=record)

    def render(self, inspection: Inspection) -> str:
        """Render one record; verbose adds environment and output."""
        record = inspection.record
        cmdline = "[" + " ".join(shlex.quote(arg) for arg in record.command_line) + "]"
        text = (
            f"job={_quote(record.name)}"
            f" status_file={_quote(str(inspection.path))}"
            f" user_name={_quote(record.user_name)}"
            f" user_id={_quote(record.user_id)}"
            f" ran={record.last_run.isoformat()}"
            f" cmdline={_quote(cmdline)}"
            f" error={_quote(record.error)}"
            f" success={'true' if record.success else 'false'}"
            f" exit_status={record.exit_status}\n"
        )
        if self.verbose:
            text += "env:\n"
            for entry in record.environment or []:
                text += entry + "\n"
            text += "\noutput:\n" + record.output
        return text

    def inspect(self, identifiers: Iterable[str]) -> Iterator[str]:
        """Yield one rendered summary per readable identifier."""
        for inspection in self.lookup(identifiers):
            yield self.render(inspection)
