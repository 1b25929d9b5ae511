"""
InfluxDB line-protocol reporter.

Emits one line per status record, for telegraf's `execd` input plugin:

    cronwrap_cronjob,name=backup,status_file=/var/lib/cronwrap/<key>.json,user_name=root,uid=0 exit_status=0i,success=true 1700000000000000000

In polling mode the reporter re-scans the store each time the trigger
(telegraf writes a newline to stdin) yields, and stops when the trigger
is exhausted.

Unreadable records are skipped with a warning unless strict, in which case
the first one aborts the whole report.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional

from cronwrap.errors import Corrupt, NotFound
from cronwrap.status import StatusRecord, StatusStore

logger = logging.getLogger(__name__)


DEFAULT_MEASUREMENT = "cronwrap_cronjob"

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _escape(value: str, specials: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("\n", "\\n").replace("\r", "\\r")
    for char in specials:
        escaped = escaped.replace(char, "\\" + char)
    return escaped


def escape_measurement(value: str) -> str:
    return _escape(value, ", ")


def escape_tag(value: str) -> str:
    return _escape(value, ",= ")


def unix_nanoseconds(moment: datetime) -> int:
    """Exact nanoseconds since the epoch. Naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    delta = moment - _EPOCH
    return (delta.days * 86400 + delta.seconds) * 1_000_000_000 + delta.microseconds * 1000


class InfluxReporter:
    """
    Renders the status store as line-protocol metrics.

    Attributes:
        store: Store to scan
        measurement: Measurement name of every line
        strict: Abort on the first unreadable record instead of skipping it
    """

    def __init__(
        self,
        store: StatusStore,
        measurement: str = DEFAULT_MEASUREMENT,
        strict: bool = False,
    ):
        if not measurement:
            raise ValueError("measurement must not be empty")
        self.store = store
        self.measurement = measurement
        self.strict = strict

    def render(self, status_file: Path, record: StatusRecord) -> str:
        """Render one record as a single line (no trailing newline)."""
        tags = [
            ("name", record.name),
            ("status_file", str(status_file)),
            ("user_name", record.user_name or ""),
            ("uid", record.user_id or ""),
        ]
        tag_str = "".join(f",{key}={escape_tag(value)}" for key, value in tags if value)
        fields = f"exit_status={record.exit_status}i,success={'true' if record.success else 'false'}"
        return f"{escape_measurement(self.measurement)}{tag_str} {fields} {unix_nanoseconds(record.last_run)}"

    def scan(self) -> Iterator[str]:
        """
        Yield one line per record currently in the store.

        Raises:
            NotFound, Corrupt: Only when strict
        """
        for entry in self.store.list():
            try:
                record = self.store.read_path(entry.path)
            except NotFound:
                if self.strict:
                    raise
                logger.debug(f"[Influx] {entry.path} disappeared before it could be read")
                continue
            except Corrupt as e:
                if self.strict:
                    raise
                logger.warning(f"[Influx] Skipping unreadable status {entry.path}: {e.reason}")
                continue
            yield self.render(entry.path, record)

    def report(self, trigger: Optional[Iterable[object]] = None) -> Iterator[str]:
        """
        Yield metric lines: one scan, then one more scan per trigger item.

        Args:
            trigger: Poll signal source, e.g. stdin lines. None means a
                     single scan. The sequence ends when it is exhausted.
        """
        yield from self.scan()
        if trigger is None:
            return
        for _ in trigger:
            yield from self.scan()
