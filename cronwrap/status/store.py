"""
Status Store - File-Backed JSON Store

Purpose: Persist the most recent status record of each job as one JSON file.
Operations: WRITE (replace), READ and LIST. NO history, NO deletes, NO locks.

GUARANTEES:
-----------
- A reader sees the previous record in full or the new record in full,
  never an empty, truncated or mixed file, even if the writer is killed
- Writes go to a unique temp file in the status directory (same volume),
  are fsynced, get explicit permissions, then os.replace() onto the
  final name
- Temp files never match "*.json" and are removed on every failure path
- Same-name writers race last-write-wins; different names never interfere

NOT PROVIDED:
-------------
- Serialisation of concurrent writers
- Creation of the status directory
- Retention or cleanup
"""

import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from cronwrap.config import DEFAULT_FILE_MODE
from cronwrap.errors import Corrupt, NotFound, PersistenceFailure

from .models import StatusRecord
from .naming import STATUS_SUFFIX, TEMP_SUFFIX, status_path, store_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoreEntry:
    """
    One persisted record found by StatusStore.list().

    name is only filled in when listing with names, and reflects the file
    at the moment it was read ("approximate": it may be replaced later).
    """

    key: str
    path: Path
    name: Optional[str] = None


def _fsync_directory(directory: Path) -> None:
    """Persist the rename itself. Skipped where directories cannot be opened."""
    if not hasattr(os, "O_DIRECTORY"):
        return
    fd = os.open(directory, os.O_RDONLY | os.O_DIRECTORY)
    try:
        os.fsync(fd)
    finally:
        os.close(fd)


class StatusStore:
    """
    Directory of status records, one JSON file per job name.

    File names come from the StoreKey policy (sha1 of the job name).
    Corrupt data is reported LOUDLY on read; callers decide whether to
    skip it or abort.
    """

    def __init__(self, status_dir: Path):
        """
        Initialize the status store.

        Args:
            status_dir: Directory holding the status files. Must already
                        exist for writes to succeed.
        """
        self.status_dir = Path(status_dir)

    def path_for(self, name: str) -> Path:
        """Final location of the record for a job name."""
        return status_path(self.status_dir, name)

    def write(self, record: StatusRecord, mode: int = DEFAULT_FILE_MODE) -> Path:
        """
        Atomically replace the record for record.name.

        Args:
            record: Record to persist
            mode: Permission bits set on the file, independent of umask

        Returns:
            Path of the persisted record

        Raises:
            PersistenceFailure: If the record could not be written
        """
        final_path = self.path_for(record.name)
        payload = record.to_json().encode("utf-8")

        tmp_name: Optional[str] = None
        try:
            fd, tmp_name = tempfile.mkstemp(
                prefix=f".{store_key(record.name)}.",
                suffix=TEMP_SUFFIX,
                dir=self.status_dir,
            )
            with os.fdopen(fd, "wb") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
                if hasattr(os, "fchmod"):
                    os.fchmod(f.fileno(), mode & 0o777)
                else:
                    os.chmod(tmp_name, mode & 0o777)
            os.replace(tmp_name, final_path)
            tmp_name = None
            _fsync_directory(self.status_dir)
        except OSError as e:
            raise PersistenceFailure(record.name, final_path, e) from e
        finally:
            if tmp_name is not None:
                try:
                    os.unlink(tmp_name)
                except FileNotFoundError:
                    pass

        logger.debug(f"[StatusStore] Wrote {final_path} for {record.name!r}")
        return final_path

    def read(self, name: str) -> StatusRecord:
        """
        Read the current record for a job name.

        Raises:
            NotFound: If no record exists yet
            Corrupt: If the record cannot be parsed
        """
        return self._read(self.path_for(name), identifier=name)

    def read_path(self, path: Path, identifier: Optional[str] = None) -> StatusRecord:
        """
        Read a record from an explicit file path.

        Args:
            path: Status file to read
            identifier: What the caller asked for, used in error messages.
                        Defaults to the path.

        Raises:
            NotFound: If the file does not exist
            Corrupt: If the file is not a valid record
        """
        path = Path(path)
        return self._read(path, identifier=identifier or str(path))

    def list(self, with_names: bool = False) -> List[StoreEntry]:
        """
        List all persisted records, sorted by key.

        Concurrent writers may add records between two calls, so two
        listings are not guaranteed to match.

        Args:
            with_names: Also read each file to report the job name it holds
                        (None when unreadable)
        """
        entries = []
        for path in sorted(self.status_dir.glob(f"*{STATUS_SUFFIX}")):
            if not path.is_file():
                continue
            key = path.name[: -len(STATUS_SUFFIX)]
            name = None
            if with_names:
                try:
                    name = self.read_path(path).name
                except (NotFound, Corrupt) as e:
                    logger.debug(f"[StatusStore] Could not read name from {path}: {e}")
            entries.append(StoreEntry(key=key, path=path, name=name))
        return entries

    def _read(self, path: Path, identifier: str) -> StatusRecord:
        try:
            data = path.read_bytes()
        except FileNotFoundError as e:
            raise NotFound(identifier, path) from e
        except OSError as e:
            raise Corrupt(identifier, path, str(e)) from e

        if not data.strip():
            raise Corrupt(identifier, path, "empty file")

        try:
            return StatusRecord.model_validate_json(data)
        except ValidationError as e:
            raise Corrupt(identifier, path, str(e)) from e
