"""
StoreKey - deterministic mapping from job name to status file.

Policy: the key is the lower-case hex SHA-1 of the UTF-8 job name, and the
status file is "<key>.json" directly under the status directory.

- Any job name is supported (slashes, spaces, newlines, non-ASCII)
- The same name always maps to the same file
- Distinct names do not collide in practice
- Files are not human-browsable; use `cronwrap inspect` or `cronwrap list`

Raw-name file names are NOT supported.
"""

import hashlib
from pathlib import Path


STATUS_SUFFIX = ".json"
TEMP_SUFFIX = ".tmp"


def store_key(name: str) -> str:
    """Return the storage key for a job name."""
    return hashlib.sha1(name.encode("utf-8")).hexdigest()


def status_file_name(name: str) -> str:
    return store_key(name) + STATUS_SUFFIX


def status_path(status_dir: Path, name: str) -> Path:
    """Return the final location of a job's status record."""
    return Path(status_dir) / status_file_name(name)
