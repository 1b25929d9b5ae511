"""
Status persistence and query layer.

One JSON record per job name, replaced atomically on every run.
"""

from .models import StatusRecord
from .naming import status_path, store_key
from .store import StatusStore, StoreEntry

__all__ = ["StatusRecord", "StatusStore", "StoreEntry", "status_path", "store_key"]
