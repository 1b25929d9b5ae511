"""
Best-effort enrichment of status records.

Who ran the job and with what environment. Any lookup that fails yields
None; enrichment never fails a run.
"""

import getpass
import logging
import os
from typing import List, Mapping, Optional, Tuple

try:
    import pwd
except ImportError:  # pragma: no cover - not available on Windows
    pwd = None

logger = logging.getLogger(__name__)


def current_identity() -> Tuple[Optional[str], Optional[str]]:
    """
    Return (user_name, user_id) of the current process.

    Both are None when the user cannot be determined (e.g. a uid
    with no passwd entry inside a container).
    """
    if pwd is not None and hasattr(os, "getuid"):
        uid = os.getuid()
        try:
            return pwd.getpwuid(uid).pw_name, str(uid)
        except KeyError:
            logger.debug(f"[Identity] No passwd entry for uid {uid}")
            return None, None

    try:
        return getpass.getuser(), None
    except (KeyError, OSError, ImportError) as e:
        logger.debug(f"[Identity] Could not determine user: {e}")
        return None, None


def environment_snapshot(environ: Optional[Mapping[str, str]] = None) -> List[str]:
    """Return the environment as an ordered list of KEY=VALUE strings."""
    env = os.environ if environ is None else environ
    return [f"{key}={value}" for key, value in env.items()]
