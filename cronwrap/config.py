"""
Settings - the explicit configuration value for one cronwrap invocation.

Settings are resolved once at startup (environment, then CLI flags) and
passed to every component. Nothing reads configuration from module globals.

Environment:
- CRONWRAP_STATUS_DIR: status directory (default /var/lib/cronwrap)
- CRONWRAP_DEBUG: "true"/"1" enables verbose mode
- CRONWRAP_CAPTURE_ENV: "false"/"0" disables environment capture
"""

import math
import os
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Mapping, Optional

from cronwrap.errors import ConfigurationError


DEFAULT_STATUS_DIR = Path("/var/lib/cronwrap")

# Owner read/write, group read: lets a metrics agent in the group read records.
DEFAULT_FILE_MODE = 0o640

ENV_STATUS_DIR = "CRONWRAP_STATUS_DIR"
ENV_DEBUG = "CRONWRAP_DEBUG"
ENV_CAPTURE_ENV = "CRONWRAP_CAPTURE_ENV"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


def _env_flag(value: Optional[str], default: bool) -> bool:
    if value is None or not value.strip():
        return default
    lowered = value.strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean value: {value!r}")


@dataclass(frozen=True)
class Settings:
    """
    Process-wide configuration, fixed for the lifetime of one invocation.

    Attributes:
        status_dir: Directory holding one JSON status file per job
        debug: Verbose logging, and verbose inspect output
        capture_environment: Whether run records include the environment
    """

    status_dir: Path = DEFAULT_STATUS_DIR
    debug: bool = False
    capture_environment: bool = True

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from environment variables.

        Args:
            environ: Mapping to read from. Defaults to os.environ.

        Raises:
            ConfigurationError: If a boolean variable holds an unknown value
        """
        env = os.environ if environ is None else environ
        status_dir = env.get(ENV_STATUS_DIR) or str(DEFAULT_STATUS_DIR)
        return cls(
            status_dir=Path(status_dir),
            debug=_env_flag(env.get(ENV_DEBUG), False),
            capture_environment=_env_flag(env.get(ENV_CAPTURE_ENV), True),
        )

    def with_overrides(
        self,
        status_dir: Optional[Path] = None,
        debug: Optional[bool] = None,
        capture_environment: Optional[bool] = None,
    ) -> "Settings":
        """Return a copy with the given (non-None) values replaced."""
        changes = {}
        if status_dir is not None:
            changes["status_dir"] = Path(status_dir)
        if debug is not None:
            changes["debug"] = debug
        if capture_environment is not None:
            changes["capture_environment"] = capture_environment
        return replace(self, **changes)


def parse_file_mode(text: str) -> int:
    """
    Parse a permission string, guessing the base from its prefix.

    "0640" and "0o640" are octal, "0x1a0" is hex, "416" is decimal.
    Only the permission bits (0o777) are kept.

    Raises:
        ConfigurationError: If the string is not a number
    """
    raw = text.strip()
    try:
        lowered = raw.lower()
        if lowered.startswith(("0o", "0x", "0b")):
            value = int(raw, 0)
        elif len(raw) > 1 and raw.startswith("0"):
            value = int(raw, 8)
        else:
            value = int(raw, 10)
    except ValueError as e:
        raise ConfigurationError(f"Can't parse file mode {text!r}: {e}") from e
    if value < 0:
        raise ConfigurationError(f"Can't parse file mode {text!r}: negative")
    return value & 0o777


_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(text: str) -> float:
    """
    Parse a duration into seconds.

    Accepts bare seconds ("90", "0.5") and unit strings such as
    "100ms", "1.5s", "2h45m". "0" disables the timeout.

    Raises:
        ConfigurationError: If the string is not a valid duration
    """
    raw = text.strip()
    if not raw:
        raise ConfigurationError("Empty duration")
    try:
        seconds = float(raw)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            raise ConfigurationError(f"Invalid duration {text!r}")
        return seconds

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(raw):
        if match.start() != position:
            break
        total += float(match.group(1)) * _UNIT_SECONDS[match.group(2)]
        position = match.end()
    if position != len(raw) or position == 0:
        raise ConfigurationError(f"Invalid duration {text!r}")
    return total
