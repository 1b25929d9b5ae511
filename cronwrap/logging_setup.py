"""
Process-wide logging configuration.

Log output goes to stderr. stdout is reserved for report and inspect
output, which other programs (telegraf, shell pipelines) consume.

Without --debug only warnings and errors are logged: cron mails any
output, so a successful run must stay silent.
"""

import logging
import sys
from typing import Optional, TextIO


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def configure_logging(debug: bool = False, stream: Optional[TextIO] = None) -> None:
    """
    Configure the root logger once per invocation.

    Args:
        debug: Log at DEBUG instead of WARNING
        stream: Destination stream (defaults to stderr)
    """
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT,
        stream=stream or sys.stderr,
        force=True,
    )
