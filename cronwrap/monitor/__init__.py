"""
cronwrap Monitor - Read-Only Observability Layer

HTTP visibility into the status store. No job control.
"""

from .api import create_monitor_app, run_monitor_server

__all__ = ["create_monitor_app", "run_monitor_server"]
