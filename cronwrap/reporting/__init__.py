"""
Read-side views of the status store.

- influx: line-protocol metrics for telegraf
- inspect: human-readable summaries for operators
"""

from .influx import DEFAULT_MEASUREMENT, InfluxReporter
from .inspect import Inspection, Inspector

__all__ = ["DEFAULT_MEASUREMENT", "InfluxReporter", "Inspection", "Inspector"]
