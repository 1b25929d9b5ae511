"""
cronwrap - wraps a cron job and records its last outcome.

cronwrap runs a command, captures its output and exit status, and stores
the result of the most recent run in a status directory, one JSON file per
job. Monitoring agents and operators read those files later.

Constraints:
- Failures are recorded, never swallowed
- Records are replaced atomically; readers never see partial files
- No scheduling
- No retries
- No history beyond the last run
"""

__version__ = "1.0.0"
