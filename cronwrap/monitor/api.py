"""
cronwrap Monitor - Read-Only HTTP API

Exposes the status store via HTTP endpoints.
This API is STRICTLY READ-ONLY.

No POST, PUT, PATCH, or DELETE endpoints are provided.
No job control, scheduling, or retry capabilities exist.

Security Warning:
-----------------
Status records contain command lines, captured output and (optionally)
the environment of each run. By default this API binds to localhost
(127.0.0.1) only and never returns environments unless asked to.
Set CRONWRAP_MONITOR_LAN=true to bind to all interfaces; only do this on
trusted networks.
"""

import logging
import os
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import PlainTextResponse

from cronwrap import __version__
from cronwrap.config import Settings
from cronwrap.errors import Corrupt, NotFound
from cronwrap.reporting.influx import DEFAULT_MEASUREMENT, InfluxReporter
from cronwrap.status import StatusRecord, StatusStore, store_key

logger = logging.getLogger(__name__)

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9877

ENV_MONITOR_LAN = "CRONWRAP_MONITOR_LAN"


def _record_view(record: StatusRecord, status_file: str, verbose: bool) -> Dict[str, Any]:
    data = record.model_dump(mode="json")
    data["key"] = store_key(record.name)
    data["status_file"] = status_file
    if not verbose:
        data.pop("environment", None)
        data.pop("output", None)
    return data


def create_monitor_app(store: StatusStore) -> FastAPI:
    """
    Create the read-only monitoring API application.

    Args:
        store: Status store to read from

    Returns:
        FastAPI application with read-only endpoints
    """
    app = FastAPI(
        title="cronwrap Monitor API",
        description=(
            "Read-only view of the last run of every wrapped cron job.\n\n"
            "**This API provides visibility only. No job control is possible.**"
        ),
        version=__version__,
    )

    def _all_records(verbose: bool) -> Dict[str, Any]:
        jobs = []
        errors = []
        for entry in store.list():
            try:
                record = store.read_path(entry.path)
            except NotFound:
                continue
            except Corrupt as e:
                errors.append({"status_file": str(entry.path), "error": e.reason})
                continue
            jobs.append(_record_view(record, str(entry.path), verbose))
        return {"count": len(jobs), "jobs": jobs, "errors": errors}

    @app.get("/")
    async def root():
        """API root with status information."""
        return {
            "service": "cronwrap Monitor",
            "version": __version__,
            "mode": "read-only",
            "status_dir": str(store.status_dir),
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "ok", "mode": "read-only"}

    @app.get("/jobs")
    async def list_jobs(
        verbose: bool = Query(False, description="Include captured output and environment"),
    ):
        """List the last run of every job. Unreadable records are listed under `errors`."""
        return _all_records(verbose)

    @app.get("/jobs/failed")
    async def list_failed_jobs(
        verbose: bool = Query(False, description="Include captured output and environment"),
    ):
        """List jobs whose last run failed."""
        result = _all_records(verbose)
        failed = [job for job in result["jobs"] if not job["success"]]
        return {"count": len(failed), "jobs": failed, "errors": result["errors"]}

    @app.get("/metrics", response_class=PlainTextResponse)
    async def metrics(
        measurement: str = Query(DEFAULT_MEASUREMENT, min_length=1),
    ):
        """The same line-protocol output as `cronwrap influxdb`."""
        reporter = InfluxReporter(store, measurement=measurement)
        lines = list(reporter.scan())
        return "".join(line + "\n" for line in lines)

    @app.get("/jobs/{name:path}")
    async def get_job(
        name: str,
        verbose: bool = Query(False, description="Include the captured environment"),
    ):
        """Get the last run of one job, including its captured output."""
        try:
            record = store.read(name)
        except NotFound:
            raise HTTPException(status_code=404, detail=f"No status recorded for job: {name}")
        except Corrupt as e:
            raise HTTPException(status_code=500, detail=f"Unreadable status for job {name}: {e.reason}")

        data = _record_view(record, str(store.path_for(name)), verbose=True)
        if not verbose:
            data.pop("environment", None)
        return data

    return app


def get_bind_host() -> str:
    """
    Host to bind to: localhost unless CRONWRAP_MONITOR_LAN=true.
    """
    if os.environ.get(ENV_MONITOR_LAN, "false").lower() == "true":
        return "0.0.0.0"
    return DEFAULT_HOST


def run_monitor_server(
    settings: Settings,
    host: Optional[str] = None,
    port: int = DEFAULT_PORT,
) -> None:
    """
    Run the monitor API server until interrupted.

    Args:
        settings: Invocation settings (status directory)
        host: Host to bind to. Defaults based on CRONWRAP_MONITOR_LAN.
        port: Port to listen on.
    """
    import uvicorn

    host = host or get_bind_host()
    app = create_monitor_app(StatusStore(settings.status_dir))

    if host == "0.0.0.0":
        logger.warning("[Monitor] LAN exposure is enabled. Anyone on the network can view job output.")
    logger.info(f"[Monitor] Serving {settings.status_dir} on {host}:{port}")

    uvicorn.run(app, host=host, port=port, log_level="debug" if settings.debug else "warning")
