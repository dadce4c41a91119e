"""
Discipline Case Platform
Scheduler Service — named job registry.

The application runs no timers of its own. An external trigger (cron via
``flask run-job``, the sweep CLI command, or an HTTP call) asks the
registry to run a job by name; each execution is recorded on its
ScheduledJob row.

Architecture:
    - register_job: decorator that adds a job function to the registry
    - SchedulerService: persists registry rows and runs jobs in app context
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from flask import Flask

from app.models import db
from app.models.scheduling import ScheduledJob

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Job Registry
# ═══════════════════════════════════════════════════════════════════════════

_job_registry: dict[str, Callable] = {}


def register_job(name: str):
    """Decorator to register a job function.

    Usage:
        @register_job("rebuttal_deadline_sweep")
        def sweep(app):
            ...
    """
    def decorator(fn: Callable) -> Callable:
        _job_registry[name] = fn
        return fn
    return decorator


def get_registered_jobs() -> dict[str, Callable]:
    """Return all registered job functions."""
    return dict(_job_registry)


class SchedulerService:
    """
    Job registry service.

    Jobs are executed within Flask app context; failures are recorded on
    the job row and returned to the caller.
    """

    _app: Flask | None = None

    @classmethod
    def init_app(cls, app: Flask) -> None:
        """Bind the registry to the Flask app."""
        cls._app = app
        app.extensions["scheduler"] = cls
        logger.info("SchedulerService initialized with %d registered jobs",
                    len(_job_registry))

    @classmethod
    def ensure_jobs_registered(cls) -> list[ScheduledJob]:
        """Create a ScheduledJob row for every registered job that lacks one."""
        created = []
        for name, fn in _job_registry.items():
            if ScheduledJob.query.filter_by(job_name=name).first():
                continue
            job = ScheduledJob(
                job_name=name,
                description=(fn.__doc__ or f"Scheduled job: {name}").strip().splitlines()[0],
                schedule_config=_get_default_schedule(name),
                status="active",
                is_enabled=True,
            )
            db.session.add(job)
            created.append(job)
        if created:
            db.session.commit()
            logger.info("Created %d scheduled job records", len(created))
        return created

    @classmethod
    def run_job(cls, job_name: str) -> dict:
        """
        Execute a single job by name.

        Returns:
            Dict with job_name, status, duration_ms, result and error.
        """
        fn = _job_registry.get(job_name)
        if not fn:
            return {"job_name": job_name, "status": "error", "error": f"Unknown job: {job_name}"}
        if not cls._app:
            return {"job_name": job_name, "status": "error", "error": "Scheduler not initialized"}

        cls.ensure_jobs_registered()
        job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
        if not job_record.is_enabled:
            logger.info("Job %s is paused; skipping", job_name)
            return {"job_name": job_name, "status": "skipped", "duration_ms": 0,
                    "result": None, "error": None}

        start = time.monotonic()
        result = None
        error = None
        status = "success"
        try:
            result = fn(cls._app)
        except Exception as exc:
            db.session.rollback()
            status = "failed"
            error = str(exc)
            logger.exception("Job %s failed: %s", job_name, exc)
        duration_ms = int((time.monotonic() - start) * 1000)

        job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
        job_record.record_run(
            status=status,
            duration_ms=duration_ms,
            result=result if isinstance(result, dict) else {"output": str(result)},
            error=error,
        )
        db.session.commit()

        return {
            "job_name": job_name,
            "status": status,
            "duration_ms": duration_ms,
            "result": result,
            "error": error,
        }

    @classmethod
    def toggle_job(cls, job_name: str, enabled: bool) -> dict | None:
        """Pause or resume a registered job; None when the job is unknown."""
        if job_name not in _job_registry:
            return None
        cls.ensure_jobs_registered()
        job_record = ScheduledJob.query.filter_by(job_name=job_name).first()
        job_record.is_enabled = enabled
        job_record.status = "active" if enabled else "paused"
        db.session.commit()
        logger.info("Job %s %s", job_name, "resumed" if enabled else "paused")
        return job_record.to_dict()

    @classmethod
    def list_jobs(cls) -> list[dict]:
        """List all registered jobs with their DB status."""
        jobs = []
        for name in _job_registry:
            job_record = ScheduledJob.query.filter_by(job_name=name).first()
            jobs.append({
                "job_name": name,
                "registered": True,
                "db_record": job_record.to_dict() if job_record else None,
            })
        return jobs


def _get_default_schedule(job_name: str) -> dict:
    """Return the suggested cron fields for known jobs."""
    defaults = {
        "rebuttal_deadline_sweep": {"hour": "0", "minute": "15",
                                    "description": "Daily at 00:15"},
    }
    return defaults.get(job_name, {"hour": "0", "minute": "0",
                                   "description": "Daily at midnight"})
