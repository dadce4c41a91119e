"""
Discipline Case Platform
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os
from datetime import date

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from app.config import config
from app.models import db
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.timing import init_request_timing

logger = logging.getLogger(__name__)


# ── SQLite FK enforcement (global engine event) ─────────────────────────


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)


def _register_cli(app):
    """Flask CLI commands for operators and cron."""

    @app.cli.command("sweep-rebuttal-deadlines")
    @click.option("--as-of", "as_of", default=None, help="Reference date (YYYY-MM-DD); defaults to today.")
    @click.option("--tenant-id", "tenant_id", type=int, default=None, help="Limit the sweep to one tenant.")
    def sweep_rebuttal_deadlines_cmd(as_of, tenant_id):
        """Expire rebuttal windows whose deadline passed."""
        from app.services.complaint_service import sweep_rebuttal_deadlines
        from app.utils.helpers import parse_date

        reference = parse_date(as_of) if as_of else date.today()
        if reference is None:
            raise click.BadParameter("must be YYYY-MM-DD", param_hint="--as-of")
        results = sweep_rebuttal_deadlines(reference, tenant_id=tenant_id)
        click.echo(f"Processed {len(results['processed'])} complaint(s), "
                   f"{len(results['errors'])} error(s) as of {results['as_of']}.")
        for item in results["errors"]:
            click.echo(f"  {item['complaint_number']}: {item['error']} {item['message']}")

    @app.cli.command("run-job")
    @click.argument("job_name")
    def run_job_cmd(job_name):
        """Run a registered scheduled job by name."""
        from app.services.scheduler_service import SchedulerService

        outcome = SchedulerService.run_job(job_name)
        click.echo(f"{job_name}: {outcome['status']}")
        if outcome.get("error"):
            raise click.ClickException(outcome["error"])

    @app.cli.command("toggle-job")
    @click.argument("job_name")
    @click.option("--enable/--disable", "enabled", default=True, help="Resume or pause the job.")
    def toggle_job_cmd(job_name, enabled):
        """Pause or resume a registered scheduled job."""
        from app.services.scheduler_service import SchedulerService

        record = SchedulerService.toggle_job(job_name, enabled)
        if record is None:
            raise click.ClickException(f"Unknown job: {job_name}")
        click.echo(f"{job_name}: {record['status']}")


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    # Instantiated so ProductionConfig can refuse to start without its env vars
    app.config.from_object(config[config_name]())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Import all models so Alembic can detect them ─────────────────────
    from app.models import tenant as _tenant_models            # noqa: F401
    from app.models import discipline as _discipline_models    # noqa: F401
    from app.models import audit as _audit_models              # noqa: F401
    from app.models import notification as _notification_models  # noqa: F401
    from app.models import scheduling as _scheduling_models    # noqa: F401

    # ── Auto-create tables for SQLite development databases ─────────────
    if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite"):
        os.makedirs(app.instance_path, exist_ok=True)
        with app.app_context():
            db.create_all()

    # ── Blueprints ───────────────────────────────────────────────────────
    from app.blueprints.complaints_bp import complaints_bp

    app.register_blueprint(complaints_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    _register_cli(app)

    # ── Health check ─────────────────────────────────────────────────────
    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "Discipline Case Platform"}

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    # ── Job registry (import jobs to register them) ──────────────────────
    import importlib
    importlib.import_module("app.services.scheduled_jobs")  # registers @register_job handlers
    from app.services.scheduler_service import SchedulerService as _SchedulerSvc
    _SchedulerSvc.init_app(app)

    return app
