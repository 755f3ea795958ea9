"""
Audit Portal
Flask Application Factory.

Usage:
    from audit_portal import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate

from audit_portal.config import config
from audit_portal.models import db
from audit_portal.middleware.logging_config import configure_logging
from audit_portal.middleware.timing import init_request_timing
from audit_portal.middleware.rate_limiter import init_rate_limits
from audit_portal.middleware.jwt_auth import init_jwt_middleware
from audit_portal.services.task_dispatcher import dispatcher
from audit_portal.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# ── SQLite FK enforcement (global engine event) ─────────────────────────
from sqlalchemy import event as _sa_event, engine as _sa_engine


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
    default_limits=[],                     # no global limit; applied per blueprint
    storage_uri=os.getenv("REDIS_URL", "memory://"),  # Redis in production, memory for dev
)


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
    dispatcher.init_app(app)

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── JWT auth middleware (sets g.jwt_user_id / g.jwt_role) ────────────
    init_jwt_middleware(app)

    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    # ── Import all models so Alembic can detect them ─────────────────────
    from audit_portal.models import review as _review_models              # noqa: F401
    from audit_portal.models import review_history as _history_models     # noqa: F401
    from audit_portal.models import profile as _profile_models            # noqa: F401
    from audit_portal.models import notification as _notification_models  # noqa: F401
    from audit_portal.models import activity_log as _activity_models      # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ──
    with app.app_context():
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from audit_portal.blueprints.health_bp import health_bp
    from audit_portal.blueprints.review_bp import review_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(review_bp)

    # ── CLI commands ─────────────────────────────────────────────────────
    @app.cli.command("purge-item-reviews")
    @click.option("--item-type", required=True, help="Item type whose workflows are deleted, e.g. planning-procedure.")
    @click.option("--yes", is_flag=True, help="Skip the confirmation prompt.")
    def purge_item_reviews_cmd(item_type, yes):
        """Delete every review workflow of one item type (history is kept)."""
        from audit_portal.services.review_service import count_by_item_type, purge_item_type

        before = count_by_item_type(item_type)
        click.echo(f"Found {before} {item_type} review workflow(s).")
        if before == 0:
            return
        if not yes:
            click.confirm(f"Delete all {before} {item_type} review workflow(s)?", abort=True)
        deleted = purge_item_type(item_type)
        remaining = count_by_item_type(item_type)
        click.echo(f"Deleted {deleted}; {remaining} remaining.")

    @app.cli.command("issue-token")
    @click.option("--user-id", required=True, help="Subject (user id) of the token.")
    @click.option("--role", default=None, help="Role claim; omitted to resolve from the profile table.")
    @click.option("--expires-in", type=int, default=None, help="Lifetime in seconds.")
    def issue_token_cmd(user_id, role, expires_in):
        """Print a signed access token for local development."""
        from audit_portal.services.jwt_service import generate_access_token

        click.echo(generate_access_token(user_id, role=role, expires_in=expires_in))

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith("/api/"):
            return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})
        return {"error": "Not found"}, 404

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        if request.path.startswith("/api/"):
            return api_error(E.INTERNAL, "Internal server error")
        return "<h1>500 — Internal Server Error</h1><p>An unexpected error occurred.</p>", 500

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.METHOD_NOT_ALLOWED, "Method not allowed")

    @app.errorhandler(429)
    def rate_limited(e):
        return api_error(E.RATE_LIMITED, "Too many requests", details={"retryAfter": e.description})

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
