"""
Client Portal
Flask Application Factory.

Usage:
    from portal import create_app
    app = create_app()           # defaults to APP_ENV or "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event
from sqlalchemy.exc import SQLAlchemyError

from portal.config import config
from portal.core.exceptions import (
    ConflictError,
    ForbiddenError,
    NotAuthenticatedError,
    NotFoundError,
    ValidationError,
)
from portal.middleware.jwt_auth import init_jwt_middleware
from portal.middleware.logging_config import configure_logging
from portal.middleware.rate_limiter import init_rate_limits
from portal.middleware.security_headers import init_security_headers
from portal.middleware.timing import init_request_timing
from portal.models import db
from portal.utils.errors import E, api_error

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
    default_limits=[],                     # no global limit; applied per endpoint
    storage_uri=os.getenv("RATELIMIT_STORAGE_URI", "memory://"),
)


def _register_error_handlers(app):
    """Render service exceptions and HTTP errors as ``{"error", "code"}``."""

    @app.errorhandler(NotAuthenticatedError)
    def _not_authenticated(err):
        return api_error(E.NOT_AUTHENTICATED, err.message)

    @app.errorhandler(ForbiddenError)
    def _forbidden(err):
        logger.warning(
            "Forbidden: user=%s resource=%s id=%s path=%s",
            err.actor_id, err.resource, err.resource_id, request.path,
        )
        return api_error(E.FORBIDDEN, err.message)

    @app.errorhandler(NotFoundError)
    def _not_found(err):
        return api_error(E.NOT_FOUND, err.public_message)

    @app.errorhandler(ValidationError)
    def _validation(err):
        return api_error(E.VALIDATION_INVALID, err.message, details=err.details)

    @app.errorhandler(ConflictError)
    def _conflict(err):
        code = E.CONFLICT_STATE if err.field == "status" else E.CONFLICT_DUPLICATE
        return api_error(code, err.message)

    @app.errorhandler(SQLAlchemyError)
    def _database(err):
        db.session.rollback()
        logger.exception("Database error on %s %s", request.method, request.path)
        return api_error(E.DATABASE, "Database error")

    @app.errorhandler(404)
    def _http_not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def _method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(429)
    def _rate_limited(e):
        return api_error(
            E.VALIDATION_INVALID, "Too many requests", status=429,
            details={"retry_after": str(e.description)},
        )

    @app.errorhandler(500)
    def _server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")


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

    # ── Security headers / timing / session parsing ─────────────────────
    init_security_headers(app)
    init_request_timing(app)
    init_jwt_middleware(app)

    # ── Request guards (input length) ───────────────────────────────────
    app.config.setdefault("MAX_CONTENT_LENGTH", 2 * 1024 * 1024)  # 2 MB

    # ── Import all models so Alembic can detect them ─────────────────────
    from portal.models import audit as _audit_models                  # noqa: F401
    from portal.models import auth as _auth_models                    # noqa: F401
    from portal.models import company as _company_models              # noqa: F401
    from portal.models import digital_audit as _digital_audit_models  # noqa: F401
    from portal.models import project as _project_models              # noqa: F401

    # ── Auto-create tables (CREATE IF NOT EXISTS) ───────────────────────
    with app.app_context():
        if config_name == "development":
            os.makedirs(app.instance_path, exist_ok=True)
        try:
            db.create_all()
            app.logger.info("db.create_all() completed successfully")
        except SQLAlchemyError as e:
            app.logger.warning("db.create_all() failed: %s", e)

    # ── Blueprints ───────────────────────────────────────────────────────
    from portal.blueprints.access_request_bp import access_request_bp
    from portal.blueprints.activity_bp import activity_bp
    from portal.blueprints.audit_bp import audit_bp
    from portal.blueprints.auth_bp import auth_bp
    from portal.blueprints.company_bp import company_bp
    from portal.blueprints.health_bp import health_bp
    from portal.blueprints.project_bp import project_bp
    from portal.blueprints.user_bp import user_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(company_bp)
    app.register_blueprint(user_bp)
    app.register_blueprint(project_bp)
    app.register_blueprint(audit_bp)
    app.register_blueprint(access_request_bp)
    app.register_blueprint(activity_bp)
    app.register_blueprint(health_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    _register_error_handlers(app)

    # ── Rate limiting (after blueprints registered) ──────────────────────
    init_rate_limits(app, limiter)

    return app
