"""Flask application factory for the citizen complaint intake service."""
import os
import sqlite3
from typing import Optional

from dotenv import load_dotenv
from flask import Flask, jsonify, request
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.exc import OperationalError

from extensions import db, migrate
from utils.audit import AuditSink
from utils.complaint_service import ComplaintService
from utils.complaint_store import ENTITY_MATCH_MODES, ComplaintStore
from utils.logger import init_logging
from utils.rate_limiter import RateLimiter
from utils.security import apply_security_headers, generate_error_id, is_blocked_user_agent, user_agent
from utils.validation import ValidationRules


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores FOREIGN KEY / ON DELETE CASCADE unless asked per connection.
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def _error_body(message: str, **extra) -> dict:
    return {"success": False, "message": message, **extra}


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(404)
    def not_found_error(error):
        app.logger.warning("404 Not Found", extra={"request_path": request.path, "method": request.method})
        return jsonify(_error_body("Endpoint not found", path=request.path)), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify(_error_body("Method not allowed")), 405

    @app.errorhandler(413)
    def payload_too_large(error):
        return jsonify(_error_body("Request body too large")), 413

    @app.errorhandler(500)
    def internal_error(error):
        error_id = generate_error_id()
        app.logger.exception(
            "500 Internal Server Error",
            extra={"error_id": error_id, "request_path": request.path, "method": request.method},
        )
        return jsonify(_error_body("Internal server error", error_id=error_id)), 500


def ensure_database_exists(database_uri: str) -> None:
    """Create the target database if it does not exist (PostgreSQL + SQLite support)."""
    url = make_url(database_uri)

    if url.drivername.startswith("sqlite"):
        # For SQLite just make sure the parent directory exists.
        if url.database and url.database != ":memory:":
            os.makedirs(os.path.dirname(url.database) or ".", exist_ok=True)
        return

    if url.drivername.startswith("postgres"):
        db_name = url.database
        admin_url = url.set(database=os.getenv("POSTGRES_DB_ADMIN", "postgres"))
        engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")
        try:
            with engine.connect() as conn:
                exists = conn.execute(
                    text("SELECT 1 FROM pg_database WHERE datname = :name"), {"name": db_name}
                ).scalar()
                if not exists:
                    conn.execute(text(f'CREATE DATABASE "{db_name}"'))
        except OperationalError:
            # If we cannot connect/create, let the normal app startup fail loudly later.
            pass
        finally:
            engine.dispose()


def build_components(app: Flask) -> None:
    """Construct the per-process limiters, audit sink and complaint service."""
    entity_match = app.config.get("ENTITY_NAME_MATCH", "substring")
    if entity_match not in ENTITY_MATCH_MODES:
        raise ValueError(
            f"ENTITY_NAME_MATCH must be one of {', '.join(ENTITY_MATCH_MODES)}; got {entity_match!r}"
        )
    window = app.config["RATE_LIMIT_WINDOW_SECONDS"]
    api_limiter = RateLimiter(app.config["RATE_LIMIT_API_MAX"], window, name="api")
    complaint_limiter = RateLimiter(app.config["RATE_LIMIT_COMPLAINTS_MAX"], window, name="complaints")
    audit = AuditSink(app.config, logger=app.logger)
    service = ComplaintService(
        ComplaintStore(),
        limiter=complaint_limiter,
        audit=audit,
        rules=ValidationRules.from_config(app.config),
        entity_match=entity_match,
        logger=app.logger,
    )
    app.extensions["api_rate_limiter"] = api_limiter
    app.extensions["complaint_rate_limiter"] = complaint_limiter
    app.extensions["audit_sink"] = audit
    app.extensions["complaint_service"] = service


def create_app(config_name: Optional[str] = None, overrides: Optional[dict] = None) -> Flask:
    """Application factory with environment-aware configuration."""
    load_dotenv()

    app = Flask(__name__, instance_relative_config=True)

    # Resolve configuration
    from config import DevelopmentConfig, ProductionConfig, TestingConfig

    config_key = (config_name or os.getenv("FLASK_CONFIG") or os.getenv("FLASK_ENV") or "production").lower()
    config_map = {
        "development": DevelopmentConfig,
        "dev": DevelopmentConfig,
        "production": ProductionConfig,
        "prod": ProductionConfig,
        "testing": TestingConfig,
        "test": TestingConfig,
    }
    config_class = config_map.get(config_key, ProductionConfig)
    app.config.from_object(config_class())
    if overrides:
        app.config.update(overrides)

    ensure_database_exists(app.config["SQLALCHEMY_DATABASE_URI"])

    # Optional instance-specific overrides
    if not app.config.get("TESTING"):
        app.config.from_pyfile("config.py", silent=True)
        os.makedirs(app.instance_path, exist_ok=True)

    # Initialize logging early
    logger = init_logging(app)
    app.logger = logger

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    build_components(app)

    from routes import api_bp

    app.register_blueprint(api_bp)

    @app.route("/health", methods=["GET"])
    def liveness():
        """Process liveness for load balancers; does not touch the database."""
        return jsonify({"status": "healthy", "environment": app.config.get("ENV")})

    @app.cli.command("seed-entities")
    def seed_entities_command():
        """Insert the default entity directory when it is empty."""
        inserted = app.extensions["complaint_service"].store.seed_entities()
        app.logger.info("Entity seeding finished", extra={"inserted": inserted})

    # Error handlers
    register_error_handlers(app)

    # Request lifecycle hooks
    @app.before_request
    def _block_scanners():
        agent = user_agent()
        if is_blocked_user_agent(agent, app.config.get("BLOCKED_USER_AGENTS", [])):
            app.logger.warning("Blocked suspicious user agent", extra={"user_agent": agent, "ip": request.remote_addr})
            return jsonify(_error_body("Access denied")), 403
        return None

    @app.after_request
    def _after_request(response):
        return apply_security_headers(response, force_https=app.config.get("PREFERRED_URL_SCHEME") == "https")

    # Ensure tables exist so first run creates the database structure automatically.
    with app.app_context():
        db.create_all()
        if app.config.get("SEED_DEFAULT_ENTITIES"):
            app.extensions["complaint_service"].store.seed_entities()

    return app


if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    create_app().run(host="0.0.0.0", port=port, use_reloader=False)
