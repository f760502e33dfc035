# backend/backoffice/__init__.py
from flask import Flask, request
from werkzeug.exceptions import HTTPException

from .config import Config
from .extensions import db, migrate
from .responses import api_error
from .validation import ConflictError, NotFoundError, ValidationError


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    from .services.mail_service import init_mailer
    init_mailer(app)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.permits import permits_bp
    from .routes.windows import windows_bp
    from .routes.roles import roles_bp
    from .routes.users import users_bp
    from .routes.organizations import organizations_bp
    from .routes.inventory import inventory_bp
    from .routes.orders import orders_bp
    from .routes.production import production_bp
    from .routes.deliveries import deliveries_bp
    from .routes.notifications import notifications_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(permits_bp)
    app.register_blueprint(windows_bp)
    app.register_blueprint(roles_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(organizations_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(orders_bp)
    app.register_blueprint(production_bp)
    app.register_blueprint(deliveries_bp)
    app.register_blueprint(notifications_bp)

    register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in set(app.config.get("CORS_ALLOWED_ORIGINS", [])):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,PATCH,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def register_error_handlers(app: Flask) -> None:
    """Translate service exceptions into the JSON envelope."""

    @app.errorhandler(ValidationError)
    def handle_validation_error(e: ValidationError):
        db.session.rollback()
        return api_error(str(e), e.errors, 422)

    @app.errorhandler(NotFoundError)
    def handle_not_found(e: NotFoundError):
        db.session.rollback()
        return api_error(str(e) or "Record not found. Please fetch again.", status=404)

    @app.errorhandler(ConflictError)
    def handle_conflict(e: ConflictError):
        db.session.rollback()
        return api_error(str(e), e.data, e.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_exception(e: HTTPException):
        return api_error(e.description or e.name, status=e.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(e: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled error on %s %s", request.method, request.path)
        return api_error("Internal server error.", status=500)
