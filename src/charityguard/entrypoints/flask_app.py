"""ABOUTME: Flask application factory with configuration, blueprints, and error handling
ABOUTME: Creates and configures the Flask app around a security core, with the request guard on every route"""

from flask import Flask, Response, jsonify, request
from flask.typing import ResponseReturnValue
from werkzeug.exceptions import HTTPException
from werkzeug.middleware.proxy_fix import ProxyFix

import charityguard.logging
from charityguard import bootstrap, config
from charityguard.adapters.email import get_email_adapter
from charityguard.domain.value_objects import ActivityEventType
from charityguard.service_layer.background import InlineBackgroundWorker
from charityguard.service_layer.exceptions import ServiceLayerError, status_for
from charityguard.translations import _

from .extensions import get_core, init_extensions
from .guard import RequestGuard, client_info


def create_app(config_name: str = "", core: bootstrap.SecurityCore | None = None) -> Flask:
    """
    Flask application factory.

    Args:
        config_name: Configuration name (development, testing, production)
        core: Prebuilt security core; built from the configuration when omitted

    Returns:
        Configured Flask application instance
    """
    charityguard.logging.logging_setup(config.get_log_level())

    app = Flask(__name__)

    # Load configuration
    flask_config = config.get_config(config_name)
    app.config.from_object(flask_config)

    # Trust 1 layer of proxy (the reverse proxy in front of the app)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore[method-assign]

    if core is None:
        testing = app.config.get("TESTING", False)
        core = bootstrap.bootstrap(
            database_url=app.config["SQLALCHEMY_DATABASE_URI"],
            create_schema=testing,
            settings=app.config["SECURITY"],
            email_adapter=get_email_adapter(app.config["EMAIL"]),
            # the in-memory test database has a single connection
            worker=InlineBackgroundWorker() if testing else None,
        )

    # Initialize extensions
    init_extensions(app, core)

    RequestGuard(app)

    # Register blueprints
    register_blueprints(app)

    # Register error handlers
    register_error_handlers(app)

    # Register after request handlers
    register_after_request_handlers(app)

    if app.config.get("START_BACKGROUND_TASKS"):
        core.start_background_tasks()

    app.logger.info("CharityGuard application startup")

    return app


def register_blueprints(app: Flask) -> None:
    """Register application blueprints."""
    from .blueprints.auth import auth_bp
    from .blueprints.donors import donors_bp
    from .blueprints.health import health_bp
    from .blueprints.security import security_bp

    app.register_blueprint(auth_bp)
    app.register_blueprint(donors_bp)
    app.register_blueprint(security_bp)
    app.register_blueprint(health_bp)


def register_error_handlers(app: Flask) -> None:
    """Register JSON error handlers."""

    @app.errorhandler(ServiceLayerError)
    def service_error(error: ServiceLayerError) -> ResponseReturnValue:
        """Service layer errors that escaped a route keep their status."""
        return jsonify({"success": False, "message": str(error)}), status_for(error)

    @app.errorhandler(404)
    def not_found(error: HTTPException) -> ResponseReturnValue:
        """Handle 404 Not Found errors."""
        return jsonify({"success": False, "message": _("Endpoint not found")}), 404

    @app.errorhandler(405)
    def method_not_allowed(error: HTTPException) -> ResponseReturnValue:
        """Handle 405 Method Not Allowed errors."""
        return jsonify({"success": False, "message": _("Method not allowed")}), 405

    @app.errorhandler(500)
    def internal_error(error: Exception) -> ResponseReturnValue:
        """Handle 500 Internal Server errors."""
        original = getattr(error, "original_exception", None) or error
        app.logger.error(f"Server Error: {original}")
        client = client_info()
        get_core().monitor.log_event(
            ActivityEventType.SUSPICIOUS_ACTIVITY,
            "unknown",
            client.ip_address,
            client.user_agent,
            False,
            {"path": request.path, "error": type(original).__name__},
        )
        return jsonify({"success": False, "message": _("Internal server error")}), 500


def register_after_request_handlers(app: Flask) -> None:
    """Register after request handlers."""

    @app.after_request
    def add_no_cache_headers(response: Response) -> Response:
        """
        Add no-cache headers to API responses.

        They carry tokens, session ids and personal details which must not end up in
        browser or proxy caches.
        """
        if request.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-cache, no-store, must-revalidate"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"

        return response
