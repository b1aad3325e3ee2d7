"""
Component Robbing Tracker
Flask Application Factory.

Usage:
    from robbing import create_app
    app = create_app()           # defaults to "development"
    app = create_app("testing")  # explicit config
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS

from robbing.config import config
from robbing.middleware.logging_config import configure_logging
from robbing.middleware.timing import init_request_timing
from robbing.services.document_store import DocumentStore
from robbing.services.request_store import configure_collation
from robbing.services.robbing_service import RobbingService
from robbing.utils.errors import E, api_error

logger = logging.getLogger(__name__)


def create_app(config_name=None, service=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: Configuration environment name.
                     One of: "development", "testing", "production".
                     Defaults to APP_ENV env var, or "development" if unset.
        service:     Optional pre-built RobbingService (tests inject one
                     with a fixed clock).

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__)
    config_cls = config[config_name]
    # Production validates its required environment on instantiation
    app.config.from_object(config_cls())

    # ── Structured logging (must be first) ───────────────────────────────
    configure_logging(app)

    # ── Extensions ───────────────────────────────────────────────────────
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    # Multipart bodies carry the document plus form overhead
    if not app.config.get("MAX_CONTENT_LENGTH"):
        app.config["MAX_CONTENT_LENGTH"] = app.config["MAX_DOCUMENT_BYTES"] + 64 * 1024

    configure_collation(app.config["COLLATION_LOCALE"])

    if service is None:
        service = RobbingService(documents=DocumentStore(max_bytes=app.config["MAX_DOCUMENT_BYTES"]))
    app.extensions["robbing"] = service

    # ── Request timing middleware ────────────────────────────────────────
    init_request_timing(app)

    # ── Blueprints ───────────────────────────────────────────────────────
    from robbing.blueprints.health_bp import health_bp
    from robbing.blueprints.robbing_bp import robbing_bp

    app.register_blueprint(health_bp)
    app.register_blueprint(robbing_bp)

    # ── Error handlers ───────────────────────────────────────────────────
    @app.errorhandler(404)
    def not_found(e):
        return api_error(E.NOT_FOUND, "Not found", details={"path": request.path})

    @app.errorhandler(405)
    def method_not_allowed(e):
        return api_error(E.VALIDATION_INVALID, "Method not allowed", status=405)

    @app.errorhandler(413)
    def too_large(e):
        return api_error(E.PAYLOAD_TOO_LARGE, "Request body too large")

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error: %s", e, exc_info=True)
        return api_error(E.INTERNAL, "Internal server error")

    logger.info("Component Robbing Tracker started (env=%s)", config_name)
    return app
