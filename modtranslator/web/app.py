"""Flask application configuration and blueprint registration."""

from __future__ import annotations

from typing import Any, Dict, Optional

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from modtranslator import config
from modtranslator.logger import get_logger, LOG_DIR
from modtranslator.validation.metrics import ValidationLogger, get_validation_log_path

from .routes.protection import protection_bp
from .routes.validation import VALIDATION_LOGGER_KEY, validation_bp
from .routes.retry import retry_bp
from .routes.settings import settings_bp

logger = get_logger(__name__)


def build_app(overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """Create and configure the Flask application."""
    app = Flask(__name__)

    # Ensure JSON responses keep Unicode data (markers are non-ASCII).
    app.config["JSON_AS_ASCII"] = False
    app.json.ensure_ascii = False
    app.config["VALIDATION_LOG_DIR"] = LOG_DIR
    if overrides:
        app.config.update(overrides)

    init_validation_logger(app)
    register_blueprints(app)
    register_default_routes(app)

    return app


def init_validation_logger(app: Flask) -> None:
    """Attach one ValidationLogger per app, logging failures to JSONL when enabled."""
    validation_logger = ValidationLogger()
    settings = config.load_config()
    if settings.get("validator", {}).get("jsonl_logging", True):
        try:
            validation_logger.enable_file_logging(get_validation_log_path(app.config["VALIDATION_LOG_DIR"]))
        except OSError as e:
            logger.warning(f"Validation JSONL logging disabled: {e}")
    app.extensions[VALIDATION_LOGGER_KEY] = validation_logger


def register_blueprints(app: Flask) -> None:
    """Register Flask blueprints."""
    app.register_blueprint(protection_bp, url_prefix="/api")
    app.register_blueprint(validation_bp, url_prefix="/api")
    app.register_blueprint(retry_bp, url_prefix="/api/retry")
    app.register_blueprint(settings_bp, url_prefix="/api/settings")


def register_default_routes(app: Flask) -> None:
    """Register the health route and JSON error handlers."""

    @app.get("/health")
    def health_check():
        logger.debug("Health check requested")
        return jsonify({"status": "ok"})

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"error": e.description, "code": e.name}), e.code

    @app.errorhandler(500)
    def internal_error(e):
        logger.exception("Internal server error: %s", e)
        return jsonify({"error": "Internal server error"}), 500
