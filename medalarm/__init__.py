# medalarm/__init__.py
import logging
import os

from flask import Flask, jsonify

from .config import Config
from .extensions import db, socketio

logger = logging.getLogger(__name__)


def create_app(config_class=Config):
    app = Flask(__name__)
    app.config.from_object(config_class)

    # Initialize extensions
    db.init_app(app)
    socketio.init_app(app, cors_allowed_origins="*")

    os.makedirs(app.config["UPLOAD_DIR"], exist_ok=True)

    # Register Blueprints
    from medalarm.routes.api import api_bp
    from medalarm.routes import events  # noqa: F401  (socket handlers)
    app.register_blueprint(api_bp)

    @app.errorhandler(500)
    def internal_error(exc):
        logger.exception("[API] Unhandled server error")
        return jsonify({"success": False, "error": "Internal Server Error"}), 500

    @app.route("/health")
    def health():
        return jsonify({"status": "healthy"})

    # Create database tables
    with app.app_context():
        from . import models  # noqa: F401
        db.create_all()

    logger.info("[API] Medicine alarm backend initialized")
    return app
