"""
API gateway: combines the auth, users and projects blueprints.
This is the local entrypoint for development.
"""

import logging
import os
from typing import Any, Dict, Optional, Tuple

from flask import Flask, Response, jsonify, send_from_directory
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

from backend import config
from backend.auth_service.routes import auth_bp
from backend.projects_service.routes import projects_bp
from backend.uploads.storage import upload_root
from backend.users_service.routes import users_bp

# Basic console logging during API requests
logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(asctime)s - %(message)s")


def create_app(overrides: Optional[Dict[str, Any]] = None) -> Flask:
    """
    Application factory for creating the Flask app.

    Args:
        overrides (dict, optional): Extra Flask config, e.g. for tests.

    Returns:
        Flask: The configured Flask application.
    """
    config.validate_runtime_config()

    app = Flask(__name__)
    # Oversized uploads are rejected before any handler runs
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_MB * 1024 * 1024
    if overrides:
        app.config.update(overrides)

    CORS(app, resources={
        r"/*": {
            "origins": config.CORS_ORIGINS,
            "methods": ["GET", "POST", "PUT", "DELETE", "OPTIONS"],
            "allow_headers": ["Content-Type", "Authorization", "x-auth-token"],
            "expose_headers": ["Content-Type", "Authorization"],
            "supports_credentials": True,
        }
    })

    # --- REGISTER BLUEPRINTS ---
    app.register_blueprint(auth_bp)
    app.register_blueprint(users_bp)
    app.register_blueprint(projects_bp)
    logging.info("All blueprints registered successfully.")

    # --- UPLOADED FILES ---
    @app.route("/uploads/<path:filename>")
    def uploaded_file(filename: str) -> Response:
        return send_from_directory(str(upload_root()), filename)

    # --- BASIC HEALTH CHECKPOINTS ---
    @app.route("/")
    def ping() -> Tuple[Response, int]:
        """
        Root URL for simple 'online' check.
        """
        return jsonify({"status": "gateway_ok"}), 200

    @app.route("/health")
    def health() -> Tuple[Response, int]:
        """
        Health check endpoint.
        """
        return jsonify({"status": "ok"}), 200

    # --- JSON ERRORS ---
    @app.errorhandler(413)
    def too_large(error: HTTPException) -> Tuple[Response, int]:
        return jsonify({"error": f"File too large. Maximum upload size is {config.MAX_UPLOAD_MB}MB"}), 413

    @app.errorhandler(HTTPException)
    def http_error(error: HTTPException) -> Tuple[Response, int]:
        return jsonify({"error": error.description or error.name}), error.code

    @app.errorhandler(Exception)
    def internal_error(error: Exception) -> Tuple[Response, int]:
        logging.exception("Unhandled error")
        return jsonify({"error": "Internal Server Error"}), 500

    return app


if __name__ == "__main__":
    app = create_app()
    port = int(os.getenv("GATEWAY_PORT", 5050))
    app.run(host="0.0.0.0", port=port, debug=config.DEBUG)
