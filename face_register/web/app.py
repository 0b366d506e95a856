"""Flask web application factory for the face registration API."""
from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Optional

from flask import Flask, Response, jsonify
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address

from face_register.config import (
    MatchConfig,
    Paths,
    get_data_dir_from_env,
    match_config_from_env,
)
from face_register.core.logger import get_logger
from face_register.core.registry import FaceRegistry
from face_register.core.registry_store import JsonRegistryStore
from face_register.core.session_manager import SessionManager
from face_register.web.api import register_api_routes

logger = get_logger("web")


def create_app(
    data_dir: Optional[Path] = None,
    api_key: Optional[str] = None,
    match_config: Optional[MatchConfig] = None,
    registry: Optional[FaceRegistry] = None,
) -> Flask:
    """Create and configure the Flask application.

    Args:
        data_dir: Data directory holding the persisted registry.
        api_key: API key for ``/api`` routes; read from API_KEY if omitted.
        match_config: Alignment parameters; read from the environment if omitted.
        registry: Registry to serve; loaded from ``data_dir`` if omitted.

    Returns:
        Configured Flask application instance.

    Raises:
        ValueError: If no API key is configured.
    """
    if data_dir is None:
        data_dir = get_data_dir_from_env()
    if match_config is None:
        match_config = match_config_from_env()

    app = Flask(__name__)
    app.config["DATA_DIR"] = data_dir
    app.config["MATCH_CONFIG"] = match_config

    paths = Paths(data_dir=data_dir)
    if registry is None:
        registry = FaceRegistry.from_store(JsonRegistryStore(paths.registry_file))

    api_key = api_key or os.getenv("API_KEY")
    if not api_key:
        raise ValueError(
            "API_KEY environment variable is required. "
            "Set it in the environment or pass api_key to create_app()."
        )
    app.config["API_KEY"] = api_key
    logger.info("API key authentication enabled")

    limiter = Limiter(
        key_func=get_remote_address,
        app=app,
        default_limits=[],
        storage_uri=os.getenv("REDIS_URL", "memory://"),
    )
    app.config["LIMITER"] = limiter

    manager = SessionManager(registry)
    app.extensions["session_manager"] = manager

    register_api_routes(
        app=app,
        manager=manager,
        match_config=match_config,
        api_key=api_key,
        limiter=limiter,
    )

    @app.route("/health", methods=["GET"])
    def health() -> tuple[Response, int]:
        """Health check endpoint."""
        return (
            jsonify(
                {
                    "status": "healthy",
                    "registered_faces": len(registry),
                    "active_sessions": manager.get_session_count(),
                    "tolerance": match_config.tolerance,
                }
            ),
            200,
        )

    @app.errorhandler(404)
    def not_found(error: Any) -> tuple[Response, int]:
        return jsonify({"success": False, "error": "Endpoint not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error: Any) -> tuple[Response, int]:
        return jsonify({"success": False, "error": "Method not allowed"}), 405

    return app


def run_server(
    host: str = "0.0.0.0",
    port: int = 5000,
    data_dir: Optional[Path] = None,
    debug: bool = False,
) -> None:
    """Run the Flask development server.

    Args:
        host: Host to bind to.
        port: Port to bind to.
        data_dir: Data directory path.
        debug: Enable debug mode.
    """
    app = create_app(data_dir=data_dir)
    logger.info(f"Starting HTTP server on http://{host}:{port}")
    app.run(host=host, port=port, debug=debug, use_reloader=False)
