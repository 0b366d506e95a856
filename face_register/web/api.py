"""Flask API routes for registration sessions and the face registry."""
from __future__ import annotations

import functools
from typing import Any, Callable, Optional

from flask import Blueprint, Flask, request
from flask_limiter import Limiter

from face_register.config import MatchConfig
from face_register.core.exceptions import (
    InvalidCommandError,
    InvalidTargetError,
    SessionNotFoundError,
    StorageError,
    ValidationError,
)
from face_register.core.logger import get_logger
from face_register.core.session_manager import SessionManager
from face_register.core.types import DetectionResult
from face_register.core.validation import validate_tolerance, validate_viewport
from face_register.web.response_utils import (
    ApiResult,
    conflict_response,
    error_response,
    not_found_response,
    success_response,
    transition_response,
)

logger = get_logger("api")


def _check_api_key(expected: str) -> Optional[ApiResult]:
    """Check the request's API key.

    The key is read from the ``X-API-Key`` header, falling back to an
    ``Authorization: Bearer`` token.

    Returns:
        None if authentication passes, otherwise an error response.
    """
    api_key = request.headers.get("X-API-Key")
    if not api_key:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            api_key = auth_header[7:]

    if not api_key or api_key != expected:
        return error_response("Invalid or missing API key", status=401)
    return None


def _json_body() -> dict[str, Any]:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


def _api_errors(action: str) -> Callable[[Callable[..., ApiResult]], Callable[..., ApiResult]]:
    """Map engine exceptions raised by a view to HTTP error responses."""

    def decorator(view: Callable[..., ApiResult]) -> Callable[..., ApiResult]:
        @functools.wraps(view)
        def wrapper(*args: Any, **kwargs: Any) -> ApiResult:
            try:
                return view(*args, **kwargs)
            except SessionNotFoundError as e:
                return error_response(str(e), status=404)
            except InvalidCommandError as e:
                logger.info(f"Rejected command while {action}: {e}")
                return conflict_response(str(e))
            except (ValidationError, InvalidTargetError) as e:
                logger.warning(f"Validation error {action}: {e}")
                return error_response(str(e), status=400)
            except StorageError as e:
                logger.error(f"Storage error {action}: {e}", exc_info=True)
                return error_response("Registry storage failed", status=503)
            except Exception as e:
                logger.error(f"Error {action}: {e}", exc_info=True)
                return error_response(str(e), status=500)

        return wrapper

    return decorator


def register_api_routes(
    app: Flask,
    manager: SessionManager,
    match_config: MatchConfig,
    api_key: str,
    limiter: Limiter | None = None,
) -> None:
    """Register all API routes with the Flask application.

    Args:
        app: Flask application instance.
        manager: Session manager holding the shared registry.
        match_config: Default tolerance and target-region ratios.
        api_key: API key required on every ``/api`` request.
        limiter: Optional rate limiter for session creation.
    """
    if not api_key:
        raise ValueError("API key is required and cannot be empty")

    api_bp = Blueprint("api", __name__, url_prefix="/api")

    @api_bp.before_request
    def require_api_key() -> Optional[ApiResult]:
        """Check API key before processing any API request."""
        return _check_api_key(api_key)

    @api_bp.route("/sessions", methods=["POST"])
    @_api_errors("creating session")
    def create_session() -> ApiResult:
        """Start a session for a viewport: ``{"width": .., "height": ..}``."""
        data = _json_body()
        viewport = data.get("viewport", data)
        if not isinstance(viewport, dict):
            raise ValidationError("viewport must be an object")
        width, height = viewport.get("width"), viewport.get("height")
        validate_viewport(width, height)

        tolerance = data.get("tolerance", match_config.tolerance)
        validate_tolerance(tolerance)

        session = manager.create_session(
            target=match_config.target_region(width, height), tolerance=tolerance
        )
        logger.info(f"Session created: {session.session_id}")
        return success_response(session.to_dict(), status=201)

    if limiter:
        limiter.limit("30 per minute")(create_session)

    @api_bp.route("/sessions/<session_id>", methods=["GET"])
    @_api_errors("getting session")
    def get_session(session_id: str) -> ApiResult:
        return success_response(manager.get_session(session_id).to_dict())

    @api_bp.route("/sessions/<session_id>", methods=["DELETE"])
    @_api_errors("deleting session")
    def delete_session(session_id: str) -> ApiResult:
        manager.remove_session(session_id)
        return success_response({"message": f"Session '{session_id}' deleted"})

    @api_bp.route("/sessions/<session_id>/scan", methods=["POST"])
    @_api_errors("starting scan")
    def start_scan(session_id: str) -> ApiResult:
        """Enter scanning (the "Register" action); resets any pending face."""
        session = manager.get_session(session_id)
        return transition_response(session_id, session.start_scan())

    @api_bp.route("/sessions/<session_id>/detections", methods=["POST"])
    @_api_errors("processing detection")
    def post_detection(session_id: str) -> ApiResult:
        """Deliver one frame's detection result."""
        session = manager.get_session(session_id)
        result = DetectionResult.from_dict(_json_body())
        return transition_response(session_id, session.detection_tick(result))

    @api_bp.route("/sessions/<session_id>/name", methods=["POST"])
    @_api_errors("submitting name")
    def submit_name(session_id: str) -> ApiResult:
        """Confirm a name for the pending face: ``{"name": ".."}``."""
        session = manager.get_session(session_id)
        text = _json_body().get("name", "")
        if not isinstance(text, str):
            raise ValidationError("name must be a string")
        return transition_response(session_id, session.submit_name(text))

    @api_bp.route("/sessions/<session_id>/cancel", methods=["POST"])
    @_api_errors("cancelling")
    def cancel(session_id: str) -> ApiResult:
        session = manager.get_session(session_id)
        return transition_response(session_id, session.cancel())

    @api_bp.route("/faces", methods=["GET"])
    @_api_errors("listing faces")
    def list_faces() -> ApiResult:
        """List registered faces with pagination support.

        Query parameters:
            page: Page number (default: 1)
            per_page: Items per page (default: 50, max: 100)
        """
        try:
            page = max(1, int(request.args.get("page", 1)))
            per_page = min(100, max(1, int(request.args.get("per_page", 50))))
        except (ValueError, TypeError):
            return error_response("Invalid pagination parameters", status=400)

        all_faces = [
            {"face_id": face_id, "name": name}
            for face_id, name in manager.registry.items()
        ]
        total = len(all_faces)
        total_pages = (total + per_page - 1) // per_page
        start_idx = (page - 1) * per_page

        return success_response(
            {"faces": all_faces[start_idx : start_idx + per_page]},
            meta={
                "pagination": {
                    "page": page,
                    "per_page": per_page,
                    "total": total,
                    "total_pages": total_pages,
                    "has_next": page < total_pages,
                    "has_prev": page > 1,
                }
            },
        )

    @api_bp.route("/faces/<face_id>", methods=["GET"])
    @_api_errors("getting face")
    def get_face(face_id: str) -> ApiResult:
        """Look up a face; numeric ids from the URL also match integer keys."""
        name = manager.registry.lookup(face_id)
        if name is None and face_id.lstrip("-").isdigit():
            name = manager.registry.lookup(int(face_id))
        if name is None:
            return not_found_response(f"Face '{face_id}'")
        return success_response({"face_id": face_id, "name": name})

    app.register_blueprint(api_bp)
