"""Response envelope helpers for the registration API.

Every ``/api`` response has the shape
``{"success": bool, "data"?: ..., "error"?: str, "meta"?: {...}}``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from flask import Response, jsonify

from face_register.core.exceptions import ValidationError
from face_register.core.session import Transition

ApiResult = tuple[Response, int]


@dataclass
class APIResponse:
    """Standardized API response envelope."""

    success: bool
    data: Any = None
    error: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to a dict, omitting empty members."""
        result: dict[str, Any] = {"success": self.success}
        for key in ("data", "error", "meta"):
            value = getattr(self, key)
            if value is not None and value != {} and value != "":
                result[key] = value
        return result


def success_response(
    data: Any = None, status: int = 200, meta: dict[str, Any] | None = None
) -> ApiResult:
    return jsonify(APIResponse(True, data=data, meta=meta or {}).to_dict()), status


def error_response(
    error: str, status: int = 400, meta: dict[str, Any] | None = None
) -> ApiResult:
    return jsonify(APIResponse(False, error=error, meta=meta or {}).to_dict()), status


def not_found_response(resource: str = "Resource") -> ApiResult:
    """Create a 404 response for ``resource``."""
    return error_response(f"{resource} not found", status=404)


def conflict_response(error: str) -> ApiResult:
    """Create a 409 response for a command the current state does not accept."""
    return error_response(error, status=409)


def transition_response(session_id: str, result: Transition) -> ApiResult:
    """Report a session transition.

    Rejected user input (an empty name) is a 400 carrying the transition in
    ``meta``; every other transition, including recovered errors such as a
    failed registry save, is a 200.
    """
    data = {"session_id": session_id, **result.to_dict()}
    if isinstance(result.error, ValidationError):
        return error_response(str(result.error), status=400, meta={"transition": data})
    return success_response(data)
