"""Input validation utilities for face registration."""

from __future__ import annotations

import math
from typing import Any

from face_register.core.exceptions import EmptyNameError, ValidationError


def validate_face_name(name: Any) -> str:
    """Validate a user-supplied face name.

    Args:
        name: Raw text entered in the name dialog.

    Returns:
        The name with surrounding whitespace removed.

    Raises:
        EmptyNameError: If the name is missing, empty or whitespace only.
        ValidationError: If the name is not a string.
    """
    if name is None:
        raise EmptyNameError()

    if not isinstance(name, str):
        raise ValidationError("name must be a string")

    trimmed = name.strip()
    if not trimmed:
        raise EmptyNameError()

    return trimmed


def validate_face_id(face_id: Any) -> bool:
    """Validate a face identifier.

    Identifiers are opaque, but they must be usable as a mapping key and
    survive a JSON round trip.

    Raises:
        ValidationError: If face_id is empty or of an unsupported type.
    """
    if face_id is None or face_id == "":
        raise ValidationError("face_id cannot be empty")

    if isinstance(face_id, bool) or not isinstance(face_id, (str, int)):
        raise ValidationError("face_id must be a string or integer")

    return True


def validate_tolerance(tolerance: Any) -> bool:
    """Validate a relative-deviation tolerance.

    Raises:
        ValidationError: If tolerance is not a finite non-negative number.
    """
    if isinstance(tolerance, bool) or not isinstance(tolerance, (int, float)):
        raise ValidationError("tolerance must be a number")

    if not math.isfinite(tolerance) or tolerance < 0.0:
        raise ValidationError("tolerance must be a finite number >= 0")

    return True


def validate_ratio(value: Any, field: str) -> bool:
    """Validate a viewport ratio in the half-open range (0, 1].

    Args:
        value: Ratio to validate.
        field: Field name used in the error message.

    Raises:
        ValidationError: If value is outside (0, 1].
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValidationError(f"{field} must be a number")

    if not 0.0 < value <= 1.0:
        raise ValidationError(f"{field} must be in (0, 1]")

    return True


def validate_viewport(width: Any, height: Any) -> bool:
    """Validate viewport dimensions sent by a client.

    Raises:
        ValidationError: If either dimension is not a positive number.
    """
    for field, value in (("width", width), ("height", height)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"viewport {field} must be a number")
        if not math.isfinite(value) or value <= 0:
            raise ValidationError(f"viewport {field} must be positive")

    return True
