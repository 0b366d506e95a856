"""Target-region geometry: alignment check and region computation."""
from __future__ import annotations

from face_register.core.exceptions import InvalidTargetError
from face_register.core.types import Rect
from face_register.core.validation import validate_tolerance

DEFAULT_TOLERANCE = 0.1
DEFAULT_WIDTH_RATIO = 0.4
DEFAULT_HEIGHT_RATIO = 0.3

_ATTRIBUTES = ("x", "y", "width", "height")


def _check_target(target: Rect) -> None:
    if not target.is_valid():
        raise InvalidTargetError(
            f"Target region must have positive size, got "
            f"{target.width}x{target.height}"
        )


def deviations(candidate: Rect, target: Rect) -> dict[str, float]:
    """Compute the per-attribute deviation of ``candidate`` from ``target``.

    Each deviation is relative to the target value. A target offset of zero
    has no relative scale, so the absolute difference is used for it instead.

    Args:
        candidate: Detected face bounds.
        target: Fixed target region.

    Returns:
        Mapping of ``x``, ``y``, ``width`` and ``height`` to their deviation.

    Raises:
        InvalidTargetError: If the target has a non-positive width or height.
    """
    _check_target(target)

    result: dict[str, float] = {}
    for attr in _ATTRIBUTES:
        expected = getattr(target, attr)
        diff = abs(getattr(candidate, attr) - expected)
        result[attr] = diff / expected if expected else diff
    return result


def matches(candidate: Rect, target: Rect, tolerance: float = DEFAULT_TOLERANCE) -> bool:
    """Check whether a detected rectangle is aligned with the target region.

    The rectangles match when every deviation reported by :func:`deviations`
    is within ``tolerance``.

    Args:
        candidate: Detected face bounds.
        target: Fixed target region.
        tolerance: Maximum allowed relative deviation, e.g. 0.1 for 10%.

    Returns:
        True if the candidate is sufficiently aligned.

    Raises:
        InvalidTargetError: If the target has a non-positive width or height.
        ValidationError: If tolerance is negative or not a finite number.
    """
    validate_tolerance(tolerance)
    return all(value <= tolerance for value in deviations(candidate, target).values())


def centered_region(
    viewport_width: float,
    viewport_height: float,
    width_ratio: float = DEFAULT_WIDTH_RATIO,
    height_ratio: float = DEFAULT_HEIGHT_RATIO,
) -> Rect:
    """Compute the target region centred in the viewport.

    Args:
        viewport_width: Viewport width in pixels.
        viewport_height: Viewport height in pixels.
        width_ratio: Fraction of the viewport width covered by the region.
        height_ratio: Fraction of the viewport height covered by the region.

    Returns:
        Target region rectangle.

    Raises:
        InvalidTargetError: If the resulting region would be empty.
    """
    width = viewport_width * width_ratio
    height = viewport_height * height_ratio
    region = Rect(
        x=(viewport_width - width) / 2,
        y=(viewport_height - height) / 2,
        width=width,
        height=height,
    )
    _check_target(region)
    return region
