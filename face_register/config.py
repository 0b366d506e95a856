"""Configuration paths and matching parameters."""
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from face_register.core.exceptions import ValidationError
from face_register.core.geometry import (
    DEFAULT_HEIGHT_RATIO,
    DEFAULT_TOLERANCE,
    DEFAULT_WIDTH_RATIO,
    centered_region,
)
from face_register.core.types import Rect
from face_register.core.validation import validate_ratio, validate_tolerance


@dataclass(frozen=True)
class Paths:
    """Configuration paths for the data directory.

    Attributes:
        data_dir: Root data directory.
    """

    data_dir: Path

    @property
    def registry_file(self) -> Path:
        """Return path to the persisted face registry."""
        return self.data_dir / "faces.json"


@dataclass(frozen=True)
class MatchConfig:
    """Parameters of the alignment check.

    Attributes:
        tolerance: Maximum relative deviation per attribute.
        width_ratio: Target region width as a fraction of the viewport.
        height_ratio: Target region height as a fraction of the viewport.
    """

    tolerance: float = DEFAULT_TOLERANCE
    width_ratio: float = DEFAULT_WIDTH_RATIO
    height_ratio: float = DEFAULT_HEIGHT_RATIO

    def __post_init__(self) -> None:
        validate_tolerance(self.tolerance)
        validate_ratio(self.width_ratio, "width_ratio")
        validate_ratio(self.height_ratio, "height_ratio")

    def target_region(self, viewport_width: float, viewport_height: float) -> Rect:
        """Compute the centred target region for a viewport."""
        return centered_region(
            viewport_width, viewport_height, self.width_ratio, self.height_ratio
        )


def get_data_dir_from_env(default: str = "./data") -> Path:
    """Get data directory path from the DATA_DIR environment variable.

    Args:
        default: Default path if DATA_DIR is not set.

    Returns:
        Path to data directory.
    """
    return Path(os.getenv("DATA_DIR", default))


def _float_from_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValidationError(f"{name} must be a number, got {raw!r}") from e


def match_config_from_env() -> MatchConfig:
    """Build a MatchConfig from environment variables.

    Reads MATCH_TOLERANCE, TARGET_WIDTH_RATIO and TARGET_HEIGHT_RATIO.

    Raises:
        ValidationError: If a variable is set to an invalid value.
    """
    return MatchConfig(
        tolerance=_float_from_env("MATCH_TOLERANCE", DEFAULT_TOLERANCE),
        width_ratio=_float_from_env("TARGET_WIDTH_RATIO", DEFAULT_WIDTH_RATIO),
        height_ratio=_float_from_env("TARGET_HEIGHT_RATIO", DEFAULT_HEIGHT_RATIO),
    )
