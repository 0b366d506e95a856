"""Data types shared by the matcher, registry and session."""
from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass
from typing import Any

from face_register.core.exceptions import ValidationError
from face_register.core.validation import validate_face_id

FaceId = Hashable
JSONDict = dict[str, Any]


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in screen coordinates.

    Attributes:
        x: Left edge.
        y: Top edge.
        width: Horizontal extent.
        height: Vertical extent.
    """

    x: float
    y: float
    width: float
    height: float

    @property
    def xmax(self) -> float:
        return self.x + self.width

    @property
    def ymax(self) -> float:
        return self.y + self.height

    def is_valid(self) -> bool:
        """Check if the rectangle has positive area.

        Returns:
            True if width and height are both positive.
        """
        return self.width > 0 and self.height > 0

    def to_corners(self) -> tuple[int, int, int, int]:
        """Return integer ``(xmin, ymin, xmax, ymax)`` pixel corners."""
        return (
            int(round(self.x)),
            int(round(self.y)),
            int(round(self.xmax)),
            int(round(self.ymax)),
        )

    def to_dict(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "width": self.width, "height": self.height}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Rect":
        """Build a rectangle from a flat or origin/size mapping.

        Accepts ``{"x", "y", "width", "height"}`` as well as the camera
        library's ``{"origin": {"x", "y"}, "size": {"width", "height"}}``.

        Raises:
            ValidationError: If a coordinate is missing or not numeric.
        """
        if not isinstance(data, dict):
            raise ValidationError("bounds must be an object")

        if "origin" in data or "size" in data:
            origin = data.get("origin") or {}
            size = data.get("size") or {}
            raw = {
                "x": origin.get("x"),
                "y": origin.get("y"),
                "width": size.get("width"),
                "height": size.get("height"),
            }
        else:
            raw = {key: data.get(key) for key in ("x", "y", "width", "height")}

        values: dict[str, float] = {}
        for key, value in raw.items():
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ValidationError(f"bounds.{key} must be a number")
            values[key] = float(value)
        return cls(**values)


@dataclass(frozen=True)
class Face:
    """A face reported by the detector for one frame.

    Attributes:
        face_id: Opaque identifier, stable for the same face across frames.
        bounds: Bounding region in frame coordinates.
    """

    face_id: FaceId
    bounds: Rect

    def to_dict(self) -> dict[str, Any]:
        return {"face_id": self.face_id, "bounds": self.bounds.to_dict()}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Face":
        """Parse a face record (``face_id`` or ``faceID`` plus ``bounds``).

        Raises:
            ValidationError: If the identifier or bounds are missing.
        """
        if not isinstance(data, dict):
            raise ValidationError("face must be an object")

        face_id = data.get("face_id", data.get("faceID"))
        validate_face_id(face_id)

        if "bounds" not in data:
            raise ValidationError("bounds is required")
        return cls(face_id=face_id, bounds=Rect.from_dict(data["bounds"]))


@dataclass(frozen=True)
class DetectionResult:
    """Faces detected in a single camera frame.

    Attributes:
        faces: Faces in detector order.
    """

    faces: tuple[Face, ...] = ()

    @property
    def primary(self) -> Face | None:
        """First detected face, the only one the session evaluates."""
        return self.faces[0] if self.faces else None

    def to_dict(self) -> dict[str, Any]:
        return {"faces": [face.to_dict() for face in self.faces]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DetectionResult":
        """Parse a detection payload ``{"faces": [...]}``.

        Raises:
            ValidationError: If the payload is not a valid detection result.
        """
        if not isinstance(data, dict):
            raise ValidationError("detection payload must be an object")
        faces = data.get("faces", [])
        if not isinstance(faces, list):
            raise ValidationError("faces must be a list")
        return cls(faces=tuple(Face.from_dict(face) for face in faces))
