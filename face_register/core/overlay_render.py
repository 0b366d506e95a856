"""Overlay rendering of the target region and the detected face box."""
from __future__ import annotations

from typing import Iterable, Optional

import cv2
import numpy as np

from face_register.core.session import ClearBox, DrawBox, Effect, ShowError, ShowInfo
from face_register.core.types import Rect


class OverlayRenderer:
    """Draws registration feedback on video frames.

    The renderer mirrors what the display layer would show: it follows
    ``DrawBox``/``ClearBox`` effects to track the current detection box and
    remembers the latest notification.
    """

    def __init__(
        self,
        target_color: tuple[int, int, int] = (0, 255, 255),
        detection_color: tuple[int, int, int] = (0, 0, 255),
        text_color: tuple[int, int, int] = (255, 255, 255),
        error_color: tuple[int, int, int] = (0, 0, 255),
        box_thickness: int = 3,
        font_scale: float = 0.6,
        font_thickness: int = 2,
    ) -> None:
        """Initialize the overlay renderer.

        Args:
            target_color: BGR color of the target region (default: yellow).
            detection_color: BGR color of the detected face box (default: red).
            text_color: BGR color of informational text (default: white).
            error_color: BGR color of error text (default: red).
            box_thickness: Thickness of rectangle outlines.
            font_scale: Scale factor for text font.
            font_thickness: Thickness of text font.
        """
        self.target_color = target_color
        self.detection_color = detection_color
        self.text_color = text_color
        self.error_color = error_color
        self.box_thickness = box_thickness
        self.font_scale = font_scale
        self.font_thickness = font_thickness
        self.font = cv2.FONT_HERSHEY_SIMPLEX

        self.current_box: Optional[Rect] = None
        self.notice: Optional[ShowInfo | ShowError] = None

    def apply(self, effects: Iterable[Effect]) -> None:
        """Update the tracked box and notice from session effects."""
        for effect in effects:
            if isinstance(effect, DrawBox):
                self.current_box = effect.rect
            elif isinstance(effect, ClearBox):
                self.current_box = None
            elif isinstance(effect, (ShowInfo, ShowError)):
                self.notice = effect

    def draw(self, frame: np.ndarray, target: Rect) -> np.ndarray:
        """Draw the target region, current box and notice on ``frame``.

        Args:
            frame: BGR frame to draw on (modified in place).
            target: Target region of the session.

        Returns:
            The same frame, for chaining.
        """
        xmin, ymin, xmax, ymax = target.to_corners()
        cv2.rectangle(
            frame, (xmin, ymin), (xmax, ymax), self.target_color, self.box_thickness
        )

        if self.current_box is not None:
            xmin, ymin, xmax, ymax = self.current_box.to_corners()
            cv2.rectangle(
                frame,
                (xmin, ymin),
                (xmax, ymax),
                self.detection_color,
                self.box_thickness,
            )

        if self.notice is not None:
            color = (
                self.error_color if isinstance(self.notice, ShowError) else self.text_color
            )
            cv2.putText(
                frame,
                f"{self.notice.title}: {self.notice.message}",
                (10, 30),
                self.font,
                self.font_scale,
                color,
                self.font_thickness,
            )
        return frame

    def render(self, width: int, height: int, target: Rect) -> np.ndarray:
        """Render the overlay on a black frame of the viewport size.

        Returns:
            BGR frame as a numpy array.
        """
        frame = np.zeros((height, width, 3), dtype=np.uint8)
        return self.draw(frame, target)
