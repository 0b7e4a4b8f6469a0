"""
Alert display collaborators.

The decision engine only ever calls ``set_text(str)``: the alert text when
a not-ok gesture fires, "" when the countdown expires. AlertOverlay keeps
that text and draws it, together with the tracked joints, on a debug frame.
"""

import logging
from typing import Optional

import cv2
import numpy as np

logger = logging.getLogger(__name__)


class AlertDisplay:
    """Minimal text sink; remembers the current text."""

    def __init__(self):
        self._text = ""

    def set_text(self, text: str):
        self._text = text

    @property
    def text(self) -> str:
        return self._text

    @property
    def is_active(self) -> bool:
        return bool(self._text)


class AlertOverlay(AlertDisplay):
    """Renders alert text and a top-down joint view onto BGR frames."""

    def __init__(self, config: dict = None):
        super().__init__()
        config = config or {}
        self._width = config.get("width", 640)
        self._height = config.get("height", 480)
        self._pixels_per_metre = config.get("pixels_per_metre", 1500.0)
        self._alert_color = tuple(config.get("alert_color", (0, 0, 255)))
        self._joint_color = tuple(config.get("joint_color", (255, 160, 0)))

    def new_canvas(self) -> np.ndarray:
        """Blank dark frame at the configured size."""
        return np.full((self._height, self._width, 3), 30, dtype=np.uint8)

    def render(self, frame: np.ndarray, positions: Optional[np.ndarray] = None,
               status: Optional[dict] = None) -> np.ndarray:
        """Draw joints, status line and alert text onto ``frame``.

        Args:
            frame: BGR frame to draw on (modified in place)
            positions: optional (J, 3) joint positions in metres; drawn as
                an x/y projection centred on the first joint (palm)
            status: optional PipelineState.to_dict() snapshot

        Returns:
            The same frame
        """
        h, w = frame.shape[:2]

        if positions is not None and len(positions) and np.all(np.isfinite(positions)):
            origin = positions[0]
            for joint in positions:
                dx, dy = (joint[:2] - origin[:2]) * self._pixels_per_metre
                px, py = int(w / 2 + dx), int(h / 2 - dy)
                if 0 <= px < w and 0 <= py < h:
                    cv2.circle(frame, (px, py), 4, self._joint_color, -1)

        if status:
            line = "%s | window %d/%d | alerts %d" % (
                status.get("decision_state", "?"),
                status.get("window_length", 0),
                status.get("window_capacity", 0),
                status.get("alerts", 0),
            )
            cv2.putText(frame, line, (10, h - 15),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.5, (200, 200, 200), 1)

        if self._text:
            (tw, th), _ = cv2.getTextSize(self._text, cv2.FONT_HERSHEY_SIMPLEX, 1.2, 3)
            x, y = (w - tw) // 2, 40 + th
            cv2.rectangle(frame, (x - 10, y - th - 10), (x + tw + 10, y + 10), (40, 40, 40), -1)
            cv2.rectangle(frame, (x - 10, y - th - 10), (x + tw + 10, y + 10), self._alert_color, 2)
            cv2.putText(frame, self._text, (x, y),
                        cv2.FONT_HERSHEY_SIMPLEX, 1.2, self._alert_color, 3)

        return frame
