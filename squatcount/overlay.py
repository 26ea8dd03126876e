"""
Draw skeleton and session state (phase, reps, calibration) on frames.
"""
from __future__ import annotations

from typing import Optional

import cv2
import numpy as np

from .pose import BodyPart, KeypointSet
from .session import CALIBRATION_FAILED, CALIBRATION_READY, SessionState

B = BodyPart
_SKELETON = (
    (B.LEFT_SHOULDER, B.RIGHT_SHOULDER),
    (B.LEFT_SHOULDER, B.LEFT_ELBOW), (B.LEFT_ELBOW, B.LEFT_WRIST),
    (B.RIGHT_SHOULDER, B.RIGHT_ELBOW), (B.RIGHT_ELBOW, B.RIGHT_WRIST),
    (B.LEFT_SHOULDER, B.LEFT_HIP), (B.RIGHT_SHOULDER, B.RIGHT_HIP),
    (B.LEFT_HIP, B.RIGHT_HIP),
    (B.LEFT_HIP, B.LEFT_KNEE), (B.LEFT_KNEE, B.LEFT_ANKLE),
    (B.RIGHT_HIP, B.RIGHT_KNEE), (B.RIGHT_KNEE, B.RIGHT_ANKLE),
    (B.NOSE, B.LEFT_EYE), (B.NOSE, B.RIGHT_EYE),
    (B.LEFT_EYE, B.LEFT_EAR), (B.RIGHT_EYE, B.RIGHT_EAR),
)

_STATUS_COLORS = {
    CALIBRATION_READY: (0, 200, 0),
    CALIBRATION_FAILED: (0, 0, 255),
}


def _pt(x: float, y: float) -> tuple[int, int]:
    return (int(round(x)), int(round(y)))


def draw_skeleton(
    frame: np.ndarray,
    keypoints: Optional[KeypointSet],
    color: tuple[int, int, int] = (0, 255, 0),
    thickness: int = 2,
) -> None:
    """Draw the parts present in keypoints (in-place); missing parts are skipped."""
    if not keypoints:
        return
    for a, b in _SKELETON:
        pa, pb = keypoints.get(a), keypoints.get(b)
        if pa is None or pb is None:
            continue
        cv2.line(frame, _pt(pa.x, pa.y), _pt(pb.x, pb.y), color, thickness)
    for kp in keypoints:
        cv2.circle(frame, _pt(kp.x, kp.y), 3, color, -1)


def draw_session_overlay(
    frame: np.ndarray,
    keypoints: Optional[KeypointSet],
    state: SessionState,
    message: Optional[str] = None,
) -> None:
    """
    Draw realtime overlay on frame (in-place):
    - Skeleton if keypoints present
    - Phase label, Reps, Calibration status, capture flag
    - Optional message (e.g. key help)
    """
    h, w = frame.shape[:2]
    draw_skeleton(frame, keypoints)

    # Semi-transparent panel for text
    panel_h = 120
    overlay = frame.copy()
    cv2.rectangle(overlay, (0, 0), (w, panel_h), (40, 40, 40), -1)
    cv2.addWeighted(overlay, 0.6, frame, 0.4, 0, frame)

    font = cv2.FONT_HERSHEY_SIMPLEX
    y0, dy = 28, 28

    def put(line: str, y: int, color: tuple[int, int, int] = (255, 255, 255)) -> None:
        cv2.putText(frame, line, (12, y), font, 0.6, color, 2, cv2.LINE_AA)

    put(f"Phase: {state.phase_label}", y0)
    put(f"Reps: {state.rep_count}", y0 + dy)
    put(
        f"Calibration: {state.calibration_status}",
        y0 + 2 * dy,
        _STATUS_COLORS.get(state.calibration_status, (0, 200, 255)),
    )
    put("Capturing" if state.capturing else "Paused", y0 + 3 * dy)

    if message:
        cv2.putText(
            frame, message, (12, h - 20),
            font, 0.6, (0, 200, 255), 2, cv2.LINE_AA
        )
