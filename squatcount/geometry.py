"""
Left/right symmetry rules over a single frame's keypoints.
All coordinates are image coords (y grows downward).
"""
from __future__ import annotations

from typing import Optional

from .pose import BodyPart, KeypointSet

# Relative tolerance between right and left ankle heights.
ANKLE_TOLERANCE = 0.2
# Relative tolerance between right and left knee heights.
KNEE_TOLERANCE = 0.3
# Relative tolerance between right and left hip heights.
HIP_TOLERANCE = 0.3


def sides_match(right: float, left: float, tolerance: float) -> bool:
    """
    True iff right lies within left +/- tolerance*|left| and left lies within
    right +/- tolerance*|right|. The margin scales with each value itself.
    """
    right_margin = abs(right * tolerance)
    left_margin = abs(left * tolerance)
    left_ok = (right - right_margin) <= left <= (right + right_margin)
    right_ok = (left - left_margin) <= right <= (left + left_margin)
    return left_ok and right_ok


def _pair_y(
    keypoints: KeypointSet,
    right: BodyPart,
    left: BodyPart,
) -> Optional[tuple[float, float]]:
    ry = keypoints.y(right)
    ly = keypoints.y(left)
    if ry is None or ly is None:
        return None
    return ry, ly


def limbs_aligned(keypoints: Optional[KeypointSet]) -> bool:
    """Ankles, knees and hips each roughly level between sides. False if any point is absent."""
    if not keypoints:
        return False
    checks = (
        (BodyPart.RIGHT_ANKLE, BodyPart.LEFT_ANKLE, ANKLE_TOLERANCE),
        (BodyPart.RIGHT_KNEE, BodyPart.LEFT_KNEE, KNEE_TOLERANCE),
        (BodyPart.RIGHT_HIP, BodyPart.LEFT_HIP, HIP_TOLERANCE),
    )
    for right, left, tolerance in checks:
        pair = _pair_y(keypoints, right, left)
        if pair is None or not sides_match(pair[0], pair[1], tolerance):
            return False
    return True


def leg_heights(keypoints: Optional[KeypointSet]) -> Optional[tuple[float, float]]:
    """(right, left) ankle.y - hip.y, or None if a point is missing."""
    if not keypoints:
        return None
    ankles = _pair_y(keypoints, BodyPart.RIGHT_ANKLE, BodyPart.LEFT_ANKLE)
    hips = _pair_y(keypoints, BodyPart.RIGHT_HIP, BodyPart.LEFT_HIP)
    if ankles is None or hips is None:
        return None
    return ankles[0] - hips[0], ankles[1] - hips[1]


def hip_knee_heights(
    keypoints: Optional[KeypointSet],
) -> Optional[tuple[tuple[float, float], tuple[float, float]]]:
    """((right_hip, right_knee), (left_hip, left_knee)) y coords, own side each."""
    if not keypoints:
        return None
    right = _pair_y(keypoints, BodyPart.RIGHT_HIP, BodyPart.RIGHT_KNEE)
    left = _pair_y(keypoints, BodyPart.LEFT_HIP, BodyPart.LEFT_KNEE)
    if right is None or left is None:
        return None
    return right, left
