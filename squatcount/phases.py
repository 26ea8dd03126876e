"""
Per-frame phase probes: squat and stand-up.
Both require aligned limbs first; any missing data classifies as False.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from .calibration import ToleranceBand
from .geometry import hip_knee_heights, leg_heights, limbs_aligned
from .pose import KeypointSet, KeypointSource

# Hip may sit this fraction of knee height above the knee and still count as a squat.
SQUAT_KNEE_SLACK = 0.1


class Phase(Enum):
    NONE = "none"
    ALIGNED_UNKNOWN = "aligned"
    SQUAT = "squat"
    STAND_UP = "standup"


def hip_at_knee_level(hip_y: float, knee_y: float, slack: float = SQUAT_KNEE_SLACK) -> bool:
    return hip_y >= knee_y - knee_y * slack


class PhaseClassifier:
    """
    Squat / stand-up probes. The frame-level probes run the keypoint source
    themselves; the keypoint-level twins take an already estimated set.
    """

    def __init__(
        self,
        band: Optional[ToleranceBand] = None,
        source: Optional[KeypointSource] = None,
        squat_slack: float = SQUAT_KNEE_SLACK,
    ):
        self.band = band
        self.source = source
        self.squat_slack = squat_slack

    def _estimate(self, frame: Any) -> Optional[KeypointSet]:
        if self.source is None:
            raise RuntimeError("PhaseClassifier has no keypoint source")
        return self.source.estimate(frame)

    def classify_squat(self, frame: Any) -> bool:
        return self.is_squat(self._estimate(frame))

    def classify_standup(self, frame: Any) -> bool:
        return self.is_standup(self._estimate(frame))

    def is_squat(self, keypoints: Optional[KeypointSet]) -> bool:
        if not limbs_aligned(keypoints):
            return False
        heights = hip_knee_heights(keypoints)
        if heights is None:
            return False
        (right_hip, right_knee), (left_hip, left_knee) = heights
        return (
            hip_at_knee_level(right_hip, right_knee, self.squat_slack)
            and hip_at_knee_level(left_hip, left_knee, self.squat_slack)
        )

    def is_standup(self, keypoints: Optional[KeypointSet]) -> bool:
        if self.band is None or not limbs_aligned(keypoints):
            return False
        heights = leg_heights(keypoints)
        if heights is None:
            return False
        return self.band.contains(heights[0], heights[1])

    def classify(self, keypoints: Optional[KeypointSet]) -> Phase:
        """Full phase of one frame, for display."""
        if not limbs_aligned(keypoints):
            return Phase.NONE
        if self.is_squat(keypoints):
            return Phase.SQUAT
        if self.is_standup(keypoints):
            return Phase.STAND_UP
        return Phase.ALIGNED_UNKNOWN
