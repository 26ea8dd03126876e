"""
Rep counting: strict squat -> stand-up cycle over per-frame probes.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Optional

from .phases import PhaseClassifier
from .pose import KeypointSet

logger = logging.getLogger(__name__)

SQUAT_LABEL = "Squat"
STAND_UP_LABEL = "Stand up"


class RepCycle(Enum):
    AWAITING_SQUAT = "awaiting_squat"
    AWAITING_STAND_UP = "awaiting_standup"


class RepCounter:
    """
    Two-state machine. In AWAITING_SQUAT only the squat probe runs; in
    AWAITING_STAND_UP only the stand-up probe runs. A rep is counted on the
    stand-up that follows a squat, so a rep needs both phases in order.
    A False probe (including missing pose) leaves the state unchanged.
    """

    def __init__(self, classifier: PhaseClassifier):
        self.classifier = classifier
        self.cycle = RepCycle.AWAITING_SQUAT
        self.rep_count = 0
        self.phase_label: Optional[str] = None
        self.reps: list[dict[str, Any]] = []
        self._squat_frame: Optional[int] = None

    def reset_cycle(self) -> None:
        """Back to AWAITING_SQUAT; rep_count and history are kept."""
        self.cycle = RepCycle.AWAITING_SQUAT
        self._squat_frame = None

    def step(self, keypoints: Optional[KeypointSet], frame_idx: Optional[int] = None) -> Optional[str]:
        """
        Advance on one frame's keypoints.
        Returns the emitted phase label on a transition, else None.
        """
        if self.cycle is RepCycle.AWAITING_SQUAT:
            if not self.classifier.is_squat(keypoints):
                return None
            self.cycle = RepCycle.AWAITING_STAND_UP
            self._squat_frame = frame_idx
            self.phase_label = SQUAT_LABEL
            logger.debug("reps: squat at frame %s", frame_idx)
            return SQUAT_LABEL

        if not self.classifier.is_standup(keypoints):
            return None
        self.rep_count += 1
        self.reps.append({
            "rep": self.rep_count,
            "squat_frame": self._squat_frame,
            "standup_frame": frame_idx,
        })
        self.reset_cycle()
        self.phase_label = STAND_UP_LABEL
        logger.info("reps: rep %s (standup_frame=%s)", self.rep_count, frame_idx)
        return STAND_UP_LABEL
