"""
Standing-posture calibration.
Samples a few frames of the subject standing upright and derives, per side,
the accepted range of ankle-to-hip height for a stand-up frame.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np

from .geometry import leg_heights, limbs_aligned
from .pose import KeypointSet

logger = logging.getLogger(__name__)

# Frames sampled per calibration; the last one only confirms the posture.
CALIBRATION_SAMPLES = 3
# Recorded standing samples needed for a usable band.
MIN_VALID_SAMPLES = 2
# Band half-width as a fraction of the mean ankle-to-hip height.
STANDUP_MARGIN = 0.1


class CalibrationError(ValueError):
    """Raised when the sampled frames cannot produce a usable tolerance band."""


@dataclass(frozen=True)
class SideBand:
    min: float
    max: float

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max

    @property
    def width(self) -> float:
        return self.max - self.min


@dataclass(frozen=True)
class ToleranceBand:
    """Accepted ankle.y - hip.y range per side while standing."""

    right_side: SideBand
    left_side: SideBand

    @classmethod
    def from_means(cls, right_mean: float, left_mean: float, margin: float = STANDUP_MARGIN) -> "ToleranceBand":
        return cls(
            right_side=SideBand(min=right_mean - right_mean * margin, max=right_mean + right_mean * margin),
            left_side=SideBand(min=left_mean - left_mean * margin, max=left_mean + left_mean * margin),
        )

    def contains(self, right: float, left: float) -> bool:
        return self.right_side.contains(right) and self.left_side.contains(left)


class Calibrator:
    """
    Fixed-length calibration fed one frame's keypoints at a time.
    Samples before the last record ankle-to-hip height per side when the
    limbs are aligned. The last sample, if aligned, turns the recorded means
    into a ToleranceBand. Skipped samples are not retried; the loop still
    advances. A degenerate result raises CalibrationError.
    """

    def __init__(
        self,
        samples: int = CALIBRATION_SAMPLES,
        min_valid: int = MIN_VALID_SAMPLES,
        margin: float = STANDUP_MARGIN,
    ):
        self.samples = samples
        self.min_valid = min_valid
        self.margin = margin
        self.right: list[float] = []
        self.left: list[float] = []
        self.index = 0
        self.band: Optional[ToleranceBand] = None

    @property
    def done(self) -> bool:
        return self.index >= self.samples

    def add_sample(self, keypoints: Optional[KeypointSet]) -> Optional[ToleranceBand]:
        """Consume one sample. Returns the band after the final sample, else None."""
        if self.done:
            raise RuntimeError("calibration already finished")
        self.index += 1
        aligned = limbs_aligned(keypoints)
        if self.index < self.samples:
            heights = leg_heights(keypoints) if aligned else None
            if heights is None:
                logger.info("calibration: sample %s/%s skipped (no aligned pose)", self.index, self.samples)
                return None
            self.right.append(heights[0])
            self.left.append(heights[1])
            logger.debug("calibration: sample %s/%s right=%.2f left=%.2f", self.index, self.samples, *heights)
            return None
        if not aligned:
            raise CalibrationError("final calibration sample did not show an aligned standing pose")
        self.band = self._build_band()
        logger.info(
            "calibration: band right=[%.2f, %.2f] left=[%.2f, %.2f] from %s samples",
            self.band.right_side.min, self.band.right_side.max,
            self.band.left_side.min, self.band.left_side.max,
            len(self.right),
        )
        return self.band

    def _build_band(self) -> ToleranceBand:
        if len(self.right) < self.min_valid:
            raise CalibrationError(
                f"only {len(self.right)} valid standing samples (need {self.min_valid})"
            )
        right_mean = float(np.mean(self.right))
        left_mean = float(np.mean(self.left))
        if right_mean <= 0 or left_mean <= 0:
            raise CalibrationError(
                f"non-positive ankle-to-hip height (right={right_mean:.2f}, left={left_mean:.2f})"
            )
        return ToleranceBand.from_means(right_mean, left_mean, self.margin)
