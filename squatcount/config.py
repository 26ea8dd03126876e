"""Runtime configuration for pose extraction and the counting session."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, TypeVar

from dotenv import load_dotenv

ENV_PREFIX = "SQUATCOUNT_"

T = TypeVar("T")


def _env_value(
    env: Mapping[str, str],
    key: str,
    default: T,
    parse: Callable[[str], T],
) -> T:
    raw = env.get(ENV_PREFIX + key)
    if raw is None or raw.strip() == "":
        return default
    try:
        return parse(raw.strip())
    except ValueError as exc:
        raise ValueError(f"Invalid {ENV_PREFIX + key}={raw!r}: {exc}") from exc


@dataclass(frozen=True)
class PoseConfig:
    """Configuration for MediaPipe Pose extraction.

    Landmarks whose visibility is below ``min_keypoint_score`` are dropped
    from the keypoint set and count as absent.
    """

    model_complexity: int = 1
    min_detection_confidence: float = 0.5
    min_tracking_confidence: float = 0.5
    min_keypoint_score: float = 0.3
    model_cache_dir: Optional[str] = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.min_keypoint_score <= 1.0:
            raise ValueError("min_keypoint_score must be within [0, 1]")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "PoseConfig":
        if env is None:
            load_dotenv()
            env = os.environ
        return cls(
            model_complexity=_env_value(env, "MODEL_COMPLEXITY", 1, int),
            min_detection_confidence=_env_value(env, "MIN_DETECTION_CONFIDENCE", 0.5, float),
            min_tracking_confidence=_env_value(env, "MIN_TRACKING_CONFIDENCE", 0.5, float),
            min_keypoint_score=_env_value(env, "MIN_KEYPOINT_SCORE", 0.3, float),
            model_cache_dir=env.get(ENV_PREFIX + "MODEL_CACHE_DIR") or None,
        )


@dataclass(frozen=True)
class SessionConfig:
    """Timing and calibration knobs for a counting session.

    Attributes:
        poll_interval_sec: Delay between two sampled frames.
        calibration_delay_sec: Wait after session start so the subject can
            get in position before calibration samples are taken.
        calibration_samples: Frames sampled per calibration attempt; the last
            one confirms the standing posture and produces the band.
        calibration_min_valid: Recorded standing samples required for a
            usable band.
        calibration_attempts: Attempts made by blocking calibration before
            the status is reported as failed.
        standup_margin: Half-width of the tolerance band as a fraction of
            the mean ankle-to-hip height.
    """

    poll_interval_sec: float = 0.2
    calibration_delay_sec: float = 2.0
    calibration_samples: int = 3
    calibration_min_valid: int = 2
    calibration_attempts: int = 3
    standup_margin: float = 0.1

    def __post_init__(self) -> None:
        if self.poll_interval_sec <= 0:
            raise ValueError("poll_interval_sec must be positive")
        if self.calibration_delay_sec < 0:
            raise ValueError("calibration_delay_sec must be non-negative")
        if self.calibration_samples < 2:
            raise ValueError("calibration_samples must be at least 2")
        if not 1 <= self.calibration_min_valid <= self.calibration_samples - 1:
            raise ValueError("calibration_min_valid must be between 1 and calibration_samples - 1")
        if self.calibration_attempts < 1:
            raise ValueError("calibration_attempts must be at least 1")
        if self.standup_margin < 0:
            raise ValueError("standup_margin must be non-negative")

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "SessionConfig":
        """Build from SQUATCOUNT_* variables; .env is loaded when env is None."""
        if env is None:
            load_dotenv()
            env = os.environ
        return cls(
            poll_interval_sec=_env_value(env, "POLL_INTERVAL_SEC", 0.2, float),
            calibration_delay_sec=_env_value(env, "CALIBRATION_DELAY_SEC", 2.0, float),
            calibration_samples=_env_value(env, "CALIBRATION_SAMPLES", 3, int),
            calibration_min_valid=_env_value(env, "CALIBRATION_MIN_VALID", 2, int),
            calibration_attempts=_env_value(env, "CALIBRATION_ATTEMPTS", 3, int),
            standup_margin=_env_value(env, "STANDUP_MARGIN", 0.1, float),
        )
