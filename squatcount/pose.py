"""
MediaPipe Pose estimation mapped onto 17 named body parts.
Returns keypoints in image coordinates (pixel) with a confidence score each.
Uses Pose Landmarker task (MediaPipe 0.10+). CPU-only, suitable for macOS.
"""
from __future__ import annotations

import logging
import os
import urllib.request
from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Iterator, Optional, Protocol

import cv2
import numpy as np

from .config import PoseConfig

logger = logging.getLogger(__name__)


class BodyPart(str, Enum):
    NOSE = "nose"
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    LEFT_EAR = "left_ear"
    RIGHT_EAR = "right_ear"
    LEFT_SHOULDER = "left_shoulder"
    RIGHT_SHOULDER = "right_shoulder"
    LEFT_ELBOW = "left_elbow"
    RIGHT_ELBOW = "right_elbow"
    LEFT_WRIST = "left_wrist"
    RIGHT_WRIST = "right_wrist"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_KNEE = "left_knee"
    RIGHT_KNEE = "right_knee"
    LEFT_ANKLE = "left_ankle"
    RIGHT_ANKLE = "right_ankle"


# MediaPipe Pose landmark index for each body part (33-landmark topology)
MEDIAPIPE_INDEX: dict[BodyPart, int] = {
    BodyPart.NOSE: 0,
    BodyPart.LEFT_EYE: 2,
    BodyPart.RIGHT_EYE: 5,
    BodyPart.LEFT_EAR: 7,
    BodyPart.RIGHT_EAR: 8,
    BodyPart.LEFT_SHOULDER: 11,
    BodyPart.RIGHT_SHOULDER: 12,
    BodyPart.LEFT_ELBOW: 13,
    BodyPart.RIGHT_ELBOW: 14,
    BodyPart.LEFT_WRIST: 15,
    BodyPart.RIGHT_WRIST: 16,
    BodyPart.LEFT_HIP: 23,
    BodyPart.RIGHT_HIP: 24,
    BodyPart.LEFT_KNEE: 25,
    BodyPart.RIGHT_KNEE: 26,
    BodyPart.LEFT_ANKLE: 27,
    BodyPart.RIGHT_ANKLE: 28,
}

# Pose Landmarker model URL (lite = faster, CPU-friendly)
_POSE_MODEL_URL = "https://storage.googleapis.com/mediapipe-models/pose_landmarker/pose_landmarker_lite/float16/1/pose_landmarker_lite.task"
_POSE_MODEL_FILENAME = "pose_landmarker_lite.task"


class PoseModelUnavailable(RuntimeError):
    """Raised when no MediaPipe pose backend can be loaded."""


@dataclass(frozen=True)
class Keypoint:
    """Single detected landmark in pixel coordinates."""

    name: BodyPart
    x: float
    y: float
    score: float


class KeypointSet:
    """Keypoints of one frame, at most one per body part.

    Lookups of parts the estimator omitted return None; callers must treat
    that as "cannot classify", never as a zero coordinate.
    """

    def __init__(self, points: Optional[dict[BodyPart, Keypoint]] = None):
        self._points: dict[BodyPart, Keypoint] = dict(points or {})

    @classmethod
    def from_keypoints(cls, keypoints: Iterable[Keypoint]) -> "KeypointSet":
        points: dict[BodyPart, Keypoint] = {}
        for kp in keypoints:
            name = BodyPart(kp.name)
            if name in points:
                raise ValueError(f"duplicate keypoint: {name.value}")
            points[name] = kp
        return cls(points)

    def get(self, name: BodyPart) -> Optional[Keypoint]:
        return self._points.get(BodyPart(name))

    def y(self, name: BodyPart) -> Optional[float]:
        kp = self.get(name)
        return kp.y if kp is not None else None

    def __contains__(self, name: object) -> bool:
        try:
            return BodyPart(name) in self._points
        except ValueError:
            return False

    def __iter__(self) -> Iterator[Keypoint]:
        return iter(self._points.values())

    def __len__(self) -> int:
        return len(self._points)

    def __repr__(self) -> str:
        return f"KeypointSet({sorted(p.value for p in self._points)})"

    def to_json(self, width: Optional[float] = None, height: Optional[float] = None) -> dict[str, list[float]]:
        """Map part name -> [x, y, score]; normalized to [0, 1] when frame size is given."""
        sx = 1.0 / width if width else 1.0
        sy = 1.0 / height if height else 1.0
        return {
            kp.name.value: [round(kp.x * sx, 4), round(kp.y * sy, 4), round(kp.score, 3)]
            for kp in self._points.values()
        }


class KeypointSource(Protocol):
    def estimate(self, frame: Any) -> Optional[KeypointSet]:
        ...


def _get_model_path(cache_dir: Optional[str] = None) -> str:
    """Return path to pose landmarker model, downloading if needed."""
    if cache_dir is None:
        cache_dir = os.path.join(os.path.dirname(__file__), "..", "outputs")
    os.makedirs(cache_dir, exist_ok=True)
    path = os.path.join(cache_dir, _POSE_MODEL_FILENAME)
    if not os.path.isfile(path):
        logger.info("pose: downloading model to %s", path)
        urllib.request.urlretrieve(_POSE_MODEL_URL, path)
    return path


def _create_landmarker(cache_dir: Optional[str] = None, min_confidence: float = 0.5):
    """Create PoseLandmarker instance (MediaPipe 0.10+ tasks API)."""
    from mediapipe.tasks.python.core import base_options
    from mediapipe.tasks.python.vision import PoseLandmarker, PoseLandmarkerOptions
    from mediapipe.tasks.python.vision.core import vision_task_running_mode

    model_path = _get_model_path(cache_dir)
    base = base_options.BaseOptions(model_asset_path=model_path)
    options = PoseLandmarkerOptions(
        base_options=base,
        running_mode=vision_task_running_mode.VisionTaskRunningMode.IMAGE,
        num_poses=1,
        min_pose_detection_confidence=min_confidence,
        min_pose_presence_confidence=min_confidence,
        min_tracking_confidence=min_confidence,
    )
    return PoseLandmarker.create_from_options(options)


def create_pose_detector(
    min_detection_confidence: float = 0.5,
    min_tracking_confidence: float = 0.5,
    model_complexity: int = 1,
    cache_dir: Optional[str] = None,
):
    """
    Create pose detector. Uses MediaPipe 0.10+ PoseLandmarker (CPU-friendly),
    falling back to the legacy solutions API. Raises PoseModelUnavailable when
    neither loads, so the failure surfaces once at startup.
    """
    try:
        return _create_landmarker(cache_dir, min_detection_confidence)
    except (ImportError, OSError, RuntimeError, ValueError) as exc:
        logger.warning("pose: landmarker unavailable (%s), trying legacy API", exc)
    try:
        import mediapipe as mp

        return mp.solutions.pose.Pose(
            static_image_mode=False,
            model_complexity=min(model_complexity, 2),
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
    except (ImportError, AttributeError, RuntimeError) as exc:
        raise PoseModelUnavailable(f"Cannot load MediaPipe pose model: {exc}") from exc


def _landmark_score(lm: Any) -> float:
    visibility = getattr(lm, "visibility", None)
    # tasks API leaves visibility unset on some builds
    return float(visibility) if visibility is not None else 1.0


def _to_keypoint_set(landmarks: Any, w: int, h: int, min_score: float) -> KeypointSet:
    points: dict[BodyPart, Keypoint] = {}
    for part, idx in MEDIAPIPE_INDEX.items():
        if idx >= len(landmarks):
            continue
        lm = landmarks[idx]
        score = _landmark_score(lm)
        if score < min_score:
            continue
        points[part] = Keypoint(name=part, x=lm.x * w, y=lm.y * h, score=score)
    return KeypointSet(points)


def process_frame(
    frame_bgr: np.ndarray,
    pose,  # PoseLandmarker or legacy mp.solutions.pose.Pose
    min_score: float = 0.0,
) -> Optional[KeypointSet]:
    """
    Run pose estimation on one BGR frame.
    Returns a KeypointSet in pixel coords, or None if no pose.
    Landmarks scoring below min_score are left out of the set.
    """
    h, w = frame_bgr.shape[:2]
    rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)

    # MediaPipe 0.10+ PoseLandmarker
    if hasattr(pose, "detect"):
        from mediapipe.tasks.python.vision.core import image as mp_image
        mp_img = mp_image.Image(image_format=mp_image.ImageFormat.SRGB, data=rgb)
        result = pose.detect(mp_img)
        if not result.pose_landmarks or len(result.pose_landmarks) == 0:
            return None
        return _to_keypoint_set(result.pose_landmarks[0], w, h, min_score)
    # Legacy mp.solutions.pose.Pose (MediaPipe < 0.10)
    results = pose.process(rgb)
    if not results.pose_landmarks:
        return None
    return _to_keypoint_set(results.pose_landmarks.landmark, w, h, min_score)


class PoseKeypointSource:
    """KeypointSource backed by a MediaPipe detector."""

    def __init__(self, pose, min_score: float = 0.3):
        self.pose = pose
        self.min_score = min_score

    def estimate(self, frame: np.ndarray) -> Optional[KeypointSet]:
        if frame is None:
            return None
        return process_frame(frame, self.pose, self.min_score)


def create_keypoint_source(config: Optional[PoseConfig] = None) -> PoseKeypointSource:
    """Build the default MediaPipe-backed source from a PoseConfig."""
    config = config or PoseConfig()
    pose = create_pose_detector(
        min_detection_confidence=config.min_detection_confidence,
        min_tracking_confidence=config.min_tracking_confidence,
        model_complexity=config.model_complexity,
        cache_dir=config.model_cache_dir,
    )
    logger.info("pose: detector ready (%s)", type(pose).__name__)
    return PoseKeypointSource(pose, min_score=config.min_keypoint_score)
