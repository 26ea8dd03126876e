"""
Frame sources for video files and webcams, plus a latest-frame holder that
lets a polling session sample whatever the capture loop saw last.
"""
from __future__ import annotations

import threading
from typing import Generator, Optional, Union

import cv2
import numpy as np


def _open_capture(source: Union[str, int]) -> cv2.VideoCapture:
    cap = cv2.VideoCapture(source)
    if not cap.isOpened():
        if isinstance(source, int):
            raise RuntimeError(f"Cannot open camera {source}. Check permissions and that no other app is using it.")
        raise FileNotFoundError(f"Cannot open video: {source}")
    return cap


def sampled_video_frames(
    video_path: str,
    interval_sec: float,
) -> Generator[tuple[np.ndarray, float], None, None]:
    """
    Yield one frame per interval_sec of video time.
    Yields: (frame_bgr, timestamp_sec).
    """
    cap = _open_capture(video_path)
    try:
        fps = cap.get(cv2.CAP_PROP_FPS) or 30.0
        step = max(1, int(round(interval_sec * fps)))
        idx = 0
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            if idx % step == 0:
                yield (frame, idx / fps)
            idx += 1
    finally:
        cap.release()


def webcam_frames(
    camera_id: int = 0,
    width: int = 1280,
    height: int = 720,
) -> Generator[np.ndarray, None, None]:
    """Yield webcam frames until the device stops delivering; releases on close."""
    cap = _open_capture(camera_id)
    try:
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        while True:
            ret, frame = cap.read()
            if not ret:
                break
            yield frame
    finally:
        cap.release()


class LatestFrame:
    """Thread-safe slot holding the most recent frame."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._frame: Optional[np.ndarray] = None

    def put(self, frame: np.ndarray) -> None:
        with self._lock:
            self._frame = frame

    def get(self) -> Optional[np.ndarray]:
        with self._lock:
            return None if self._frame is None else self._frame.copy()
