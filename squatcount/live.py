"""
Live webcam pipeline: capture loop, calibration, polled rep counting, overlay window.
Keys: space = start/stop capture, c = recalibrate, q = quit.
"""
from __future__ import annotations

import json
import logging
import os
from typing import Optional

import cv2

from .config import PoseConfig, SessionConfig
from .io_stream import LatestFrame, webcam_frames
from .overlay import draw_session_overlay
from .pose import create_keypoint_source
from .session import CALIBRATION_FAILED, CALIBRATION_READY, SessionController

logger = logging.getLogger(__name__)

WINDOW_NAME = "Squat Counter (space=start/stop, c=calibrate, q=quit)"


def _hint(status: str, capturing: bool) -> Optional[str]:
    if status == CALIBRATION_FAILED:
        return "Calibration failed: stand upright facing the camera, press c"
    if status != CALIBRATION_READY:
        return "Stand still, calibrating..."
    if not capturing:
        return "Press space to start"
    return None


def run_live_pipeline(
    camera_id: int = 0,
    output_dir: Optional[str] = None,
    session_config: Optional[SessionConfig] = None,
    pose_config: Optional[PoseConfig] = None,
) -> int:
    """
    Run live capture loop until q. Calibration starts automatically after the
    configured delay. Returns the final rep count; writes a summary JSON when
    output_dir is given.
    """
    source = create_keypoint_source(pose_config or PoseConfig.from_env())
    latest = LatestFrame()
    session = SessionController(
        source,
        frames=latest.get,
        config=session_config or SessionConfig.from_env(),
    )
    session.launch_calibration()

    cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
    try:
        for frame_bgr in webcam_frames(camera_id):
            latest.put(frame_bgr)
            state = session.state
            out_frame = frame_bgr.copy()
            draw_session_overlay(
                out_frame,
                session.last_keypoints,
                state,
                _hint(state.calibration_status, state.capturing),
            )
            cv2.imshow(WINDOW_NAME, out_frame)
            key = cv2.waitKey(1) & 0xFF
            if key == ord("q"):
                break
            if key == ord(" "):
                if state.capturing:
                    session.stop_capture()
                else:
                    session.start_capture()
            if key == ord("c") and not state.capturing:
                session.launch_calibration()
    finally:
        session.close()
        cv2.destroyAllWindows()

    final = session.state
    logger.info("live: finished, rep_count=%s", final.rep_count)
    if output_dir:
        write_summary(os.path.join(output_dir, "live_summary.json"), session, source="live")
    return final.rep_count


def write_summary(path: str, session: SessionController, source: str) -> str:
    """Write rep count, calibration band and per-rep frames as JSON."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    band = session.band
    state = session.state
    payload = {
        "source": source,
        "rep_count": state.rep_count,
        "calibration_status": state.calibration_status,
        "band": None if band is None else {
            "right": [band.right_side.min, band.right_side.max],
            "left": [band.left_side.min, band.left_side.max],
        },
        "reps": session.reps,
    }
    with open(path, "w") as f:
        json.dump(payload, f, indent=2)
    return path
