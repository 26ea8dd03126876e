#!/usr/bin/env python3
"""
Squat rep counter: offline (video) or live (webcam).
Usage:
  Offline: python run.py --video path/to/video.mp4
  Live:    python run.py --live [--camera 0]
"""
from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

from dotenv import load_dotenv

from squatcount.config import PoseConfig, SessionConfig
from squatcount.io_stream import sampled_video_frames
from squatcount.live import run_live_pipeline, write_summary
from squatcount.pose import PoseModelUnavailable, create_keypoint_source
from squatcount.session import CALIBRATION_FAILED, CALIBRATION_READY, SessionController

logger = logging.getLogger("squatcount.run")


def run_offline(
    video_path: str,
    output_dir: str = "outputs",
    session_config: SessionConfig | None = None,
    pose_config: PoseConfig | None = None,
) -> SessionController:
    """
    Replay a video at the polling interval: calibrate on the frames after the
    calibration delay, then count reps on the rest. Writes offline_summary.json.
    """
    config = session_config or SessionConfig.from_env()
    source = create_keypoint_source(pose_config or PoseConfig.from_env())
    session = SessionController(source, config=config)
    session.begin_calibration(delay=0.0)
    for frame_bgr, timestamp in sampled_video_frames(video_path, config.poll_interval_sec):
        if timestamp < config.calibration_delay_sec:
            continue
        state = session.state
        if state.capturing:
            session.tick(frame_bgr)
            continue
        state = session.calibrate_frame(frame_bgr)
        if state.calibration_status == CALIBRATION_FAILED:
            logger.warning("offline: calibration failed at %.1fs, retrying", timestamp)
            session.begin_calibration(delay=0.0)
        elif state.calibration_status == CALIBRATION_READY and session.start_capture():
            logger.info("offline: calibrated at %.1fs", timestamp)
    summary = write_summary(os.path.join(output_dir, "offline_summary.json"), session, source="offline")
    print(f"Offline done. Reps: {session.state.rep_count}. Summary: {summary}")
    return session


def main() -> None:
    load_dotenv()
    load_dotenv(Path(__file__).resolve().parent / ".env")
    logging.basicConfig(
        level=os.getenv("SQUATCOUNT_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ap = argparse.ArgumentParser(description="Squat rep counter: offline video or live webcam")
    ap.add_argument("--video", type=str, default=None, help="Path to video file (offline mode)")
    ap.add_argument("--live", action="store_true", help="Use live webcam")
    ap.add_argument("--camera", type=int, default=0, help="Camera device id (default 0)")
    ap.add_argument("--output-dir", type=str, default="outputs", help="Output directory")
    args = ap.parse_args()

    if args.live and args.video:
        print("Error: provide exactly one of --video or --live", file=sys.stderr)
        sys.exit(1)
    if not args.live and not args.video:
        print("Error: provide --video PATH or --live", file=sys.stderr)
        sys.exit(1)

    try:
        if args.live:
            run_live_pipeline(camera_id=args.camera, output_dir=args.output_dir)
        else:
            if not os.path.isfile(args.video):
                print(f"Error: video file not found: {args.video}", file=sys.stderr)
                sys.exit(1)
            run_offline(args.video, output_dir=args.output_dir)
    except PoseModelUnavailable as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    except ValueError as exc:
        print(f"Error: invalid configuration: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
