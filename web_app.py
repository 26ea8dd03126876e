from __future__ import annotations

import asyncio
import base64
import concurrent.futures
import json
import logging
from functools import lru_cache
from typing import Any, Optional

# Ensure session logging is visible when running under uvicorn
logging.getLogger("squatcount.session").setLevel(logging.INFO)
logging.getLogger("squatcount.reps").setLevel(logging.INFO)

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse

import cv2
import numpy as np

from squatcount.config import PoseConfig, SessionConfig
from squatcount.pose import KeypointSource, PoseModelUnavailable, create_keypoint_source
from squatcount.session import SessionController

logger = logging.getLogger("squatcount.web")

app = FastAPI(title="Squat Counter")

# Pose runs off the event loop so the socket keeps answering pings
_LIVE_EXECUTOR = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="live_pose")


@lru_cache(maxsize=1)
def get_keypoint_source() -> KeypointSource:
    return create_keypoint_source(PoseConfig.from_env())


def get_session_config() -> SessionConfig:
    return SessionConfig.from_env()


def _decode_image(image_data: str) -> Optional[np.ndarray]:
    if image_data.startswith("data:"):
        image_data = image_data.split(",", 1)[1]
    try:
        img_bytes = base64.b64decode(image_data)
    except ValueError:
        return None
    np_arr = np.frombuffer(img_bytes, np.uint8)
    if np_arr.size == 0:
        return None
    return cv2.imdecode(np_arr, cv2.IMREAD_COLOR)


def _state_message(session: SessionController, frame: Optional[np.ndarray] = None) -> dict[str, Any]:
    message: dict[str, Any] = {"type": "state", **session.state.to_dict()}
    keypoints = session.last_keypoints
    if frame is not None and keypoints:
        h, w = frame.shape[:2]
        message["keypoints"] = keypoints.to_json(w, h)
    else:
        message["keypoints"] = None
    return message


_PAGE = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>Squat Counter</title>
    <style>
      body { font-family: sans-serif; background: #07090d; color: #f0f4f8; text-align: center; padding: 24px; }
      video { width: 420px; max-width: 100%; border-radius: 8px; }
      .stats { font-size: 28px; margin: 16px 0; color: #22c55e; }
      .muted { color: #94a3b8; }
      button { font-size: 16px; padding: 8px 16px; margin: 4px; }
    </style>
  </head>
  <body>
    <video id="cam" autoplay playsinline muted></video>
    <div class="stats"><span id="phase">Not Detected</span> AND <span id="reps">0</span></div>
    <p class="muted">Calibration: <span id="calib">pending</span></p>
    <button id="start" disabled>Start Capture</button>
    <button id="stop">Stop Capture</button>
    <button id="calibrate">Recalibrate</button>
    <script>
      const video = document.getElementById("cam");
      const canvas = document.createElement("canvas");
      const ws = new WebSocket((location.protocol === "https:" ? "wss://" : "ws://") + location.host + "/ws/live");
      const startBtn = document.getElementById("start");
      ws.onmessage = (ev) => {
        const msg = JSON.parse(ev.data);
        if (msg.type === "error") { document.getElementById("calib").textContent = msg.message; return; }
        document.getElementById("phase").textContent = msg.phase_label;
        document.getElementById("reps").textContent = msg.rep_count;
        document.getElementById("calib").textContent = msg.calibration_status;
        startBtn.disabled = msg.calibration_status !== "ready" || msg.capturing;
      };
      startBtn.onclick = () => ws.send(JSON.stringify({type: "start"}));
      document.getElementById("stop").onclick = () => ws.send(JSON.stringify({type: "stop"}));
      document.getElementById("calibrate").onclick = () => ws.send(JSON.stringify({type: "calibrate"}));
      navigator.mediaDevices.getUserMedia({video: {width: 640, height: 480}}).then((stream) => {
        video.srcObject = stream;
        setInterval(() => {
          if (ws.readyState !== WebSocket.OPEN || !video.videoWidth) return;
          canvas.width = video.videoWidth;
          canvas.height = video.videoHeight;
          canvas.getContext("2d").drawImage(video, 0, 0);
          ws.send(JSON.stringify({image: canvas.toDataURL("image/jpeg", 0.7)}));
        }, __INTERVAL_MS__);
      });
    </script>
  </body>
</html>
"""


@app.get("/", response_class=HTMLResponse)
def index() -> HTMLResponse:
    interval_ms = int(get_session_config().poll_interval_sec * 1000)
    return HTMLResponse(_PAGE.replace("__INTERVAL_MS__", str(interval_ms)))


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.websocket("/ws/live")
async def live_socket(websocket: WebSocket) -> None:
    await websocket.accept()
    try:
        source = get_keypoint_source()
    except PoseModelUnavailable as exc:
        logger.error("live: pose model unavailable: %s", exc)
        await websocket.send_text(json.dumps({"type": "error", "message": str(exc)}))
        await websocket.close(code=1011)
        return

    session = SessionController(source, config=get_session_config())
    session.begin_calibration()
    logger.info("live: session started")
    loop = asyncio.get_running_loop()
    try:
        while True:
            msg = await websocket.receive_text()
            try:
                payload = json.loads(msg)
            except json.JSONDecodeError:
                continue
            kind = payload.get("type")
            frame = None
            if kind == "close":
                break
            if kind == "calibrate":
                session.begin_calibration()
            elif kind == "start":
                session.start_capture()
            elif kind == "stop":
                session.stop_capture()
            elif payload.get("image"):
                frame = _decode_image(payload["image"])
                if frame is None:
                    continue
                step = session.tick if session.state.capturing else session.calibrate_frame
                await loop.run_in_executor(_LIVE_EXECUTOR, step, frame)
            else:
                continue
            await websocket.send_text(json.dumps(_state_message(session, frame)))
        await websocket.close()
    except WebSocketDisconnect:
        logger.info("live: client disconnected (rep_count=%s)", session.state.rep_count)
    finally:
        session.close()
        logger.info("live: session closed (rep_count=%s)", session.state.rep_count)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("web_app:app", host="0.0.0.0", port=8000, reload=True)
