import base64
import unittest
from unittest import mock

import cv2
import numpy as np
from fastapi.testclient import TestClient

import web_app
from squatcount.config import SessionConfig
from squatcount.pose import PoseModelUnavailable

from tests.poses import squatting, standing


class ScriptedSource:
    """Returns queued keypoint sets in order, whatever frame it gets."""

    def __init__(self, results):
        self.results = list(results)

    def estimate(self, frame):
        return self.results.pop(0) if self.results else None


def _image_message() -> dict:
    ok, buf = cv2.imencode(".jpg", np.zeros((16, 16, 3), dtype=np.uint8))
    assert ok
    return {"image": "data:image/jpeg;base64," + base64.b64encode(buf.tobytes()).decode("ascii")}


class WebAppTests(unittest.TestCase):
    def setUp(self) -> None:
        patcher = mock.patch.object(
            web_app, "get_session_config", return_value=SessionConfig(calibration_delay_sec=0.0)
        )
        patcher.start()
        self.addCleanup(patcher.stop)
        self.client = TestClient(web_app.app)

    def test_health(self) -> None:
        self.assertEqual(self.client.get("/health").json(), {"status": "ok"})

    def test_index_page_uses_poll_interval(self) -> None:
        resp = self.client.get("/")
        self.assertEqual(resp.status_code, 200)
        self.assertIn("Squat Counter", resp.text)
        self.assertIn("}, 200);", resp.text)

    def test_live_session_counts_a_rep(self) -> None:
        source = ScriptedSource([standing(), standing(), standing(), squatting(), standing()])
        with mock.patch.object(web_app, "get_keypoint_source", return_value=source):
            with self.client.websocket_connect("/ws/live") as ws:
                for _ in range(3):
                    ws.send_json(_image_message())
                    state = ws.receive_json()
                self.assertEqual(state["calibration_status"], "ready")
                self.assertFalse(state["capturing"])

                ws.send_json({"type": "start"})
                self.assertTrue(ws.receive_json()["capturing"])

                ws.send_json(_image_message())
                state = ws.receive_json()
                self.assertEqual(state["phase_label"], "Squat")
                self.assertEqual(state["rep_count"], 0)

                ws.send_json(_image_message())
                state = ws.receive_json()
                self.assertEqual(state["phase_label"], "Stand up")
                self.assertEqual(state["rep_count"], 1)
                self.assertIn("left_hip", state["keypoints"])

                ws.send_json({"type": "stop"})
                state = ws.receive_json()
                self.assertFalse(state["capturing"])
                self.assertEqual(state["rep_count"], 1)
                ws.send_json({"type": "close"})

    def test_start_refused_until_calibrated(self) -> None:
        with mock.patch.object(web_app, "get_keypoint_source", return_value=ScriptedSource([])):
            with self.client.websocket_connect("/ws/live") as ws:
                ws.send_json({"type": "start"})
                state = ws.receive_json()
                self.assertFalse(state["capturing"])
                self.assertEqual(state["calibration_status"], "pending")
                ws.send_json({"type": "close"})

    def test_model_failure_reported_to_client(self) -> None:
        with mock.patch.object(
            web_app, "get_keypoint_source", side_effect=PoseModelUnavailable("no model")
        ):
            with self.client.websocket_connect("/ws/live") as ws:
                msg = ws.receive_json()
        self.assertEqual(msg, {"type": "error", "message": "no model"})


class DecodeImageTests(unittest.TestCase):
    def test_invalid_payloads_decode_to_none(self) -> None:
        self.assertIsNone(web_app._decode_image("not base64!!"))
        self.assertIsNone(web_app._decode_image(""))

    def test_non_ascii_payload_decodes_to_none(self) -> None:
        self.assertIsNone(web_app._decode_image("data:image/jpeg;base64,ééé"))

    def test_data_url_decodes_to_bgr_frame(self) -> None:
        frame = web_app._decode_image(_image_message()["image"])
        self.assertEqual(frame.shape, (16, 16, 3))


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
