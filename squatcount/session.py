"""
Session orchestration: calibration first, then fixed-interval polling that
feeds each sampled frame through the phase probes into the rep counter.

Frames can be pulled by the controller's own polling thread (``frames``
callable) or pushed by the caller (``calibrate_frame`` / ``tick``), e.g. from
a websocket. Either way all state changes happen under one lock, and a frame
sampled before ``stop_capture`` never reaches the rep counter.
"""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable, Optional

from .calibration import CalibrationError, Calibrator, ToleranceBand
from .config import SessionConfig
from .phases import Phase, PhaseClassifier
from .pose import KeypointSet, KeypointSource
from .reps import RepCounter, RepCycle

logger = logging.getLogger(__name__)

CALIBRATION_PENDING = "pending"
CALIBRATION_READY = "ready"
CALIBRATION_FAILED = "failed"

NOT_DETECTED_LABEL = "Not Detected"
DETECTED_LABEL = "Detected"


@dataclass(frozen=True)
class SessionState:
    """Snapshot exposed to the UI after every processed frame."""

    phase_label: str
    rep_count: int
    calibration_status: str
    capturing: bool = False
    phase: str = Phase.NONE.value

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class SessionController:
    def __init__(
        self,
        source: KeypointSource,
        frames: Optional[Callable[[], Any]] = None,
        config: Optional[SessionConfig] = None,
        on_update: Optional[Callable[[SessionState], None]] = None,
    ):
        self.source = source
        self.frames = frames
        self.config = config or SessionConfig()
        self.on_update = on_update
        self._lock = threading.Lock()
        self._closed = threading.Event()
        self._counter = RepCounter(PhaseClassifier(source=source))
        self._status = CALIBRATION_PENDING
        self._calibrator: Optional[Calibrator] = None
        self._calibration_not_before = 0.0
        self._capturing = False
        self._generation = 0
        self._frame_idx = 0
        self._phase = Phase.NONE
        self._thread: Optional[threading.Thread] = None
        self._calibration_thread: Optional[threading.Thread] = None
        self.last_keypoints: Optional[KeypointSet] = None

    # -- observable state ---------------------------------------------------

    def _snapshot(self) -> SessionState:
        if self._counter.phase_label is not None:
            label = self._counter.phase_label
        elif self._status == CALIBRATION_READY:
            label = DETECTED_LABEL
        else:
            label = NOT_DETECTED_LABEL
        return SessionState(
            phase_label=label,
            rep_count=self._counter.rep_count,
            calibration_status=self._status,
            capturing=self._capturing,
            phase=self._phase.value,
        )

    def _publish(self, state: SessionState) -> None:
        if self.on_update is not None:
            self.on_update(state)

    @property
    def state(self) -> SessionState:
        with self._lock:
            return self._snapshot()

    @property
    def band(self) -> Optional[ToleranceBand]:
        return self._counter.classifier.band

    @property
    def cycle(self) -> RepCycle:
        return self._counter.cycle

    @property
    def reps(self) -> list[dict[str, Any]]:
        with self._lock:
            return list(self._counter.reps)

    # -- calibration ----------------------------------------------------------

    def begin_calibration(self, delay: Optional[float] = None) -> bool:
        """Arm a fresh calibration; frames are ignored until the delay has passed."""
        if delay is None:
            delay = self.config.calibration_delay_sec
        with self._lock:
            if self._capturing:
                logger.warning("session: calibration refused while capturing")
                return False
            self._calibrator = Calibrator(
                samples=self.config.calibration_samples,
                min_valid=self.config.calibration_min_valid,
                margin=self.config.standup_margin,
            )
            self._status = CALIBRATION_PENDING
            self._calibration_not_before = time.monotonic() + delay
            state = self._snapshot()
        logger.info("session: calibration armed (delay=%.1fs)", delay)
        self._publish(state)
        return True

    def calibrate_frame(self, frame: Any) -> SessionState:
        """Feed one frame to the armed calibration; no-op if none is armed."""
        with self._lock:
            calibrator = self._calibrator
            if calibrator is None or time.monotonic() < self._calibration_not_before:
                return self._snapshot()
        keypoints = self.source.estimate(frame) if frame is not None else None
        with self._lock:
            if self._calibrator is not calibrator:
                return self._snapshot()
            self.last_keypoints = keypoints
            try:
                band = calibrator.add_sample(keypoints)
            except CalibrationError as exc:
                logger.warning("session: calibration failed: %s", exc)
                self._calibrator = None
                self._status = CALIBRATION_FAILED
            else:
                if band is not None:
                    self._counter.classifier.band = band
                    self._calibrator = None
                    self._status = CALIBRATION_READY
            state = self._snapshot()
        self._publish(state)
        return state

    def calibrate(self) -> Optional[ToleranceBand]:
        """
        Blocking calibration over the pulled frames: wait the configured delay,
        then sample one frame per poll interval. Retries a failed attempt up to
        calibration_attempts times. Returns the band, or None on failure.
        """
        if self.frames is None:
            raise RuntimeError("calibrate() needs a frame source; use calibrate_frame() to push frames")
        attempts = self.config.calibration_attempts
        for attempt in range(1, attempts + 1):
            if not self.begin_calibration(delay=0.0):
                return None
            if self._closed.wait(self.config.calibration_delay_sec):
                return None
            while True:
                with self._lock:
                    calibrator = self._calibrator
                if calibrator is None:
                    break
                self.calibrate_frame(self.frames())
                with self._lock:
                    pending = self._calibrator is not None
                if pending and self._closed.wait(self.config.poll_interval_sec):
                    return None
            with self._lock:
                status = self._status
            if status == CALIBRATION_READY:
                return self.band
            logger.info("session: calibration attempt %s/%s failed", attempt, attempts)
        logger.error("session: calibration failed after %s attempts", attempts)
        return None

    def launch_calibration(self) -> threading.Thread:
        """Run calibrate() on a background thread; returns the running one if already started."""
        with self._lock:
            thread = self._calibration_thread
            if thread is not None and thread.is_alive():
                logger.info("session: calibration already running")
                return thread
            thread = threading.Thread(target=self.calibrate, daemon=True, name="squatcount-calibration")
            self._calibration_thread = thread
            thread.start()
        return thread

    # -- capture --------------------------------------------------------------

    def start_capture(self) -> bool:
        """Start counting. Returns False while calibration is not ready."""
        with self._lock:
            if self._capturing:
                return True
            if self._status != CALIBRATION_READY:
                logger.warning("session: capture refused, calibration %s", self._status)
                return False
            self._capturing = True
            self._generation += 1
            self._counter.reset_cycle()
            generation = self._generation
            state = self._snapshot()
        logger.info("session: capture started (rep_count=%s)", state.rep_count)
        if self.frames is not None:
            self._thread = threading.Thread(
                target=self._poll_loop,
                args=(generation,),
                daemon=True,
                name="squatcount-poll",
            )
            self._thread.start()
        self._publish(state)
        return True

    def stop_capture(self) -> None:
        with self._lock:
            if not self._capturing:
                return
            self._capturing = False
            self._generation += 1
            state = self._snapshot()
        logger.info("session: capture stopped (rep_count=%s)", state.rep_count)
        self._publish(state)

    def tick(self, frame: Any) -> SessionState:
        """Process one pushed frame while capturing."""
        with self._lock:
            if not self._capturing:
                return self._snapshot()
            generation = self._generation
        return self._process(frame, generation)

    def _process(self, frame: Any, generation: int) -> SessionState:
        keypoints = self.source.estimate(frame) if frame is not None else None
        with self._lock:
            if generation != self._generation or not self._capturing:
                logger.debug("session: dropped frame sampled before stop")
                return self._snapshot()
            self._frame_idx += 1
            self.last_keypoints = keypoints
            self._counter.step(keypoints, self._frame_idx)
            self._phase = self._counter.classifier.classify(keypoints)
            state = self._snapshot()
        self._publish(state)
        return state

    def _poll_loop(self, generation: int) -> None:
        interval = self.config.poll_interval_sec
        try:
            while not self._closed.is_set():
                with self._lock:
                    if generation != self._generation:
                        break
                started = time.perf_counter()
                self._process(self.frames(), generation)
                remaining = interval - (time.perf_counter() - started)
                if remaining > 0 and self._closed.wait(remaining):
                    break
        except Exception:
            logger.exception("session: polling stopped, keypoint source failed")
            with self._lock:
                stopped = generation == self._generation
                if stopped:
                    self._capturing = False
                    self._generation += 1
                state = self._snapshot()
            if stopped:
                self._publish(state)
        logger.debug("session: poll loop %s exited", generation)

    def close(self) -> None:
        self._closed.set()
        self.stop_capture()
        for thread in (self._thread, self._calibration_thread):
            if thread is not None and thread is not threading.current_thread():
                thread.join(timeout=self.config.poll_interval_sec * 5)
