"""Per-frame wiring: detector -> decision engine -> cue dispatcher and telemetry."""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

import numpy as np

from ..models import ActionToken, Detection
from .cue_dispatcher import CueDispatcher, SessionStats
from .decision_engine import DecisionEngine
from .detector import Detector
from .telemetry_uploader import TelemetryUploader

LOGGER = logging.getLogger(__name__)


class FrameController:
    """Runs the decision pipeline on every Nth frame delivered by the frame source."""

    def __init__(
        self,
        detector: Detector,
        engine: DecisionEngine,
        dispatcher: CueDispatcher,
        uploader: TelemetryUploader,
        *,
        process_every_n_frames: int = 15,
    ) -> None:
        if process_every_n_frames < 1:
            raise ValueError(f"process_every_n_frames must be >= 1, got {process_every_n_frames}")
        self.detector = detector
        self.engine = engine
        self.dispatcher = dispatcher
        self.uploader = uploader
        self.process_every_n_frames = process_every_n_frames
        self.last_detections: List[Detection] = []

    @property
    def stats(self) -> SessionStats:
        return self.dispatcher.stats

    def handle_frame(self, image: np.ndarray) -> Optional[ActionToken]:
        """Process one frame; returns None when the frame is skipped by sampling."""

        self.stats.frame_count += 1
        if self.stats.frame_count % self.process_every_n_frames != 0:
            return None
        try:
            detections = self.detector.infer(image)
            return self.handle_detections(detections)
        except Exception:
            LOGGER.exception("Frame handling error, ignoring frame %d", self.stats.frame_count)
            return ActionToken.CLEAR

    def handle_detections(self, detections: Sequence[Detection]) -> ActionToken:
        """Decide on a detection set, dispatch the cue and record telemetry for dispatched cues."""

        self.last_detections = list(detections)
        token = self.engine.decide(detections)
        self.stats.last_token = token
        if token == ActionToken.CLEAR:
            return token
        if self.dispatcher.emit(token, detections):
            self.uploader.enqueue(token, detections)
            LOGGER.info("Cue %s dispatched (%d detections)", token.value, len(detections))
        return token

    def repeat_last_cue(self) -> bool:
        return self.dispatcher.repeat_last_cue()

    def reset_session(self) -> None:
        """Zero the counters and forget the last cue, as at the start of a session."""

        self.dispatcher.reset()
        self.last_detections = []
        LOGGER.info("Session statistics reset")
