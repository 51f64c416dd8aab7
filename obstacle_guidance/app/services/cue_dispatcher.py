"""Rate-limited dispatch of navigation cues to the actuator."""
from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Sequence, Tuple

from ..models import ActionToken, Detection
from .actuator import Actuator, AttentionChannel

LOGGER = logging.getLogger(__name__)

DEFAULT_OBJECT_NAME = "obstacle"

CUE_VERBS: Dict[ActionToken, str] = {
    ActionToken.STOP: "stop",
    ActionToken.SLIGHT_LEFT: "move left",
    ActionToken.SLIGHT_RIGHT: "move right",
    ActionToken.CAUTION: "caution",
}

# Waveforms in milliseconds: leading delay, then alternating on/off durations.
VIBRATION_PATTERNS: Dict[ActionToken, Tuple[int, ...]] = {
    ActionToken.STOP: (0, 600),
    ActionToken.SLIGHT_LEFT: (0, 120, 80, 120),
    ActionToken.SLIGHT_RIGHT: (0, 120, 80, 120),
    ActionToken.CAUTION: (0, 200),
}


@dataclass
class CueState:
    last_token: Optional[ActionToken] = None
    last_detections: Tuple[Detection, ...] = field(default_factory=tuple)
    last_cue_timestamp: Optional[float] = None

    def reset(self) -> None:
        self.last_token = None
        self.last_detections = ()
        self.last_cue_timestamp = None


@dataclass
class SessionStats:
    """Counters surfaced to the user; reset at the start of each session."""

    frame_count: int = 0
    stop_count: int = 0
    veer_count: int = 0
    last_token: ActionToken = ActionToken.CLEAR

    def reset(self) -> None:
        self.frame_count = 0
        self.stop_count = 0
        self.veer_count = 0
        self.last_token = ActionToken.CLEAR

    def to_dict(self) -> Dict[str, object]:
        return {
            "frame_count": self.frame_count,
            "stop_count": self.stop_count,
            "veer_count": self.veer_count,
            "last_token": self.last_token.value,
        }


def render_message(token: ActionToken, detections: Sequence[Detection]) -> str:
    """Build the spoken cue, e.g. ``"person ahead, stop"``."""

    object_name = detections[0].label if detections else DEFAULT_OBJECT_NAME
    return f"{object_name} ahead, {CUE_VERBS[token]}"


class CueDispatcher:
    """Throttle cues and render them through the actuator.

    STOP always bypasses the limiter. Every other token is dropped when it
    arrives within ``rate_limit_ms`` of the previous dispatched cue.
    """

    def __init__(
        self,
        actuator: Actuator,
        *,
        rate_limit_ms: int = 1000,
        stats: Optional[SessionStats] = None,
        state: Optional[CueState] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.actuator = actuator
        self.rate_limit_ms = rate_limit_ms
        self.stats = stats or SessionStats()
        self.state = state or CueState()
        self._clock = clock
        self._lock = threading.Lock()

    def emit(self, token: ActionToken, detections: Sequence[Detection] = ()) -> bool:
        """Dispatch ``token`` unless it is CLEAR or rate-limited; return True when actuated."""

        if token == ActionToken.CLEAR:
            return False

        detections = tuple(detections)
        with self._lock:
            now = self._clock()
            if not self._admits(token, now):
                LOGGER.debug("Cue %s suppressed by rate limiter", token.value)
                return False
            self._record(token, detections, now)
            if token == ActionToken.STOP:
                self.stats.stop_count += 1
            elif token.is_veer:
                self.stats.veer_count += 1

        self._actuate(token, detections)
        return True

    def repeat_last_cue(self) -> bool:
        """Replay the most recent cue on user request, ignoring the limiter."""

        with self._lock:
            token = self.state.last_token
            if token is None:
                return False
            detections = self.state.last_detections
            self._record(token, detections, self._clock())

        LOGGER.info("Repeating last cue %s", token.value)
        self._actuate(token, detections)
        return True

    def reset(self) -> None:
        with self._lock:
            self.state.reset()
            self.stats.reset()

    def _admits(self, token: ActionToken, now: float) -> bool:
        if token == ActionToken.STOP:
            return True
        last = self.state.last_cue_timestamp
        if last is None:
            return True
        return (now - last) * 1000.0 >= self.rate_limit_ms

    def _record(self, token: ActionToken, detections: Tuple[Detection, ...], now: float) -> None:
        self.state.last_token = token
        self.state.last_detections = detections
        self.state.last_cue_timestamp = now

    def _actuate(self, token: ActionToken, detections: Sequence[Detection]) -> None:
        try:
            self.actuator.vibrate(VIBRATION_PATTERNS[token])
        except Exception:
            LOGGER.exception("Vibration failed for cue %s", token.value)

        if isinstance(self.actuator, AttentionChannel):
            try:
                self.actuator.request_attention()
            except Exception:
                LOGGER.exception("Attention request failed")

        message = render_message(token, detections)
        try:
            self.actuator.speak(message, flush=True)
        except Exception:
            LOGGER.exception("Speech failed for cue %s", token.value)
