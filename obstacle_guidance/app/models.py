"""Shared data models for the guidance pipeline."""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple


class ActionToken(str, Enum):
    """Navigation action produced by the decision engine."""

    CLEAR = "CLEAR"
    STOP = "STOP"
    SLIGHT_LEFT = "SLIGHT_LEFT"
    SLIGHT_RIGHT = "SLIGHT_RIGHT"
    CAUTION = "CAUTION"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]

    @property
    def is_veer(self) -> bool:
        return self in (ActionToken.SLIGHT_LEFT, ActionToken.SLIGHT_RIGHT)


_SEVERITY = {
    ActionToken.STOP: 3,
    ActionToken.SLIGHT_LEFT: 2,
    ActionToken.SLIGHT_RIGHT: 2,
    ActionToken.CAUTION: 1,
    ActionToken.CLEAR: 0,
}


@dataclass(frozen=True)
class Detection:
    """Represents a single detected object in reference-frame coordinates."""

    label: str
    confidence: float
    center_x: float
    center_y: float
    width: float
    height: float
    distance_m: Optional[float] = None


@dataclass(frozen=True)
class TelemetryEvent:
    token: ActionToken
    detections: Tuple[Detection, ...] = field(default_factory=tuple)
    timestamp_seconds: int = 0
