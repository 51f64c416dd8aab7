"""Obstacle classification: maps a frame's detections to a navigation action."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Sequence

import yaml

from ..models import ActionToken, Detection

LOGGER = logging.getLogger(__name__)

LEFT = "LEFT"
CENTER = "CENTER"
RIGHT = "RIGHT"

DEFAULT_NAVIGATION_CLASSES: FrozenSet[str] = frozenset(
    {
        "person",
        "bicycle",
        "car",
        "motorcycle",
        "bus",
        "truck",
        "traffic light",
        "fire hydrant",
        "stop sign",
        "parking meter",
        "bench",
        "dog",
        "cat",
        "chair",
        "couch",
        "potted plant",
        "dining table",
        "backpack",
        "handbag",
        "suitcase",
        "umbrella",
        "train",
        "bed",
    }
)


@dataclass(frozen=True)
class GuidanceProfile:
    """Reference frame, zone bounds and proximity thresholds used by the engine."""

    frame_width: float = 320.0
    frame_height: float = 320.0
    left_zone_end: float = 0.33
    right_zone_start: float = 0.67
    critical_height_ratio: float = 0.40
    warning_height_ratio: float = 0.25
    side_caution_ratio: float = 0.15
    navigation_classes: FrozenSet[str] = field(default=DEFAULT_NAVIGATION_CLASSES)

    def __post_init__(self) -> None:
        if self.frame_width <= 0 or self.frame_height <= 0:
            raise ValueError(f"Invalid reference frame: {self.frame_width}x{self.frame_height}")
        if not 0.0 <= self.left_zone_end <= self.right_zone_start <= 1.0:
            raise ValueError(
                f"Invalid zone bounds: left_end={self.left_zone_end}, right_start={self.right_zone_start}"
            )

    @classmethod
    def from_yaml(cls, path: Path) -> "GuidanceProfile":
        with path.open("r", encoding="utf-8") as handle:
            payload = yaml.safe_load(handle) or {}
        zones = payload.get("zones", {}) or {}
        ratios = payload.get("height_ratios", {}) or {}
        raw_classes = payload.get("navigation_classes")
        if isinstance(raw_classes, list) and raw_classes:
            classes = frozenset(str(label).strip() for label in raw_classes if str(label).strip())
        else:
            classes = DEFAULT_NAVIGATION_CLASSES

        return cls(
            frame_width=float(payload.get("frame_width", 320)),
            frame_height=float(payload.get("frame_height", 320)),
            left_zone_end=float(zones.get("left_end", 0.33)),
            right_zone_start=float(zones.get("right_start", 0.67)),
            critical_height_ratio=float(ratios.get("critical", 0.40)),
            warning_height_ratio=float(ratios.get("warning", 0.25)),
            side_caution_ratio=float(ratios.get("side_caution", 0.15)),
            navigation_classes=classes,
        )


class DecisionEngine:
    """Stateless per-frame classifier from detections to an :class:`ActionToken`.

    Obstacles directly ahead (CENTER zone) take priority over obstacles at the
    sides. Within a zone group the most confident detection decides, and its
    bounding-box height relative to the frame stands in for proximity.
    """

    def __init__(self, profile: Optional[GuidanceProfile] = None) -> None:
        self.profile = profile or GuidanceProfile()

    def zone_of(self, detection: Detection) -> str:
        """Return LEFT, CENTER or RIGHT; both zone boundaries belong to CENTER."""

        normalized_x = detection.center_x / self.profile.frame_width
        if normalized_x < self.profile.left_zone_end:
            return LEFT
        if normalized_x > self.profile.right_zone_start:
            return RIGHT
        return CENTER

    def height_ratio(self, detection: Detection) -> float:
        return detection.height / self.profile.frame_height

    def relevant(self, detections: Iterable[Detection]) -> List[Detection]:
        return [det for det in detections if det.label in self.profile.navigation_classes]

    def partition(self, detections: Iterable[Detection]) -> Dict[str, List[Detection]]:
        zones: Dict[str, List[Detection]] = {LEFT: [], CENTER: [], RIGHT: []}
        for detection in detections:
            zones[self.zone_of(detection)].append(detection)
        return zones

    def decide(self, detections: Sequence[Detection]) -> ActionToken:
        if not detections:
            LOGGER.debug("Decision: CLEAR (no detections)")
            return ActionToken.CLEAR

        relevant = self.relevant(detections)
        LOGGER.debug("Navigation-relevant detections: %d/%d", len(relevant), len(detections))
        if not relevant:
            LOGGER.debug("Decision: CLEAR (no navigation-relevant obstacles)")
            return ActionToken.CLEAR

        zones = self.partition(relevant)
        LOGGER.debug(
            "By zone: CENTER=%d LEFT=%d RIGHT=%d",
            len(zones[CENTER]),
            len(zones[LEFT]),
            len(zones[RIGHT]),
        )

        if zones[CENTER]:
            target = _most_confident(zones[CENTER])
            ratio = self.height_ratio(target)
            LOGGER.debug(
                "Center target: %s conf=%.3f h=%.1f (%.1f%%) cx=%.1f",
                target.label,
                target.confidence,
                target.height,
                ratio * 100,
                target.center_x,
            )
            if ratio > self.profile.critical_height_ratio:
                LOGGER.debug("Decision: STOP (height ratio %.2f)", ratio)
                return ActionToken.STOP
            if ratio > self.profile.warning_height_ratio:
                token = self._steer_away(target)
                LOGGER.debug("Decision: %s (height ratio %.2f)", token.value, ratio)
                return token
            LOGGER.debug("Decision: CAUTION (small obstacle ahead, height ratio %.2f)", ratio)
            return ActionToken.CAUTION

        sides = zones[LEFT] + zones[RIGHT]
        if sides:
            target = _most_confident(sides)
            ratio = self.height_ratio(target)
            LOGGER.debug(
                "Side target: %s conf=%.3f zone=%s h=%.1f (%.1f%%) cx=%.1f",
                target.label,
                target.confidence,
                self.zone_of(target),
                target.height,
                ratio * 100,
                target.center_x,
            )
            if ratio > self.profile.warning_height_ratio:
                token = self._steer_away(target)
                LOGGER.debug("Decision: %s (large side obstacle, height ratio %.2f)", token.value, ratio)
                return token
            if ratio > self.profile.side_caution_ratio:
                LOGGER.debug("Decision: CAUTION (side obstacle, height ratio %.2f)", ratio)
                return ActionToken.CAUTION

        LOGGER.debug("Decision: CLEAR (obstacles too small or in safe zones)")
        return ActionToken.CLEAR

    def _steer_away(self, detection: Detection) -> ActionToken:
        # Obstacle left of frame center -> more clearance on the right.
        if detection.center_x < self.profile.frame_width / 2:
            return ActionToken.SLIGHT_RIGHT
        return ActionToken.SLIGHT_LEFT


def _most_confident(detections: Sequence[Detection]) -> Detection:
    # max() keeps the first maximal element, so ties go to input order.
    return max(detections, key=lambda det: det.confidence)
