"""Geometry helper utilities for bounding boxes."""
from __future__ import annotations

from typing import Sequence, Tuple

BBox = Sequence[float]
Point = Tuple[float, float]


def bbox_center(bbox: BBox) -> Point:
    """Return the center point of a bounding box in xyxy format."""

    x1, y1, x2, y2 = bbox
    return (float((x1 + x2) / 2.0), float((y1 + y2) / 2.0))


def xyxy_to_center_size(bbox: BBox) -> Tuple[float, float, float, float]:
    """Convert an xyxy box to ``(center_x, center_y, width, height)``."""

    x1, y1, x2, y2 = bbox
    center_x, center_y = bbox_center(bbox)
    return center_x, center_y, float(x2 - x1), float(y2 - y1)


def center_size_to_xyxy(center_x: float, center_y: float, width: float, height: float) -> Tuple[int, int, int, int]:
    """Convert a center/size box back to integer xyxy corners for drawing."""

    half_w = width / 2.0
    half_h = height / 2.0
    return (
        int(round(center_x - half_w)),
        int(round(center_y - half_h)),
        int(round(center_x + half_w)),
        int(round(center_y + half_h)),
    )


def scale_box(bbox: BBox, scale_x: float, scale_y: float) -> Tuple[float, float, float, float]:
    """Scale an xyxy box from one coordinate space into another."""

    x1, y1, x2, y2 = bbox
    return (x1 * scale_x, y1 * scale_y, x2 * scale_x, y2 * scale_y)
