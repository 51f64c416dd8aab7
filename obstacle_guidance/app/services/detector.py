"""YOLOv8 detection service wrapper."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Protocol

import numpy as np

try:  # pragma: no cover - import guarded for environments without ultralytics
    from ultralytics import YOLO
except ImportError as exc:  # pragma: no cover
    raise ImportError(
        "ultralytics package is required for obstacle detection. Install the project via "
        "`pip install -e .` before running the guide."
    ) from exc

from ..models import Detection
from ..utils.geometry import scale_box, xyxy_to_center_size

LOGGER = logging.getLogger(__name__)


class Detector(Protocol):
    """Returns the detections in an image; never raises, returns [] on failure."""

    def infer(self, image: np.ndarray) -> List[Detection]:
        ...


class YOLODetector:
    """Encapsulates YOLOv8 inference, reporting boxes in the reference frame space."""

    def __init__(
        self,
        model_path: Path,
        confidence: float,
        iou: float,
        reference_size: tuple[float, float] = (320.0, 320.0),
    ) -> None:
        self.model_path = model_path
        self.confidence = confidence
        self.iou = iou
        self.reference_width, self.reference_height = reference_size
        self._model: Optional[YOLO] = None
        self._class_map: dict = {}
        self._failure_logged = False
        self._load()

    @property
    def loaded(self) -> bool:
        return self._model is not None

    def _load(self) -> None:
        LOGGER.info("Loading YOLO model from %s", self.model_path)
        try:
            self._model = YOLO(str(self.model_path))
            self._class_map = self._model.names
        except Exception as exc:
            self._model = None
            self._log_failure_once("Model loading failed, returning empty detections: %s", exc)

    def infer(self, image: np.ndarray) -> List[Detection]:
        """Run inference on a frame; returns an empty list when no model is loaded or inference fails."""

        if self._model is None:
            return []
        try:
            return self._predict(image)
        except Exception as exc:
            self._log_failure_once("Inference error, returning empty detections: %s", exc)
            return []

    def _predict(self, image: np.ndarray) -> List[Detection]:
        height, width = image.shape[:2]
        scale_x = self.reference_width / float(width)
        scale_y = self.reference_height / float(height)

        results = self._model(image, verbose=False, iou=self.iou, conf=self.confidence)
        detections: List[Detection] = []
        for result in results:
            boxes = result.boxes
            if boxes is None:
                continue
            for box in boxes:
                class_id = int(box.cls.item())
                label = self._class_map.get(class_id, "unclassified")
                bbox = box.xyxy.cpu().numpy().flatten().tolist()
                center_x, center_y, box_w, box_h = xyxy_to_center_size(scale_box(bbox, scale_x, scale_y))
                detections.append(
                    Detection(
                        label=label,
                        confidence=float(box.conf.item()),
                        center_x=center_x,
                        center_y=center_y,
                        width=box_w,
                        height=box_h,
                    )
                )
        LOGGER.debug("Detected %d objects", len(detections))
        return detections

    def _log_failure_once(self, message: str, exc: Exception) -> None:
        if self._failure_logged:
            return
        self._failure_logged = True
        LOGGER.warning(message, exc)

    def warm_up(self, frames: Iterable[np.ndarray]) -> int:
        """Run inference on throwaway frames so the first real frame is not slow; return how many ran."""

        count = 0
        for frame in frames:
            self.infer(frame)
            count += 1
        return count
