from __future__ import annotations

import logging
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import MagicMock

import numpy as np
import pytest

from obstacle_guidance.app.services import detector as detector_module
from obstacle_guidance.app.services.detector import YOLODetector
from obstacle_guidance.app.utils.geometry import center_size_to_xyxy, xyxy_to_center_size


def _box(class_id: int, confidence: float, xyxy) -> SimpleNamespace:
    tensor = MagicMock()
    tensor.cpu.return_value.numpy.return_value = np.array([xyxy], dtype=np.float32)
    return SimpleNamespace(
        cls=MagicMock(item=MagicMock(return_value=class_id)),
        conf=MagicMock(item=MagicMock(return_value=confidence)),
        xyxy=tensor,
    )


def _install_model(monkeypatch, boxes) -> MagicMock:
    model = MagicMock()
    model.names = {0: "person", 56: "chair"}
    model.return_value = [SimpleNamespace(boxes=boxes)]
    monkeypatch.setattr(detector_module, "YOLO", MagicMock(return_value=model))
    return model


def test_boxes_are_scaled_into_reference_frame(monkeypatch) -> None:
    model = _install_model(monkeypatch, [_box(0, 0.8, [100.0, 40.0, 220.0, 320.0])])
    detector = YOLODetector(Path("weights.pt"), confidence=0.45, iou=0.45)
    image = np.zeros((640, 640, 3), dtype=np.uint8)

    detections = detector.infer(image)

    assert len(detections) == 1
    det = detections[0]
    assert det.label == "person"
    assert det.confidence == pytest.approx(0.8)
    assert (det.center_x, det.center_y) == pytest.approx((80.0, 90.0))
    assert (det.width, det.height) == pytest.approx((60.0, 140.0))
    assert model.call_args.kwargs["conf"] == 0.45


def test_unknown_class_is_labelled_unclassified(monkeypatch) -> None:
    _install_model(monkeypatch, [_box(99, 0.6, [0.0, 0.0, 32.0, 32.0])])
    detector = YOLODetector(Path("weights.pt"), confidence=0.45, iou=0.45)

    detections = detector.infer(np.zeros((320, 320, 3), dtype=np.uint8))

    assert detections[0].label == "unclassified"


def test_load_failure_yields_empty_detections_and_logs_once(monkeypatch, caplog) -> None:
    monkeypatch.setattr(detector_module, "YOLO", MagicMock(side_effect=FileNotFoundError("missing weights")))

    with caplog.at_level(logging.WARNING, logger=detector_module.__name__):
        detector = YOLODetector(Path("missing.pt"), confidence=0.45, iou=0.45)
        assert detector.loaded is False
        assert detector.infer(np.zeros((320, 320, 3), dtype=np.uint8)) == []

    assert caplog.text.count("Model loading failed") == 1


def test_inference_error_is_contained(monkeypatch, caplog) -> None:
    model = _install_model(monkeypatch, [])
    model.side_effect = RuntimeError("bad tensor")
    detector = YOLODetector(Path("weights.pt"), confidence=0.45, iou=0.45)
    image = np.zeros((320, 320, 3), dtype=np.uint8)

    with caplog.at_level(logging.WARNING, logger=detector_module.__name__):
        assert detector.infer(image) == []
        assert detector.infer(image) == []

    assert caplog.text.count("Inference error") == 1


def test_geometry_conversions() -> None:
    assert xyxy_to_center_size([10.0, 20.0, 50.0, 100.0]) == (30.0, 60.0, 40.0, 80.0)
    assert center_size_to_xyxy(30.0, 60.0, 40.0, 80.0) == (10, 20, 50, 100)


def test_warm_up_runs_every_supplied_frame(monkeypatch) -> None:
    model = _install_model(monkeypatch, [])
    detector = YOLODetector(Path("weights.pt"), confidence=0.45, iou=0.45)
    frames = (np.zeros((320, 320, 3), dtype=np.uint8) for _ in range(3))

    assert detector.warm_up(frames) == 3
    assert model.call_count == 3
