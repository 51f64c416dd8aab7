#!/usr/bin/env python3
"""Replay recorded per-frame detections through the decision engine."""
from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import List

from obstacle_guidance.app.config.settings import load_settings
from obstacle_guidance.app.models import Detection
from obstacle_guidance.app.services.decision_engine import DecisionEngine, GuidanceProfile


def load_frames(path: Path) -> List[List[Detection]]:
    """Read a JSON list of frames, each a list of detection objects."""

    with path.open("r", encoding="utf-8") as handle:
        data = json.load(handle)
    if not isinstance(data, list):
        raise ValueError("Recording must contain a list of frames")
    frames: List[List[Detection]] = []
    for raw_frame in data:
        frames.append(
            [
                Detection(
                    label=str(item["label"]),
                    confidence=float(item.get("confidence", 0.0)),
                    center_x=float(item["center_x"]),
                    center_y=float(item.get("center_y", 0.0)),
                    width=float(item.get("width", 0.0)),
                    height=float(item.get("height", 0.0)),
                    distance_m=item.get("distance_m"),
                )
                for item in raw_frame
            ]
        )
    return frames


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Print the navigation action for each recorded frame")
    parser.add_argument("recording", type=Path, help="Path to the detections JSON file")
    parser.add_argument("--profile", type=Path, default=None, help="Guidance profile YAML file")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    profile_path = args.profile or load_settings().profile_path
    engine = DecisionEngine(GuidanceProfile.from_yaml(profile_path))
    for index, detections in enumerate(load_frames(args.recording), start=1):
        token = engine.decide(detections)
        labels = ", ".join(det.label for det in detections) or "-"
        print(f"[Frame {index:04d}] {token.value:<12} | {labels}")


if __name__ == "__main__":
    main()
