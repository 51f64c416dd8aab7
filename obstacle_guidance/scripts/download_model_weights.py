#!/usr/bin/env python3
"""Fetch detector weights to the path the guide loads them from."""
from __future__ import annotations

import argparse
from pathlib import Path

import requests

from obstacle_guidance.app.config.settings import load_settings

RELEASE_URL = "https://github.com/ultralytics/assets/releases/download/v0.0.0/{name}"
# Larger variants miss the per-frame budget on wearable hardware.
VARIANTS = {"n": "yolov8n.pt", "s": "yolov8s.pt", "m": "yolov8m.pt"}
CHUNK_SIZE = 1 << 20


def stream_to_file(url: str, target: Path) -> int:
    """Download ``url`` into ``target`` via a temporary file; return the byte count."""

    target.parent.mkdir(parents=True, exist_ok=True)
    partial = target.with_suffix(target.suffix + ".part")
    written = 0
    with requests.get(url, stream=True, timeout=60) as response:
        response.raise_for_status()
        with partial.open("wb") as handle:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                handle.write(chunk)
                written += len(chunk)
    partial.replace(target)
    return written


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Download YOLOv8 weights for the obstacle detector")
    parser.add_argument("--variant", choices=sorted(VARIANTS), default="n", help="YOLOv8 size (default: nano)")
    parser.add_argument("--output", type=Path, default=None, help="Destination; defaults to GUIDANCE_MODEL_PATH")
    parser.add_argument("--force", action="store_true", help="Download even when the file already exists")
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    target = args.output or load_settings().model_path
    if target.exists() and not args.force:
        print(f"{target} already present, skipping (use --force to refresh)")
        return
    url = RELEASE_URL.format(name=VARIANTS[args.variant])
    size = stream_to_file(url, target)
    print(f"Saved {size / 1e6:.1f} MB of weights to {target}")


if __name__ == "__main__":
    main()
