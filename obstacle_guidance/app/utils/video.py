"""Frame source helpers built on OpenCV capture."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Generator, Iterator, Optional, Union

import cv2
import numpy as np

LOGGER = logging.getLogger(__name__)

Source = Union[int, str]


@dataclass
class Frame:
    index: int
    data: np.ndarray
    timestamp_ms: float


def parse_source(source: str) -> Source:
    """Interpret numeric sources as camera indices and everything else as a path or URL."""

    try:
        return int(source)
    except ValueError:
        return source


@contextmanager
def managed_capture(source: Source) -> Generator[cv2.VideoCapture, None, None]:
    """Open ``source`` and release it on exit; raises RuntimeError when it cannot be opened."""

    capture = cv2.VideoCapture(source)
    if not capture.isOpened():
        capture.release()
        raise RuntimeError(f"Unable to open video source: {source}")
    LOGGER.info("Video source %s opened (%.1f fps reported)", source, capture.get(cv2.CAP_PROP_FPS) or 0.0)
    try:
        yield capture
    finally:
        LOGGER.info("Releasing video source %s", source)
        capture.release()


def iter_frames(capture: cv2.VideoCapture, limit: Optional[int] = None) -> Iterator[Frame]:
    """Yield frames in delivery order until the stream ends or ``limit`` frames were read.

    No frames are skipped here; sampling belongs to the frame controller.
    Live cameras report no FPS, in which case timestamps come from the
    capture position.
    """

    fps = capture.get(cv2.CAP_PROP_FPS) or 0.0
    index = 0
    while limit is None or index < limit:
        success, image = capture.read()
        if not success:
            LOGGER.info("End of stream reached after %d frames", index)
            return
        index += 1
        if fps:
            timestamp_ms = index / fps * 1000.0
        else:
            timestamp_ms = capture.get(cv2.CAP_PROP_POS_MSEC) or 0.0
        yield Frame(index=index, data=image, timestamp_ms=timestamp_ms)
