from __future__ import annotations

import time
from typing import Callable, List, Optional, Sequence, Tuple

import pytest

from obstacle_guidance.app.models import Detection


class FakeClock:
    def __init__(self, start: float = 100.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeActuator:
    """Records cues in call order; can be told to fail either effect."""

    def __init__(self) -> None:
        self.calls: List[Tuple[str, object]] = []
        self.fail_speech = False
        self.fail_vibration = False

    def request_attention(self) -> None:
        self.calls.append(("attention", None))

    def speak(self, message: str, flush: bool = True) -> None:
        if self.fail_speech:
            raise RuntimeError("speech backend unavailable")
        self.calls.append(("speak", message))

    def vibrate(self, pattern: Sequence[int]) -> None:
        if self.fail_vibration:
            raise RuntimeError("vibrator unavailable")
        self.calls.append(("vibrate", tuple(pattern)))

    @property
    def messages(self) -> List[str]:
        return [payload for kind, payload in self.calls if kind == "speak"]

    @property
    def patterns(self) -> List[tuple]:
        return [payload for kind, payload in self.calls if kind == "vibrate"]


class FakeDetector:
    def __init__(self, detections: Optional[List[Detection]] = None) -> None:
        self.detections = detections or []
        self.calls = 0
        self.error: Optional[Exception] = None

    def infer(self, image: object) -> List[Detection]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.detections)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def actuator() -> FakeActuator:
    return FakeActuator()


@pytest.fixture()
def detector() -> FakeDetector:
    return FakeDetector()


@pytest.fixture()
def wait_for() -> Callable[[Callable[[], bool], float], bool]:
    def _wait(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(0.01)
        return predicate()

    return _wait
