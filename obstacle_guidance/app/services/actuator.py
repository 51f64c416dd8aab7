"""Speech and haptic actuators that render navigation cues."""
from __future__ import annotations

import logging
import threading
from collections import deque
from typing import Deque, Generic, List, Optional, Protocol, Sequence, TypeVar, runtime_checkable

import pyttsx3
import requests

LOGGER = logging.getLogger(__name__)

T = TypeVar("T")


class Actuator(Protocol):
    """Renders a cue; both effects are best-effort and may raise independently."""

    def speak(self, message: str, flush: bool = True) -> None:
        ...

    def vibrate(self, pattern: Sequence[int]) -> None:
        ...


@runtime_checkable
class AttentionChannel(Protocol):
    def request_attention(self) -> None:
        ...


class _BackgroundChannel(Generic[T]):
    """Single worker thread that renders submitted items in order.

    ``submit(item, flush=True)`` drops anything still pending so the newest cue
    replaces stale ones. Callers never wait on the backend.
    """

    thread_name = "actuator"

    def __init__(self) -> None:
        self._pending: Deque[T] = deque()
        self._condition = threading.Condition()
        self._closed = False
        self._unavailable = False
        self._thread = threading.Thread(target=self._run, name=self.thread_name, daemon=True)
        self._thread.start()

    def submit(self, item: T, flush: bool = True) -> None:
        with self._condition:
            if self._closed:
                raise RuntimeError(f"{self.thread_name} channel is closed")
            if self._unavailable:
                raise RuntimeError(f"{self.thread_name} backend is unavailable")
            if flush:
                self._pending.clear()
            self._pending.append(item)
            self._condition.notify()

    def close(self, timeout: float = 2.0) -> None:
        with self._condition:
            self._closed = True
            self._pending.clear()
            self._condition.notify_all()
        self._thread.join(timeout=timeout)

    def _setup(self) -> None:
        """Prepare the backend on the worker thread."""

    def _handle(self, item: T) -> None:
        raise NotImplementedError

    def _run(self) -> None:
        try:
            self._setup()
        except Exception:
            LOGGER.exception("Unable to initialise %s backend", self.thread_name)
            with self._condition:
                self._unavailable = True
            return
        while True:
            with self._condition:
                while not self._pending and not self._closed:
                    self._condition.wait()
                if self._closed:
                    return
                item = self._pending.popleft()
            try:
                self._handle(item)
            except Exception:
                LOGGER.exception("%s backend failed to render cue", self.thread_name)


class Pyttsx3Speaker(_BackgroundChannel[str]):
    """Text-to-speech through pyttsx3 with flush-and-replace semantics."""

    thread_name = "speech"

    def __init__(self, rate: int = 150, voice: Optional[str] = None) -> None:
        self.rate = rate
        self.voice = voice
        self._engine = None
        super().__init__()

    def _setup(self) -> None:
        engine = pyttsx3.init()
        engine.setProperty("rate", self.rate)
        if self.voice:
            engine.setProperty("voice", self.voice)
        self._engine = engine
        LOGGER.info("Speech engine initialised (rate=%d)", self.rate)

    def speak(self, message: str, flush: bool = True) -> None:
        self.submit(message, flush=flush)

    def request_attention(self) -> None:
        """Cut off the utterance in progress so the next cue is heard at once."""

        engine = self._engine
        if engine is not None and engine.isBusy():
            engine.stop()

    def _handle(self, item: str) -> None:
        self._engine.say(item)
        self._engine.runAndWait()


class HttpHapticBand(_BackgroundChannel[List[int]]):
    """Wearable vibration band reachable over HTTP (ESP32-style firmware)."""

    thread_name = "haptics"

    def __init__(
        self,
        endpoint: str,
        session: Optional[requests.Session] = None,
        timeout: float = 2.0,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self._session = session or requests.Session()
        super().__init__()

    def vibrate(self, pattern: Sequence[int]) -> None:
        self.submit([int(step) for step in pattern])

    def _handle(self, item: List[int]) -> None:
        response = self._session.post(f"{self.endpoint}/vibrate", json={"pattern": item}, timeout=self.timeout)
        if response.status_code >= 400:
            raise requests.HTTPError(f"Haptic band returned status {response.status_code}")
        LOGGER.debug("Vibration pattern %s delivered", item)

    def close(self, timeout: float = 2.0) -> None:
        super().close(timeout=timeout)
        self._session.close()


class LoggingActuator:
    """Dry-run actuator that only logs the cues it would render."""

    def speak(self, message: str, flush: bool = True) -> None:
        LOGGER.info("Cue: %s", message)

    def vibrate(self, pattern: Sequence[int]) -> None:
        LOGGER.info("Vibrate: %s", list(pattern))


class CompositeActuator:
    """Routes speech and vibration to separate backends."""

    def __init__(
        self,
        speaker: Optional[Pyttsx3Speaker] = None,
        haptics: Optional[HttpHapticBand] = None,
        fallback: Optional[LoggingActuator] = None,
    ) -> None:
        self.speaker = speaker
        self.haptics = haptics
        self.fallback = fallback or LoggingActuator()

    def speak(self, message: str, flush: bool = True) -> None:
        if self.speaker is None:
            self.fallback.speak(message, flush=flush)
            return
        self.speaker.speak(message, flush=flush)

    def vibrate(self, pattern: Sequence[int]) -> None:
        if self.haptics is None:
            self.fallback.vibrate(pattern)
            return
        self.haptics.vibrate(pattern)

    def request_attention(self) -> None:
        if self.speaker is not None:
            self.speaker.request_attention()

    def close(self) -> None:
        if self.speaker is not None:
            self.speaker.close()
        if self.haptics is not None:
            self.haptics.close()
