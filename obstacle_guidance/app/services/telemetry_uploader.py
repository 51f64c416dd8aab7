"""Best-effort batched delivery of navigation events to the telemetry collector."""
from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Sequence, Tuple

import requests
from pydantic import BaseModel

from ..config.settings import AppSettings
from ..models import ActionToken, Detection, TelemetryEvent
from ..utils.scheduling import PeriodicWorker

LOGGER = logging.getLogger(__name__)

MAX_QUEUE_SIZE = 200
FLUSH_INTERVAL_MS = 5000
RETRY_BACKOFF_FLOOR_MS = 1000
RETRY_BACKOFF_CAP_MS = 60000

TOKEN_EVENTS: Dict[ActionToken, Tuple[str, str]] = {
    ActionToken.STOP: ("obstacle_center", "stop"),
    ActionToken.SLIGHT_LEFT: ("obstacle_center", "veer_left"),
    ActionToken.SLIGHT_RIGHT: ("obstacle_center", "veer_right"),
    ActionToken.CAUTION: ("obstacle_detected", "caution"),
}


class TelemetryRecord(BaseModel):
    client_id: str
    session_id: str
    t_client: int
    events: List[str]
    classes: Optional[List[str]] = None
    confidence: Optional[float] = None
    free_ahead_m: Optional[float] = None
    app: str


class EventQueue:
    """Fixed-capacity FIFO that drops the oldest event on overflow.

    Every mutation happens under one lock, so producers and the flush worker
    never observe a half-applied append, drain or requeue.
    """

    def __init__(self, capacity: int = MAX_QUEUE_SIZE) -> None:
        if capacity < 1:
            raise ValueError(f"Queue capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._events: Deque[TelemetryEvent] = deque(maxlen=capacity)
        self._lock = threading.Lock()
        self.evicted = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._events)

    def append(self, event: TelemetryEvent) -> bool:
        """Append ``event``; return True when the oldest event had to be evicted."""

        with self._lock:
            overflow = len(self._events) >= self.capacity
            if overflow:
                self.evicted += 1
            # deque(maxlen) discards from the left on a full append.
            self._events.append(event)
            return overflow

    def drain(self) -> List[TelemetryEvent]:
        with self._lock:
            batch = list(self._events)
            self._events.clear()
            return batch

    def requeue_front(self, batch: Sequence[TelemetryEvent]) -> int:
        """Put a failed batch back ahead of newer events; return how many were dropped.

        When capacity is short the newest events of the batch are dropped so
        the oldest ones stay first in line.
        """

        with self._lock:
            room = self.capacity - len(self._events)
            kept = list(batch[: max(room, 0)])
            self._events.extendleft(reversed(kept))
            return len(batch) - len(kept)

    def snapshot(self) -> List[TelemetryEvent]:
        with self._lock:
            return list(self._events)


class TelemetryUploader:
    """Queue decision events and ship them in batches from a background worker."""

    def __init__(
        self,
        base_url: Optional[str],
        *,
        client_id: str = "placeholder",
        app_version: str = "python-0.1.0",
        max_queue_size: int = MAX_QUEUE_SIZE,
        flush_interval_ms: int = FLUSH_INTERVAL_MS,
        backoff_floor_ms: int = RETRY_BACKOFF_FLOOR_MS,
        backoff_cap_ms: int = RETRY_BACKOFF_CAP_MS,
        request_timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        session_id: Optional[str] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.base_url = base_url.rstrip("/") if base_url and base_url.strip() else None
        self.client_id = client_id
        self.app_version = app_version
        self.flush_interval_ms = flush_interval_ms
        self.backoff_floor_ms = backoff_floor_ms
        self.backoff_cap_ms = backoff_cap_ms
        self.request_timeout = request_timeout
        self.session_id = session_id or str(uuid.uuid4())
        self.queue = EventQueue(max_queue_size)
        self.retry_backoff_ms = backoff_floor_ms
        self._session = session or requests.Session()
        self._clock = clock
        self._flush_lock = threading.Lock()
        self._worker: Optional[PeriodicWorker] = None

    @classmethod
    def from_settings(cls, settings: AppSettings, session: Optional[requests.Session] = None) -> "TelemetryUploader":
        return cls(
            settings.telemetry_base_url,
            client_id=settings.client_id,
            app_version=settings.app_version,
            max_queue_size=settings.max_queue_size,
            flush_interval_ms=settings.flush_interval_ms,
            backoff_floor_ms=settings.retry_backoff_floor_ms,
            backoff_cap_ms=settings.retry_backoff_cap_ms,
            request_timeout=settings.request_timeout_seconds,
            session=session,
        )

    @property
    def enabled(self) -> bool:
        return self.base_url is not None

    @property
    def ingest_url(self) -> Optional[str]:
        if not self.base_url:
            return None
        return f"{self.base_url}/ingest_event"

    @property
    def pending(self) -> int:
        return len(self.queue)

    def enqueue(self, token: ActionToken, detections: Sequence[Detection] = ()) -> None:
        """Record a decision event; never blocks on the network."""

        if token == ActionToken.CLEAR:
            return
        event = TelemetryEvent(token=token, detections=tuple(detections), timestamp_seconds=int(self._clock()))
        if self.queue.append(event):
            LOGGER.debug("Telemetry queue full, evicted oldest event")

    def serialize(self, event: TelemetryEvent) -> Dict[str, Any]:
        zone, action = TOKEN_EVENTS[event.token]
        record = TelemetryRecord(
            client_id=self.client_id,
            session_id=self.session_id,
            t_client=event.timestamp_seconds,
            events=[zone, action],
            app=self.app_version,
        )
        if event.detections:
            leading = event.detections[0]
            record.classes = [det.label for det in event.detections]
            record.confidence = leading.confidence
            record.free_ahead_m = leading.distance_m
        return record.model_dump(exclude_none=True)

    def flush(self) -> float:
        """Deliver everything queued as one batch.

        Returns the backoff pause in seconds the caller should wait before the
        next cycle; 0.0 when there was nothing to do or delivery succeeded.
        """

        with self._flush_lock:
            url = self.ingest_url
            if url is None:
                return 0.0
            batch = self.queue.drain()
            if not batch:
                return 0.0
            try:
                payload = [self.serialize(event) for event in batch]
                timeout = (self.request_timeout, self.request_timeout)
                response = self._session.post(url, json=payload, timeout=timeout)
                if not 200 <= response.status_code < 300:
                    raise requests.HTTPError(f"Received status {response.status_code}")
            except Exception as exc:
                return self._handle_failure(batch, exc)

            self.retry_backoff_ms = self.backoff_floor_ms
            LOGGER.debug("Flushed %d telemetry events", len(batch))
            return 0.0

    def start(self) -> None:
        if not self.enabled:
            LOGGER.info("Telemetry disabled (no collector URL configured)")
            return
        if self._worker is None:
            self._worker = PeriodicWorker(self.flush, self.flush_interval_ms / 1000.0, name="telemetry-flush")
        self._worker.start()
        LOGGER.info("Telemetry uploader started for %s (session %s)", self.base_url, self.session_id)

    def close(self) -> None:
        """Stop the flush worker, make one last delivery attempt and release the session."""

        if self._worker is not None:
            self._worker.stop(timeout=self.request_timeout * 2 + 1.0)
        if self.enabled and self.pending:
            LOGGER.debug("Final telemetry flush of %d events", self.pending)
            self.flush()
        self._session.close()

    def _handle_failure(self, batch: Sequence[TelemetryEvent], exc: Exception) -> float:
        dropped = self.queue.requeue_front(batch)
        self.retry_backoff_ms = min(self.retry_backoff_ms * 2, self.backoff_cap_ms)
        LOGGER.warning(
            "Telemetry delivery of %d events failed: %s (requeued=%d, dropped=%d, backoff_ms=%d)",
            len(batch),
            exc,
            len(batch) - dropped,
            dropped,
            self.retry_backoff_ms,
        )
        return self.retry_backoff_ms / 1000.0
