from __future__ import annotations

import logging
import threading
import uuid

import numpy as np

from tuner.engine import TunerEngine
from tuner.estimator import EstimatorFactory, default_estimator

logger = logging.getLogger(__name__)


class RealtimeSession:
    """Tuner fed by audio streamed from a browser.

    Incoming float32 audio is cut into ``block_size`` blocks; the session
    clock advances by one block duration per cycle.
    """

    def __init__(self, session_id: str, estimator_factory: EstimatorFactory = default_estimator) -> None:
        self.session_id = session_id
        self._estimator_factory = estimator_factory
        self.sample_rate = 44_100
        self.block_size = 2048
        self.engine: TunerEngine | None = None
        self._processing_buffer = np.zeros(0, dtype=np.float32)
        self._clock = 0.0

    def init(self, *, sample_rate: int, block_size: int) -> None:
        self.close()
        self.sample_rate = int(sample_rate)
        self.block_size = int(block_size)
        self._ensure_engine()

    def reset(self) -> None:
        if self.engine is not None:
            self.engine.reset()
        self._processing_buffer = np.zeros(0, dtype=np.float32)

    def process_audio_bytes(self, payload: bytes) -> list[dict[str, object]]:
        if not payload or len(payload) % 4:
            return []

        frame = np.frombuffer(payload, dtype=np.float32)
        if frame.size == 0:
            return []

        engine = self._ensure_engine()
        self._processing_buffer = np.concatenate((self._processing_buffer, frame))
        events: list[dict[str, object]] = []

        while self._processing_buffer.size >= self.block_size:
            block = self._processing_buffer[: self.block_size]
            self._processing_buffer = self._processing_buffer[self.block_size :]
            self._clock += self.block_size / float(self.sample_rate)
            events.append(engine.process_frame(block, self._clock).to_event())

        return events

    def close(self) -> None:
        engine, self.engine = self.engine, None
        if engine is not None and engine.estimator is not None:
            engine.estimator.close()
        self._processing_buffer = np.zeros(0, dtype=np.float32)
        self._clock = 0.0

    def _ensure_engine(self) -> TunerEngine:
        if self.engine is None:
            estimator = self._estimator_factory(self.sample_rate, self.block_size)
            self.engine = TunerEngine(estimator)
            logger.info(
                "session %s ready (%d Hz, block=%d)", self.session_id, self.sample_rate, self.block_size
            )
        return self.engine


class SessionManager:
    def __init__(self) -> None:
        self._sessions: dict[str, RealtimeSession] = {}
        self._lock = threading.Lock()

    def create(self) -> RealtimeSession:
        session_id = uuid.uuid4().hex
        session = RealtimeSession(session_id)
        with self._lock:
            self._sessions[session_id] = session
        return session

    def remove(self, session_id: str) -> None:
        with self._lock:
            session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()

    @property
    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)
