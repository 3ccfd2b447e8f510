from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

from tuner.engine import CycleResult, PitchSnapshot, TunerEngine
from tuner.errors import CaptureError, ConfigurationError, SessionError
from tuner.estimator import EstimatorFactory, PitchEstimator, default_estimator
from tuner.notes import NO_READING, NoteReading

if TYPE_CHECKING:
    from tuner.audio import CaptureSource

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TunerConfig:
    # ~60 cycles per second, like a display refresh.
    frame_interval: float = 1.0 / 60.0

    def __post_init__(self) -> None:
        if not self.frame_interval > 0:
            raise ConfigurationError(f"frame_interval must be positive, got {self.frame_interval}")


class TunerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class FrameClock:
    """Calls ``callback`` every ``interval`` seconds on a worker thread.

    The next call is scheduled only after the current one returns, so
    callbacks never overlap.
    """

    def __init__(
        self,
        callback: Callable[[], object],
        interval: float,
        *,
        on_error: Callable[[Exception], object] | None = None,
    ) -> None:
        if not interval > 0:
            raise ConfigurationError(f"interval must be positive, got {interval}")
        self._callback = callback
        self._on_error = on_error
        self._interval = float(interval)
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="tuner-clock", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        self._thread = None

    def _run(self) -> None:
        next_t = time.monotonic()
        while not self._stop.is_set():
            try:
                self._callback()
            except Exception as exc:
                logger.exception("frame callback failed; stopping clock")
                if self._on_error is not None:
                    self._on_error(exc)
                return
            next_t += self._interval
            delay = next_t - time.monotonic()
            if delay < 0:
                # Overran; restart the cadence instead of bursting to catch up.
                next_t = time.monotonic()
                delay = 0.0
            self._stop.wait(delay)


class Tuner:
    """
    One tuning session at a time over a capture source.

    ``start`` acquires capture and estimator (unwinding on failure),
    ``tick`` runs one cycle and ``stop`` releases everything. Readers poll
    ``current_reading``/``is_active`` from any thread; the published pitch
    is an immutable snapshot replaced once per cycle.
    """

    def __init__(
        self,
        capture: CaptureSource,
        *,
        estimator_factory: EstimatorFactory = default_estimator,
        config: TunerConfig | None = None,
        time_source: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or TunerConfig()
        self._capture = capture
        self._estimator_factory = estimator_factory
        self._time = time_source
        self._lock = threading.Lock()
        self._state = TunerState.IDLE
        self._estimator: PitchEstimator | None = None
        self._engine: TunerEngine | None = None
        self._clock: FrameClock | None = None
        self.last_error: Exception | None = None

    @property
    def state(self) -> TunerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is TunerState.RUNNING

    @property
    def snapshot(self) -> PitchSnapshot:
        engine = self._engine
        return engine.snapshot if engine is not None else PitchSnapshot()

    def start(self, *, run_clock: bool = True) -> None:
        with self._lock:
            if self._state is TunerState.RUNNING:
                return
            self.last_error = None
            estimator: PitchEstimator | None = None
            clock: FrameClock | None = None
            try:
                self._capture.start()
                estimator = self._estimator_factory(self._capture.sample_rate, self._capture.block_size)
                self._engine = TunerEngine(estimator)
                self._estimator = estimator
                self._state = TunerState.RUNNING
                if run_clock:
                    clock = FrameClock(self.tick, self.config.frame_interval, on_error=self._on_clock_error)
                    # Published before the thread runs so a stop() from the
                    # first tick finds it.
                    self._clock = clock
                    clock.start()
            except Exception as exc:
                logger.error("failed to start tuning session: %s", exc)
                if clock is not None:
                    clock.stop()
                self._clock = None
                self._engine = None
                self._estimator = None
                self._state = TunerState.IDLE
                if estimator is not None:
                    _release(estimator.close, "estimator")
                _release(self._capture.stop, "audio capture")
                raise SessionError(f"could not start tuning session: {exc}") from exc
        logger.info(
            "tuning session started (%d Hz, block=%d)",
            self._capture.sample_rate,
            self._capture.block_size,
        )

    def stop(self) -> None:
        clock, self._clock = self._clock, None
        if clock is not None:
            clock.stop()
        with self._lock:
            if self._state is TunerState.IDLE:
                return
            estimator, self._estimator = self._estimator, None
            self._engine = None
            self._state = TunerState.IDLE
            try:
                if estimator is not None:
                    estimator.close()
            finally:
                self._capture.stop()
        logger.info("tuning session stopped")

    def tick(self, now: float | None = None) -> CycleResult | None:
        engine = self._engine
        if engine is None:
            return None
        now = self._time() if now is None else float(now)
        try:
            frame = self._capture.read()
        except CaptureError as exc:
            logger.error("audio capture failed, stopping session: %s", exc)
            self.last_error = exc
            self.stop()
            return None
        except Exception as exc:  # noqa: BLE001
            logger.warning("audio capture produced no block at t=%.3f: %s", now, exc)
            frame = None
        return engine.process_frame(frame, now)

    def _on_clock_error(self, exc: Exception) -> None:
        self.last_error = exc
        self.stop()

    def current_reading(self) -> NoteReading:
        engine = self._engine
        return engine.current_reading() if engine is not None else NO_READING

    def is_active(self) -> bool:
        engine = self._engine
        return engine is not None and engine.is_active()

    def __enter__(self) -> Tuner:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


def _release(fn: Callable[[], object], what: str) -> None:
    try:
        fn()
    except Exception:
        logger.exception("failed to release %s during start rollback", what)
