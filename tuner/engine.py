from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np

from tuner.estimator import EstimatorFactory, PitchEstimator, default_estimator
from tuner.gate import GateDecision, SignalGate
from tuner.notes import NoteReading, gauge_angle, guidance, map_frequency
from tuner.smoothing import Smoother

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PitchSnapshot:
    hz: float = 0.0
    t: float | None = None


@dataclass(frozen=True)
class CycleResult:
    t: float
    raw_hz: float
    energy: float
    decision: GateDecision
    pitch_hz: float

    @property
    def reading(self) -> NoteReading:
        return map_frequency(self.pitch_hz)

    def to_event(self) -> dict[str, object]:
        reading = self.reading
        return {
            "type": "reading",
            "t": float(self.t),
            **reading.to_event(),
            "active": bool(self.pitch_hz > 0),
            "gaugeAngle": gauge_angle(reading.cents),
            "guidance": guidance(reading).value,
            "rawHz": float(self.raw_hz),
            "rms": float(self.energy),
        }


class TunerEngine:
    """
    State of one tuning session and the per-cycle update.

    Each cycle runs gate -> smoother and replaces the published snapshot:
    accepted samples publish the smoothed mean, held cycles keep the last
    value, and a ``SILENT`` release clears the window and publishes 0.
    """

    def __init__(self, estimator: PitchEstimator | None = None) -> None:
        self.estimator = estimator
        self.gate = SignalGate()
        self.smoother = Smoother()
        self._snapshot = PitchSnapshot()

    @property
    def snapshot(self) -> PitchSnapshot:
        return self._snapshot

    @property
    def pitch_hz(self) -> float:
        return self._snapshot.hz

    def process_estimate(self, raw_hz: float, energy: float, now: float) -> CycleResult:
        decision = self.gate.evaluate(raw_hz, energy, now)
        if decision is GateDecision.ACCEPTED:
            self._snapshot = PitchSnapshot(self.smoother.push(raw_hz), now)
        elif decision is GateDecision.SILENT:
            self.smoother.reset()
            self._snapshot = PitchSnapshot(0.0, now)
        return CycleResult(
            t=float(now),
            raw_hz=float(raw_hz),
            energy=float(energy),
            decision=decision,
            pitch_hz=self._snapshot.hz,
        )

    def process_frame(self, frame: np.ndarray | None, now: float) -> CycleResult:
        if self.estimator is None:
            raise RuntimeError("engine has no pitch estimator")
        if frame is None:
            logger.debug("no audio block at t=%.3f; treating cycle as silent", now)
            return self.process_estimate(0.0, 0.0, now)

        energy = rms(frame)
        try:
            raw_hz = float(self.estimator.detect(frame))
        except Exception as exc:  # noqa: BLE001
            logger.warning("pitch estimation failed at t=%.3f: %s", now, exc)
            raw_hz = 0.0
        if not math.isfinite(raw_hz):
            raw_hz = 0.0
        return self.process_estimate(raw_hz, energy, now)

    def current_reading(self) -> NoteReading:
        return map_frequency(self._snapshot.hz)

    def is_active(self) -> bool:
        return self._snapshot.hz > 0

    def reset(self) -> None:
        self.gate.reset()
        self.smoother.reset()
        self._snapshot = PitchSnapshot()


def rms(x: np.ndarray) -> float:
    x = np.asarray(x, dtype=np.float32)
    if x.size == 0:
        return 0.0
    return float(math.sqrt(float(np.mean(np.square(x)))))


def analyze_recording(
    audio: np.ndarray,
    sample_rate: int,
    block_size: int = 2048,
    *,
    estimator_factory: EstimatorFactory = default_estimator,
) -> list[CycleResult]:
    """Run a mono recording through a fresh engine, one block per cycle."""
    estimator = estimator_factory(int(sample_rate), int(block_size))
    engine = TunerEngine(estimator)
    samples = np.asarray(audio, dtype=np.float32).reshape(-1)
    step = block_size / float(sample_rate)
    results: list[CycleResult] = []
    try:
        for k, i in enumerate(range(0, samples.size - block_size + 1, block_size)):
            block = samples[i : i + block_size]
            results.append(engine.process_frame(block, (k + 1) * step))
    finally:
        estimator.close()
    return results
