from __future__ import annotations

import numpy as np
import pytest

from tuner.engine import TunerEngine, analyze_recording, rms
from tuner.gate import GateDecision


class FakeEstimator:
    def __init__(self, values: list[float | Exception]) -> None:
        self._values = list(values)
        self.closed = False

    def detect(self, buffer: np.ndarray) -> float:
        value = self._values.pop(0)
        if isinstance(value, Exception):
            raise value
        return value

    def close(self) -> None:
        self.closed = True


def test_sustained_note_then_silence() -> None:
    engine = TunerEngine()
    t = 0.0
    for _ in range(10):
        result = engine.process_estimate(110.0, 0.05, t)
        t += 0.02
    assert result.decision is GateDecision.ACCEPTED
    assert len(engine.smoother) == 5
    assert engine.pitch_hz == pytest.approx(110.0)

    reading = engine.current_reading()
    assert reading.note == "A"
    assert reading.octave == 2
    assert abs(reading.cents) < 1e-6
    assert engine.is_active()

    for _ in range(20):
        engine.process_estimate(0.0, 0.0001, t)
        t += 0.02
    assert engine.is_active() is False
    assert engine.current_reading().note == "-"


def test_smoothed_value_converges_after_window_fills() -> None:
    engine = TunerEngine()
    published = [engine.process_estimate(hz, 0.05, i * 0.02).pitch_hz for i, hz in enumerate([100.0, 110.0, 110.0, 110.0, 110.0, 110.0])]
    assert published[0] == pytest.approx(100.0)
    assert published[1] == pytest.approx(105.0)
    assert published[4] == pytest.approx(108.0)
    assert published[5] == pytest.approx(110.0)


def test_pitch_held_during_grace_and_cleared_on_release() -> None:
    engine = TunerEngine()
    engine.process_estimate(220.0, 0.05, 0.0)

    held = [engine.process_estimate(0.0, 0.0, t) for t in (0.02, 0.1, 0.2, 0.3)]
    assert all(r.decision is GateDecision.HOLDING for r in held)
    assert all(r.pitch_hz == pytest.approx(220.0) for r in held)

    released = engine.process_estimate(0.0, 0.0, 0.34)
    assert released.decision is GateDecision.SILENT
    assert released.pitch_hz == 0.0
    assert len(engine.smoother) == 0
    assert engine.snapshot.t == 0.34


def test_new_attack_after_release_starts_fresh_average() -> None:
    engine = TunerEngine()
    engine.process_estimate(110.0, 0.05, 0.0)
    engine.process_estimate(0.0, 0.0, 0.02)
    engine.process_estimate(0.0, 0.0, 0.4)
    result = engine.process_estimate(440.0, 0.05, 0.42)
    assert result.pitch_hz == pytest.approx(440.0)


def test_process_frame_treats_estimator_failure_as_rejection(caplog: pytest.LogCaptureFixture) -> None:
    frame = np.full(64, 0.1, dtype=np.float32)
    engine = TunerEngine(FakeEstimator([196.0, RuntimeError("boom"), 196.0]))

    assert engine.process_frame(frame, 0.0).decision is GateDecision.ACCEPTED
    with caplog.at_level("WARNING", logger="tuner.engine"):
        failed = engine.process_frame(frame, 0.02)
    assert failed.decision is GateDecision.HOLDING
    assert failed.raw_hz == 0.0
    assert failed.pitch_hz == pytest.approx(196.0)
    assert "pitch estimation failed" in caplog.text

    assert engine.process_frame(frame, 0.04).decision is GateDecision.ACCEPTED


def test_process_frame_without_block_is_rejection() -> None:
    engine = TunerEngine(FakeEstimator([]))
    result = engine.process_frame(None, 0.0)
    assert result.decision is GateDecision.HOLDING
    assert result.energy == 0.0


def test_process_frame_computes_rms_energy() -> None:
    frame = np.array([0.5, -0.5, 0.5, -0.5], dtype=np.float32)
    engine = TunerEngine(FakeEstimator([100.0]))
    result = engine.process_frame(frame, 0.0)
    assert result.energy == pytest.approx(0.5)
    assert rms(np.zeros(0, dtype=np.float32)) == 0.0


def test_reading_event_shape() -> None:
    engine = TunerEngine()
    event = engine.process_estimate(440.0, 0.05, 1.0).to_event()
    assert event["type"] == "reading"
    assert event["note"] == "A"
    assert event["octave"] == 4
    assert event["active"] is True
    assert event["guidance"] == "PERFECT"
    assert event["gaugeAngle"] == pytest.approx(0.0, abs=1e-4)


def test_analyze_recording_finds_note_then_silence() -> None:
    sample_rate = 44_100
    t = np.arange(0, sample_rate // 2, dtype=np.float32) / sample_rate
    tone = (0.3 * np.sin(2 * np.pi * 196.0 * t)).astype(np.float32)
    audio = np.concatenate([tone, np.zeros(sample_rate // 2, dtype=np.float32)])

    results = analyze_recording(audio, sample_rate, 2048)

    assert len(results) == audio.size // 2048
    voiced = [r for r in results if r.decision is GateDecision.ACCEPTED]
    assert voiced
    reading = voiced[-1].reading
    assert (reading.note, reading.octave) == ("G", 3)
    assert results[-1].pitch_hz == 0.0
