from __future__ import annotations

import numpy as np
import pytest

from tuner.errors import ConfigurationError, FrameSizeError
from tuner.estimator import AutocorrelationEstimator, EstimatorConfig, as_frame


def _sine(freq: float, sample_rate: int, n: int, amp: float = 0.3) -> np.ndarray:
    t = np.arange(n, dtype=np.float32) / sample_rate
    return (amp * np.sin(2 * np.pi * freq * t)).astype(np.float32)


@pytest.mark.parametrize("freq", [82.41, 110.0, 196.0, 440.0, 880.0])
def test_detects_stable_tone(freq: float) -> None:
    sample_rate = 44_100
    estimator = AutocorrelationEstimator(sample_rate, 2048)
    hz = estimator.detect(_sine(freq, sample_rate, 2048))
    assert abs(hz - freq) / freq < 0.015


def test_silence_has_no_pitch() -> None:
    estimator = AutocorrelationEstimator(44_100, 2048)
    assert estimator.detect(np.zeros(2048, dtype=np.float32)) == 0.0


def test_frame_length_is_validated() -> None:
    estimator = AutocorrelationEstimator(44_100, 2048)
    with pytest.raises(FrameSizeError):
        estimator.detect(np.zeros(1024, dtype=np.float32))
    assert as_frame([0.0] * 4, 4).dtype == np.float32


@pytest.mark.parametrize(
    "kwargs",
    [
        {"sample_rate": 0, "block_size": 2048},
        {"sample_rate": 44_100, "block_size": -1},
        {"sample_rate": 44_100, "block_size": 16},
    ],
)
def test_invalid_construction_fails_fast(kwargs: dict[str, int]) -> None:
    with pytest.raises(ConfigurationError):
        AutocorrelationEstimator(**kwargs)


def test_invalid_band_rejected() -> None:
    with pytest.raises(ConfigurationError):
        EstimatorConfig(min_hz=500.0, max_hz=100.0)


def test_closed_estimator_refuses_work() -> None:
    estimator = AutocorrelationEstimator(44_100, 2048)
    estimator.close()
    with pytest.raises(RuntimeError):
        estimator.detect(np.zeros(2048, dtype=np.float32))
