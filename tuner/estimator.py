from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol

import numpy as np

from tuner.errors import ConfigurationError, FrameSizeError


@dataclass(frozen=True)
class EstimatorConfig:
    min_hz: float = 60.0
    max_hz: float = 1200.0

    def __post_init__(self) -> None:
        if not (0.0 < self.min_hz < self.max_hz):
            raise ConfigurationError(
                f"expected 0 < min_hz < max_hz, got min_hz={self.min_hz}, max_hz={self.max_hz}"
            )


class PitchEstimator(Protocol):
    def detect(self, buffer: np.ndarray) -> float: ...

    def close(self) -> None: ...


EstimatorFactory = Callable[[int, int], PitchEstimator]


def as_frame(samples: np.ndarray, block_size: int) -> np.ndarray:
    """Return ``samples`` as a flat float32 frame of exactly ``block_size`` samples."""
    frame = np.asarray(samples, dtype=np.float32).reshape(-1)
    if frame.size != block_size:
        raise FrameSizeError(f"expected a frame of {block_size} samples, got {frame.size}")
    return frame


class AutocorrelationEstimator:
    """
    Single-frame pitch estimator.

    Strategy:
    - Zero-pad the frame to twice its length so the FFT gives the linear
      (not circular) autocorrelation.
    - r = irfft(|rfft(x)|^2).
    - Strongest local peak within [sr/max_hz, sr/min_hz].
    - Climb to the matching peak of the unbiased (r[k] / (n - k)) curve,
      then parabolic interpolation for sub-sample lag.

    Returns 0.0 when no peak is found.
    """

    def __init__(self, sample_rate: int, block_size: int, config: EstimatorConfig | None = None) -> None:
        if sample_rate <= 0:
            raise ConfigurationError(f"sample_rate must be positive, got {sample_rate}")
        if block_size <= 0:
            raise ConfigurationError(f"block_size must be positive, got {block_size}")
        self._cfg = config or EstimatorConfig()
        self.sample_rate = int(sample_rate)
        self.block_size = int(block_size)

        self._min_lag = max(1, int(self.sample_rate / self._cfg.max_hz))
        self._max_lag = min(int(self.sample_rate / self._cfg.min_hz), self.block_size - 1)
        if self._min_lag >= self._max_lag:
            raise ConfigurationError(
                f"block_size={self.block_size} is too short to resolve "
                f"{self._cfg.min_hz}-{self._cfg.max_hz} Hz at {self.sample_rate} Hz"
            )
        self._closed = False

    def detect(self, buffer: np.ndarray) -> float:
        if self._closed:
            raise RuntimeError("estimator is closed")
        x = as_frame(buffer, self.block_size)
        x = x - float(np.mean(x))

        n = self.block_size
        spec = np.fft.rfft(x, n=2 * n)
        r = np.fft.irfft(spec * np.conj(spec), n=2 * n)[:n]
        if float(r[0]) <= 1e-12:
            return 0.0

        lags = np.arange(self._min_lag, self._max_lag)
        vals = r[lags]
        is_peak = (vals > r[lags - 1]) & (vals > r[lags + 1])
        if not np.any(is_peak):
            return 0.0
        peak_lags = lags[is_peak]
        i = int(peak_lags[int(np.argmax(r[peak_lags]))])

        # The (n - k) taper pulls the raw peak toward shorter lags; refine on
        # the unbiased autocorrelation instead.
        unbiased = r / (n - np.arange(n, dtype=np.float64))
        while i + 1 < self._max_lag and unbiased[i + 1] > unbiased[i]:
            i += 1
        while i - 1 > self._min_lag and unbiased[i - 1] > unbiased[i]:
            i -= 1

        y0, y1, y2 = float(unbiased[i - 1]), float(unbiased[i]), float(unbiased[i + 1])
        denom = y0 - 2.0 * y1 + y2
        lag = float(i)
        if abs(denom) > 1e-12:
            lag += 0.5 * (y0 - y2) / denom
        if lag <= 0.0:
            return 0.0
        return float(self.sample_rate / lag)

    def close(self) -> None:
        self._closed = True


def default_estimator(sample_rate: int, block_size: int) -> AutocorrelationEstimator:
    return AutocorrelationEstimator(sample_rate, block_size)
