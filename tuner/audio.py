from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Protocol

import numpy as np
import sounddevice as sd

from tuner.errors import CaptureError, ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CaptureConfig:
    sample_rate: int = 44100
    channels: int = 1
    # Analysis window handed to the estimator each cycle.
    block_size: int = 2048
    # Device callback size; the window slides by this many samples.
    hop_size: int = 512
    device: int | str | None = None

    def __post_init__(self) -> None:
        if self.sample_rate <= 0:
            raise ConfigurationError(f"sample_rate must be positive, got {self.sample_rate}")
        if self.block_size <= 0:
            raise ConfigurationError(f"block_size must be positive, got {self.block_size}")
        if not (0 < self.hop_size <= self.block_size):
            raise ConfigurationError(
                f"hop_size must be in (0, block_size], got {self.hop_size}"
            )
        if self.channels <= 0:
            raise ConfigurationError(f"channels must be positive, got {self.channels}")


class CaptureSource(Protocol):
    @property
    def sample_rate(self) -> int: ...

    @property
    def block_size(self) -> int: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def read(self) -> np.ndarray | None: ...


class AudioInput:
    """Microphone capture exposing the most recent ``block_size`` samples."""

    def __init__(self, config: CaptureConfig | None = None) -> None:
        self._cfg = config or CaptureConfig()
        self._lock = threading.Lock()
        self._window = np.zeros(self._cfg.block_size, dtype=np.float32)
        self._filled = 0
        self._stream: sd.InputStream | None = None

    @property
    def sample_rate(self) -> int:
        return self._cfg.sample_rate

    @property
    def block_size(self) -> int:
        return self._cfg.block_size

    @property
    def is_running(self) -> bool:
        return self._stream is not None

    def start(self) -> None:
        if self._stream is not None:
            return
        with self._lock:
            self._window[:] = 0.0
            self._filled = 0

        def callback(indata, frames, time_info, status) -> None:  # noqa: ARG001
            if status:
                # Drop blocks on over/underflow.
                return
            mono = np.asarray(indata[:, 0], dtype=np.float32)
            with self._lock:
                self._push(mono)

        stream = sd.InputStream(
            samplerate=self._cfg.sample_rate,
            channels=self._cfg.channels,
            blocksize=self._cfg.hop_size,
            device=self._cfg.device,
            dtype="float32",
            callback=callback,
        )
        try:
            stream.start()
        except Exception:
            stream.close()
            raise
        self._stream = stream
        logger.info(
            "audio capture started (%d Hz, block=%d, hop=%d)",
            self._cfg.sample_rate,
            self._cfg.block_size,
            self._cfg.hop_size,
        )

    def stop(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.stop()
            self._stream.close()
        finally:
            self._stream = None
            logger.info("audio capture stopped")

    def read(self) -> np.ndarray | None:
        stream = self._stream
        if stream is None:
            raise CaptureError("audio capture is not running")
        if not stream.active:
            raise CaptureError("input stream is no longer active")
        with self._lock:
            if self._filled < self._cfg.block_size:
                return None
            return self._window.copy()

    def _push(self, x: np.ndarray) -> None:
        n = int(x.size)
        if n == 0:
            return
        size = self._cfg.block_size
        if n >= size:
            self._window[:] = x[-size:]
        else:
            self._window[:-n] = self._window[n:]
            self._window[-n:] = x
        self._filled = min(size, self._filled + n)
