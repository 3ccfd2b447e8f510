from __future__ import annotations

from types import SimpleNamespace

import numpy as np
import pytest

try:
    from tuner.audio import AudioInput, CaptureConfig
except OSError:  # PortAudio shared library not installed
    pytest.skip("sounddevice needs the PortAudio library", allow_module_level=True)

from tuner.errors import CaptureError, ConfigurationError


def _input(block_size: int = 8, hop_size: int = 4) -> AudioInput:
    capture = AudioInput(CaptureConfig(block_size=block_size, hop_size=hop_size))
    # Stand-in for an open stream; the window logic never touches it.
    capture._stream = SimpleNamespace(active=True)
    return capture


def test_read_returns_none_until_window_is_filled() -> None:
    capture = _input()
    assert capture.read() is None
    capture._push(np.ones(4, dtype=np.float32))
    assert capture.read() is None
    capture._push(np.full(4, 2.0, dtype=np.float32))
    window = capture.read()
    assert window is not None
    assert window.tolist() == [1.0] * 4 + [2.0] * 4


def test_window_slides_by_each_pushed_block() -> None:
    capture = _input()
    for value in (1.0, 2.0, 3.0):
        capture._push(np.full(4, value, dtype=np.float32))
    assert capture.read().tolist() == [2.0] * 4 + [3.0] * 4

    capture._push(np.arange(12, dtype=np.float32))
    assert capture.read().tolist() == list(range(4, 12))


def test_empty_block_is_ignored() -> None:
    capture = _input()
    capture._push(np.zeros(0, dtype=np.float32))
    assert capture.read() is None
    capture._push(np.ones(8, dtype=np.float32))
    capture._push(np.zeros(0, dtype=np.float32))
    assert capture.read().tolist() == [1.0] * 8


def test_read_fails_when_stream_is_gone() -> None:
    capture = AudioInput(CaptureConfig(block_size=8, hop_size=4))
    with pytest.raises(CaptureError):
        capture.read()
    capture._stream = SimpleNamespace(active=False)
    with pytest.raises(CaptureError):
        capture.read()


@pytest.mark.parametrize(
    "kwargs",
    [{"sample_rate": 0}, {"block_size": 0}, {"hop_size": 4096}, {"channels": 0}],
)
def test_invalid_capture_config(kwargs: dict[str, int]) -> None:
    with pytest.raises(ConfigurationError):
        CaptureConfig(**kwargs)
