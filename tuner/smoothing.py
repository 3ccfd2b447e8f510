from __future__ import annotations

from collections import deque

SMOOTHING_WINDOW = 5


class Smoother:
    """Moving average over the last few accepted pitch estimates."""

    def __init__(self, window: int = SMOOTHING_WINDOW) -> None:
        self._recent: deque[float] = deque(maxlen=int(window))

    def push(self, value: float) -> float:
        self._recent.append(float(value))
        return float(sum(self._recent) / len(self._recent))

    def reset(self) -> None:
        self._recent.clear()

    @property
    def values(self) -> list[float]:
        return list(self._recent)

    def __len__(self) -> int:
        return len(self._recent)
