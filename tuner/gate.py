from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

# RMS needed to pick up a new note vs. to keep tracking one already sounding.
ATTACK_THRESHOLD = 0.01
SUSTAIN_THRESHOLD = 0.001
GRACE_PERIOD_MS = 300


class GateDecision(str, Enum):
    ACCEPTED = "accepted"
    HOLDING = "holding"
    SILENT = "silent"

    @property
    def active(self) -> bool:
        return self is not GateDecision.SILENT


@dataclass
class GateState:
    sustaining: bool = False
    silence_started_at: float | None = None


class SignalGate:
    """
    Schmitt-trigger style voice-activity gate.

    - A new note needs ``energy > ATTACK_THRESHOLD``; once sustaining, the
      looser ``SUSTAIN_THRESHOLD`` applies.
    - Rejected cycles are held as active for ``GRACE_PERIOD_MS`` so the last
      reading survives short dropouts.
    - Past the grace period the gate reports ``SILENT`` once and re-arms for
      a fresh attack.
    """

    def __init__(self) -> None:
        self.state = GateState()

    @property
    def active_threshold(self) -> float:
        return SUSTAIN_THRESHOLD if self.state.sustaining else ATTACK_THRESHOLD

    def evaluate(self, raw_hz: float, energy: float, now: float) -> GateDecision:
        state = self.state
        if raw_hz > 0 and energy > self.active_threshold:
            state.sustaining = True
            state.silence_started_at = None
            return GateDecision.ACCEPTED

        if state.silence_started_at is None:
            state.silence_started_at = float(now)
            return GateDecision.HOLDING

        # Compare at microsecond resolution so exactly 300 ms is held, not left
        # to float rounding.
        elapsed_ms = round((now - state.silence_started_at) * 1000.0, 3)
        if elapsed_ms > GRACE_PERIOD_MS:
            state.silence_started_at = None
            state.sustaining = False
            return GateDecision.SILENT

        return GateDecision.HOLDING

    def reset(self) -> None:
        self.state = GateState()
