from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum


NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]
A4_HZ = 440.0
C0_HZ = A4_HZ * (2.0 ** -4.75)

IN_TUNE_CENTS = 5.0
# Needle sweep: -50 cents -> -90 deg, +50 cents -> +90 deg.
_DEGREES_PER_CENT = 1.8
_MAX_GAUGE_DEGREES = 90.0


class Guidance(str, Enum):
    READY = "READY"
    LISTENING = "LISTENING"
    PERFECT = "PERFECT"
    TUNE_UP = "TUNE UP"
    TUNE_DOWN = "TUNE DOWN"


@dataclass(frozen=True)
class NoteReading:
    note: str
    octave: int
    cents: float
    frequency: float
    target_frequency: float

    @property
    def has_pitch(self) -> bool:
        return self.frequency > 0

    def to_event(self) -> dict[str, object]:
        return {
            "note": self.note,
            "octave": int(self.octave),
            "cents": float(self.cents),
            "frequency": float(self.frequency),
            "targetFrequency": float(self.target_frequency),
        }


NO_READING = NoteReading(note="-", octave=0, cents=0.0, frequency=0.0, target_frequency=0.0)


def nearest_semitone(x: float) -> int:
    """Round a fractional semitone index to the nearest integer.

    Exact ties go to the lower semitone (round half down), so a frequency
    sitting precisely between two notes reads as the lower note +50 cents
    and the cents range stays ``(-50, 50]``. This holds for negative
    indices as well: ``-2.5`` rounds to ``-3``.
    """
    return int(math.ceil(x - 0.5))


def map_frequency(frequency: float) -> NoteReading:
    """Map ``frequency`` (Hz) to the nearest 12-TET note, A4 = 440 Hz.

    Zero, negative and non-finite frequencies mean "no reading" and return
    :data:`NO_READING`.
    """
    if not math.isfinite(frequency) or frequency <= 0:
        return NO_READING

    semitones = 12.0 * math.log2(frequency / C0_HZ)
    half_steps = nearest_semitone(semitones)
    cents = 100.0 * (semitones - half_steps)
    # Keep cents in (-50, 50] when float error lands just past a tie.
    if cents <= -50.0:
        half_steps -= 1
        cents = 100.0 * (semitones - half_steps)
    elif cents > 50.0:
        half_steps += 1
        cents = 100.0 * (semitones - half_steps)
    octave = half_steps // 12
    note_index = half_steps % 12

    target = C0_HZ * (2.0 ** (half_steps / 12.0))
    return NoteReading(
        note=NOTE_NAMES[note_index],
        octave=int(octave),
        cents=float(cents),
        frequency=float(frequency),
        target_frequency=float(target),
    )


def gauge_angle(cents: float) -> float:
    return float(max(-_MAX_GAUGE_DEGREES, min(_MAX_GAUGE_DEGREES, cents * _DEGREES_PER_CENT)))


def guidance(reading: NoteReading, *, listening: bool = True) -> Guidance:
    if not listening:
        return Guidance.READY
    if not reading.has_pitch:
        return Guidance.LISTENING
    if abs(reading.cents) < IN_TUNE_CENTS:
        return Guidance.PERFECT
    if reading.cents < 0:
        return Guidance.TUNE_UP
    return Guidance.TUNE_DOWN
