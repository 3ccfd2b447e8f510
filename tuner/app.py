from __future__ import annotations

import argparse
import logging
import sys
import time

from tuner.audio import AudioInput, CaptureConfig
from tuner.errors import SessionError
from tuner.notes import gauge_angle, guidance
from tuner.session import Tuner

logger = logging.getLogger(__name__)


def format_reading(tuner: Tuner) -> str:
    reading = tuner.current_reading()
    label = guidance(reading, listening=tuner.is_running).value
    if not reading.has_pitch:
        return f"  --     ---.-- Hz            {label}"
    needle = int(round(gauge_angle(reading.cents) / 9.0))  # -10..10 columns
    bar = "".join("|" if i == needle else ("+" if i == 0 else "-") for i in range(-10, 11))
    return (
        f"{reading.note:>2}{reading.octave:<2} {reading.frequency:8.2f} Hz "
        f"{reading.cents:+6.1f}c [{bar}] {label}"
    )


def parse_device(value: str) -> int | str:
    """Numeric values select a device by index; anything else matches by name."""
    value = value.strip()
    return int(value) if value.isdigit() else value


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Live microphone tuner.")
    parser.add_argument("--sample-rate", type=int, default=44100)
    parser.add_argument("--block-size", type=int, default=2048)
    parser.add_argument("--device", type=parse_device, default=None, help="input device index or name")
    parser.add_argument("--refresh", type=float, default=0.1, help="seconds between readout lines")
    parser.add_argument("-v", "--verbose", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    capture = AudioInput(
        CaptureConfig(sample_rate=args.sample_rate, block_size=args.block_size, device=args.device)
    )
    tuner = Tuner(capture)
    try:
        tuner.start()
    except SessionError as exc:
        logger.error("%s", exc)
        return 1

    try:
        while tuner.is_running:
            sys.stdout.write("\r" + format_reading(tuner))
            sys.stdout.flush()
            time.sleep(args.refresh)
    except KeyboardInterrupt:
        pass
    finally:
        tuner.stop()
        sys.stdout.write("\n")

    if tuner.last_error is not None:
        logger.error("session ended: %s", tuner.last_error)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
