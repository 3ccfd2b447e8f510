from __future__ import annotations


class TunerError(Exception):
    pass


class ConfigurationError(TunerError, ValueError):
    """Invalid construction parameters."""


class FrameSizeError(ConfigurationError):
    """An audio buffer does not match the configured block size."""


class CaptureError(TunerError, RuntimeError):
    """Audio capture can no longer deliver blocks (device lost, stream closed)."""


class SessionError(TunerError, RuntimeError):
    """A tuning session failed to start."""
