from __future__ import annotations


class LiveDetectError(Exception):
    """Root of every error raised by livedetect."""


class ConfigError(LiveDetectError, ValueError):
    pass


class DetectorInitError(LiveDetectError, RuntimeError):
    """Detector construction failed. Fatal for the pipeline instance."""


class NotReadyError(LiveDetectError, RuntimeError):
    """Detection requested before the detector is READY (or after close)."""


class FrameError(LiveDetectError, ValueError):
    """A single frame could not be preprocessed or inferred."""
