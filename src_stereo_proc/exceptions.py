"""
Exception hierarchy for the stereo processing pipeline.

Sensor-driven faults (calibration, encodings, grid shapes) are local to one
synchronized tuple and are recovered from by skipping that tuple. Lifecycle
invariant violations are programming errors and are not recovered from.
"""


class StereoProcError(RuntimeError):
    """Base class for recoverable per-tuple processing failures."""


class CalibrationError(StereoProcError, ValueError):
    """Calibration is absent, uncalibrated, mismatched or numerically invalid."""


class DimensionMismatchError(StereoProcError, ValueError):
    """Two grids that must be pixel-aligned have different shapes."""


class UnsupportedEncodingError(StereoProcError, ValueError):
    """An image step was asked to convert an encoding it does not handle."""


class OpenCVStageError(StereoProcError):
    """An OpenCV call rejected the frame it was given."""


class LifecycleInvariantError(AssertionError):
    """The subscription lifecycle was driven into an impossible state."""
