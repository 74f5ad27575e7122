"""
Errors surfaced to the user.

Per-frame noise, uncalibrated points and out-of-region fingertips are not
errors: they are silent no-ops inside the pipeline and never reach this module.
"""


class PianoError(Exception):
    """Base class for user-facing pipeline errors."""


class DetectorUnavailable(PianoError, RuntimeError):
    """The hand-landmark detector could not start or stopped producing frames."""


class CalibrationIncomplete(PianoError):
    """An action needs a calibrated reference plane first."""


class RegionUndefined(PianoError):
    """An action needs a playing region to be drawn first."""


class NothingRecorded(PianoError):
    """Playback was requested with an empty recording."""
