from .config import PipelineConfig, load_config, save_config
from .errors import CalibrationIncomplete, DetectorUnavailable, NothingRecorded, PianoError, RegionUndefined
from .pipeline import KeyboardPipeline, PipelineMode
from .region import KeyLayout, PlayingRegion
from .scheduler import DeferredScheduler
from .types import HandLandmark, HandPosition, NoteEvent, TrackedPoint

__all__ = [
    "KeyboardPipeline",
    "PipelineMode",
    "PipelineConfig",
    "load_config",
    "save_config",
    "DeferredScheduler",
    "PlayingRegion",
    "KeyLayout",
    "HandPosition",
    "HandLandmark",
    "TrackedPoint",
    "NoteEvent",
    "PianoError",
    "DetectorUnavailable",
    "CalibrationIncomplete",
    "RegionUndefined",
    "NothingRecorded",
]
