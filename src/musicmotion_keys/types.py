from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional


FINGERTIP_INDICES = (4, 8, 12, 16, 20)  # thumb/index/middle/ring/pinky


class PressState(Enum):
    RELEASED = "released"
    PRESSED = "pressed"


class NoteSource(Enum):
    LIVE = "live"
    PLAYBACK = "playback"


class HandSide(str, Enum):
    LEFT = "left"
    RIGHT = "right"


@dataclass(frozen=True)
class HandLandmark:
    """A single normalized hand landmark as reported by the detector."""

    idx: int
    x_norm: float
    y_norm: float
    z_norm: float = 0.0


@dataclass(frozen=True)
class HandPosition:
    """Detected landmarks for a single hand."""

    handedness_label: Optional[str]  # "Left" / "Right" (may be None)
    handedness_score: Optional[float]
    landmarks: List[HandLandmark]  # length 21


@dataclass(frozen=True)
class TrackedPoint:
    """
    One fingertip in one detector frame.

    `signal` is the value compared against the calibrated reference plane
    (normalized image y, growing toward the desk); `depth` is the optional
    z proxy.
    """

    point_id: str
    x: float
    y: float
    signal: float
    timestamp: float  # ms
    hand_index: int = 0
    finger_index: int = 0
    depth: float = 0.0


@dataclass(frozen=True)
class PressEvent:
    point_id: str
    x: float
    y: float
    timestamp: float


@dataclass(frozen=True)
class KeyHit:
    key_index: int
    note_number: int
    hand_side: Optional[HandSide] = None


@dataclass(frozen=True)
class NoteEvent:
    """The note-on / note-off contract crossing into every downstream consumer."""

    note_number: int
    velocity: int
    on: bool
    timestamp: float  # ms
    point_id: Optional[str] = None
    key_index: Optional[int] = None
    hand_side: Optional[HandSide] = None
    source: NoteSource = NoteSource.LIVE


@dataclass(frozen=True)
class RecordedEvent:
    note_number: int
    velocity: int
    start_offset_ms: float
    duration_ms: float

    @property
    def end_offset_ms(self) -> float:
        return self.start_offset_ms + self.duration_ms
