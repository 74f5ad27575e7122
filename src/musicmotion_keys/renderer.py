from __future__ import annotations

from typing import Dict, List, Optional, Protocol, Set, Tuple, Union

from . import drawing
from .pose import ArmPoseArena
from .region import DualRegionMapper, RegionMapper
from .scheduler import Deferred, DeferredScheduler
from .types import HandSide, NoteEvent, TrackedPoint
from .utils import midi_to_note_name


PIANO_LOWEST_NOTE = 21  # A0
PIANO_KEYS = 88

KeyMapper = Union[RegionMapper, DualRegionMapper]


def piano_key_index(note_number: int) -> Optional[int]:
    """88-key index (A0 = 0) of a MIDI note, or None off the keyboard."""
    idx = note_number - PIANO_LOWEST_NOTE
    return idx if 0 <= idx < PIANO_KEYS else None


def track_for(side: Optional[HandSide]) -> int:
    return 1 if side is HandSide.LEFT else 0


class KeyboardRenderer(Protocol):
    def set_key_visual_state(self, key_index: int, pressed: bool, track_id: int) -> None: ...

    def set_arm_target(self, hand_side: HandSide, key_index: int) -> None: ...


class RendererSink:
    """Turns note events into renderer commands; the renderer never sees pipeline internals."""

    def __init__(self, renderer: KeyboardRenderer) -> None:
        self.renderer = renderer

    def handle(self, event: NoteEvent) -> None:
        key = piano_key_index(event.note_number)
        if key is None:
            return
        side = event.hand_side or HandSide.RIGHT
        self.renderer.set_key_visual_state(key, event.on, track_for(side))
        if event.on:
            self.renderer.set_arm_target(side, key)


class OverlayRenderer:
    """
    OpenCV overlay for the camera windows: the playing region keys, the desk
    line, fingertips and brief key flashes. Arm targets are kept in an
    `ArmPoseArena` and drawn as markers under the region.
    """

    def __init__(self, scheduler: DeferredScheduler, *, flash_ms: float = 150.0, arm_blend_ms: float = 300.0) -> None:
        self._scheduler = scheduler
        self.flash_ms = float(flash_ms)
        self.arms = ArmPoseArena(blend_ms=arm_blend_ms)
        self.mapper: Optional[KeyMapper] = None
        self._held: Dict[Tuple[int, int], bool] = {}
        self._flashes: Dict[int, Deferred] = {}

    # -- KeyboardRenderer

    def set_key_visual_state(self, key_index: int, pressed: bool, track_id: int) -> None:
        if pressed:
            self._held[(key_index, track_id)] = True
            self._flash(key_index)
        else:
            self._held.pop((key_index, track_id), None)

    def set_arm_target(self, hand_side: HandSide, key_index: int) -> None:
        region_key = self._region_key(key_index)
        if region_key is not None:
            self.arms.set_target(hand_side, region_key, self._scheduler.now())

    # -- state

    def lit_keys(self) -> Set[int]:
        """88-key indices currently held or flashing."""
        return {k for (k, _) in self._held} | set(self._flashes)

    def clear(self) -> None:
        for handle in self._flashes.values():
            self._scheduler.cancel(handle)
        self._flashes.clear()
        self._held.clear()

    # -- drawing

    def draw_top(self, frame, points: List[TrackedPoint], pressed_ids: Set[str], drag=None):
        if drag is not None:
            drawing.draw_drag_rect(frame, *drag)
        if self.mapper is not None:
            m = self.mapper
            lit_piano = self.lit_keys()
            lit = {i for i in range(m.key_count) if self._piano_key(i) in lit_piano}
            labels = [midi_to_note_name(m.note_for_key(i)) for i in range(m.key_count)]
            drawing.draw_region_keys(frame, m.region, labels, lit)
            positions = self.arms.advance(self._scheduler.now())
            drawing.draw_arm_markers(
                frame, m.region, m.key_count, [(side.value, pos) for side, pos in positions.items()]
            )
        drawing.draw_fingertips(frame, points, pressed_ids)
        return frame

    def draw_side(self, frame, points: List[TrackedPoint], pressed_ids: Set[str], reference_plane: Optional[float]):
        drawing.draw_desk_line(frame, reference_plane)
        drawing.draw_fingertips(frame, points, pressed_ids)
        return frame

    def _flash(self, key_index: int) -> None:
        self._scheduler.cancel(self._flashes.get(key_index))
        self._flashes[key_index] = self._scheduler.call_later(
            self.flash_ms, self._flashes.pop, key_index, None, label="key-flash"
        )

    def _piano_key(self, region_key: int) -> Optional[int]:
        if self.mapper is None:
            return None
        return piano_key_index(self.mapper.note_for_key(region_key))

    def _region_key(self, piano_key: int) -> Optional[int]:
        if self.mapper is None:
            return None
        for i in range(self.mapper.key_count):
            if self._piano_key(i) == piano_key:
                return i
        return None
