import numpy as np

from musicmotion_keys.region import PlayingRegion, RegionMapper
from musicmotion_keys.renderer import OverlayRenderer, RendererSink, piano_key_index, track_for
from musicmotion_keys.types import HandSide, NoteEvent, TrackedPoint


class FakeRenderer:
    def __init__(self):
        self.keys = []
        self.arms = []

    def set_key_visual_state(self, key_index, pressed, track_id):
        self.keys.append((key_index, pressed, track_id))

    def set_arm_target(self, hand_side, key_index):
        self.arms.append((hand_side, key_index))


def test_piano_key_index():
    assert piano_key_index(21) == 0
    assert piano_key_index(60) == 39
    assert piano_key_index(108) == 87
    assert piano_key_index(20) is None
    assert piano_key_index(109) is None


def test_track_for_side():
    assert track_for(HandSide.RIGHT) == 0
    assert track_for(HandSide.LEFT) == 1
    assert track_for(None) == 0


def test_sink_converts_events():
    fake = FakeRenderer()
    sink = RendererSink(fake)
    sink.handle(NoteEvent(note_number=48, velocity=80, on=True, timestamp=0.0, hand_side=HandSide.LEFT))
    sink.handle(NoteEvent(note_number=48, velocity=0, on=False, timestamp=5.0, hand_side=HandSide.LEFT))
    sink.handle(NoteEvent(note_number=10, velocity=80, on=True, timestamp=6.0))
    assert fake.keys == [(27, True, 1), (27, False, 1)]
    assert fake.arms == [(HandSide.LEFT, 27)]


def test_overlay_flash_expires(scheduler, clock):
    overlay = OverlayRenderer(scheduler, flash_ms=150)
    overlay.set_key_visual_state(39, True, 0)
    overlay.set_key_visual_state(39, False, 0)
    assert overlay.lit_keys() == {39}
    clock.advance(150)
    scheduler.run_pending()
    assert overlay.lit_keys() == set()


def test_overlay_arm_target_maps_to_region_key(scheduler, clock):
    overlay = OverlayRenderer(scheduler, arm_blend_ms=0)
    overlay.set_arm_target(HandSide.RIGHT, 41)  # no region yet: ignored
    overlay.mapper = RegionMapper(PlayingRegion(0.0, 0.0, 1.0, 1.0, key_count=12, octave_base=60))
    overlay.set_arm_target(HandSide.RIGHT, 41)  # D4 -> region key 2
    assert overlay.arms.target_of(HandSide.RIGHT) == 2


def test_overlay_draws_on_frame(scheduler):
    overlay = OverlayRenderer(scheduler)
    overlay.mapper = RegionMapper(PlayingRegion(0.1, 0.5, 0.9, 0.9, key_count=8))
    overlay.set_key_visual_state(39, True, 0)
    frame = np.zeros((240, 320, 3), dtype=np.uint8)
    points = [TrackedPoint(point_id="hand0_finger1", x=0.3, y=0.6, signal=0.6, timestamp=0.0)]
    out = overlay.draw_top(frame, points, {"hand0_finger1"}, drag=((0.1, 0.1), (0.4, 0.3)))
    assert out.shape == (240, 320, 3)
    assert out.any()

    side = np.zeros((240, 320, 3), dtype=np.uint8)
    overlay.draw_side(side, points, set(), reference_plane=0.7)
    assert side[int(0.7 * 240)].any()


def test_overlay_clear_cancels_flashes(scheduler, clock):
    overlay = OverlayRenderer(scheduler)
    overlay.set_key_visual_state(40, True, 1)
    overlay.clear()
    assert overlay.lit_keys() == set()
    assert scheduler.pending_count() == 0
