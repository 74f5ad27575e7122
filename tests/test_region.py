import pytest

from musicmotion_keys.region import (
    DualRegionMapper,
    KeyLayout,
    PlayingRegion,
    RegionMapper,
    key_to_note,
    split_bases,
)
from musicmotion_keys.types import HandSide


@pytest.fixture
def region():
    return PlayingRegion(x_min=0.2, y_min=0.4, x_max=0.8, y_max=0.9, key_count=12, octave_base=60)


def test_from_drag_normalizes_corners():
    r = PlayingRegion.from_drag((0.8, 0.9), (0.2, 0.4))
    assert (r.x_min, r.y_min, r.x_max, r.y_max) == (0.2, 0.4, 0.8, 0.9)


@pytest.mark.parametrize("start, end", [((0.2, 0.4), (0.2, 0.9)), ((0.2, 0.4), (0.8, 0.4))])
def test_degenerate_region_rejected(start, end):
    with pytest.raises(ValueError):
        PlayingRegion.from_drag(start, end)


def test_zero_keys_rejected():
    with pytest.raises(ValueError):
        PlayingRegion(0.0, 0.0, 1.0, 1.0, key_count=0)


def test_keys_increase_left_to_right(region):
    mapper = RegionMapper(region)
    xs = [0.2 + 0.6 * i / 100 for i in range(100)] + [0.8]
    notes = [mapper.key_at(x, 0.5).note_number for x in xs]
    assert notes == sorted(notes)
    assert notes[0] == 60
    assert notes[-1] == 71


def test_right_edge_maps_to_last_key(region):
    hit = RegionMapper(region).key_at(0.8, 0.6)
    assert hit.key_index == 11
    assert hit.note_number == 71


def test_outside_region_is_none(region):
    mapper = RegionMapper(region)
    assert mapper.key_at(0.1, 0.5) is None
    assert mapper.key_at(0.5, 0.95) is None


def test_margin_widens_and_clamps(region):
    mapper = RegionMapper(region)
    hit = mapper.key_at(0.15, 0.5, margin=0.1)
    assert hit.key_index == 0
    hit = mapper.key_at(0.85, 0.5, margin=0.1)
    assert hit.key_index == 11


def test_white_layout():
    assert [key_to_note(i, 60, KeyLayout.WHITE) for i in range(8)] == [60, 62, 64, 65, 67, 69, 71, 72]
    r = PlayingRegion(0.0, 0.0, 1.0, 1.0, key_count=8, layout=KeyLayout.WHITE)
    assert RegionMapper(r).key_at(0.99, 0.5).note_number == 72


def test_key_bounds(region):
    lo, hi = region.key_bounds(0)
    assert lo == pytest.approx(0.2)
    assert hi == pytest.approx(0.25)


def test_dual_split():
    r = PlayingRegion(0.0, 0.0, 1.0, 1.0, key_count=8)
    mapper = DualRegionMapper(r, keys_per_hand=4, lower_base=48, upper_base=60)
    left = mapper.key_at(0.1, 0.5)
    right = mapper.key_at(0.6, 0.5)
    assert (left.key_index, left.note_number, left.hand_side) == (0, 48, HandSide.LEFT)
    assert (right.key_index, right.note_number, right.hand_side) == (4, 60, HandSide.RIGHT)
    assert mapper.key_at(1.0, 0.5).note_number == 63
    assert mapper.key_count == 8
    assert [mapper.note_for_key(i) for i in range(8)] == [48, 49, 50, 51, 60, 61, 62, 63]


def test_dual_rejects_empty_hand():
    with pytest.raises(ValueError):
        DualRegionMapper(PlayingRegion(0.0, 0.0, 1.0, 1.0), keys_per_hand=0, lower_base=48, upper_base=60)


def test_region_must_stay_in_midi_range():
    with pytest.raises(ValueError, match="0-127"):
        PlayingRegion(0.0, 0.0, 1.0, 1.0, key_count=12, octave_base=127)
    PlayingRegion(0.0, 0.0, 1.0, 1.0, key_count=12, octave_base=116)


@pytest.mark.parametrize(
    "keys, layout, expected",
    [
        (6, KeyLayout.CHROMATIC, (48, 60)),
        (12, KeyLayout.CHROMATIC, (48, 60)),
        (15, KeyLayout.CHROMATIC, (36, 60)),
        (7, KeyLayout.WHITE, (48, 60)),
        (8, KeyLayout.WHITE, (36, 60)),
    ],
)
def test_split_bases_keep_hands_apart(keys, layout, expected):
    assert split_bases(60, keys, layout) == expected
    lower, upper = expected
    r = PlayingRegion(0.0, 0.0, 1.0, 1.0, key_count=2 * keys, octave_base=lower, layout=layout)
    mapper = DualRegionMapper(r, keys_per_hand=keys, lower_base=lower, upper_base=upper)
    notes = [mapper.note_for_key(i) for i in range(2 * keys)]
    assert max(notes[:keys]) < min(notes[keys:])
    assert len(set(notes)) == len(notes)


def test_split_bases_below_zero_rejected():
    with pytest.raises(ValueError, match="octave_base"):
        split_bases(11, 12)


def test_dual_rejects_overlapping_hands():
    r = PlayingRegion(0.0, 0.0, 1.0, 1.0, key_count=30, octave_base=48)
    with pytest.raises(ValueError, match="overlap"):
        DualRegionMapper(r, keys_per_hand=15, lower_base=48, upper_base=60)


def test_dual_rejects_notes_above_127():
    r = PlayingRegion(0.0, 0.0, 1.0, 1.0, key_count=8, octave_base=100)
    with pytest.raises(ValueError, match="0-127"):
        DualRegionMapper(r, keys_per_hand=4, lower_base=100, upper_base=125)
