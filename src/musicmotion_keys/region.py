from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple

from .types import HandSide, KeyHit


WHITE_KEY_OFFSETS = (0, 2, 4, 5, 7, 9, 11)


class KeyLayout(str, Enum):
    CHROMATIC = "chromatic"  # octave_base + key_index
    WHITE = "white"  # white keys only, starting at octave_base


def key_to_note(key_index: int, octave_base: int, layout: KeyLayout = KeyLayout.CHROMATIC) -> int:
    if KeyLayout(layout) is KeyLayout.WHITE:
        octave, degree = divmod(key_index, len(WHITE_KEY_OFFSETS))
        return octave_base + 12 * octave + WHITE_KEY_OFFSETS[degree]
    return octave_base + key_index


def note_span(key_count: int, layout: KeyLayout = KeyLayout.CHROMATIC) -> int:
    """Semitones covered by `key_count` keys, lowest to highest inclusive."""
    return key_to_note(key_count - 1, 0, layout) + 1


def split_bases(octave_base: int, keys_per_hand: int, layout: KeyLayout = KeyLayout.CHROMATIC) -> Tuple[int, int]:
    """
    (lower_base, upper_base) for the two-hand split. The right hand starts at
    `octave_base`; the left hand starts whole octaves lower, far enough down
    that its keys stop below the right hand's first note.
    """
    octaves = -(-note_span(keys_per_hand, layout) // 12)
    lower_base = octave_base - 12 * octaves
    if lower_base < 0:
        raise ValueError(
            f"Two-hand split needs the left hand {octaves} octave(s) below octave_base {octave_base}; "
            f"raise octave_base or use fewer keys"
        )
    return lower_base, octave_base


@dataclass(frozen=True)
class PlayingRegion:
    """Axis-aligned playing rectangle in normalized camera coordinates."""

    x_min: float
    y_min: float
    x_max: float
    y_max: float
    key_count: int = 12
    octave_base: int = 60
    layout: KeyLayout = KeyLayout.CHROMATIC

    def __post_init__(self) -> None:
        if not (self.x_max > self.x_min and self.y_max > self.y_min):
            raise ValueError(
                f"Playing region must have positive width and height, got "
                f"({self.x_min:.3f}, {self.y_min:.3f})-({self.x_max:.3f}, {self.y_max:.3f})"
            )
        if self.key_count < 1:
            raise ValueError(f"key_count must be >= 1, got {self.key_count}")
        top = self.note_for_key(self.key_count - 1)
        if not (0 <= self.octave_base and top <= 127):
            raise ValueError(
                f"Keys must map to MIDI notes 0-127, got {self.octave_base}-{top} "
                f"({self.key_count} keys from octave_base {self.octave_base})"
            )

    @classmethod
    def from_drag(
        cls,
        start: Tuple[float, float],
        end: Tuple[float, float],
        *,
        key_count: int = 12,
        octave_base: int = 60,
        layout: KeyLayout = KeyLayout.CHROMATIC,
    ) -> "PlayingRegion":
        """Build a region from a drag gesture; corners may come in any order."""
        (x0, y0), (x1, y1) = start, end
        return cls(
            x_min=min(x0, x1),
            y_min=min(y0, y1),
            x_max=max(x0, x1),
            y_max=max(y0, y1),
            key_count=key_count,
            octave_base=octave_base,
            layout=KeyLayout(layout),
        )

    @property
    def width(self) -> float:
        return self.x_max - self.x_min

    @property
    def height(self) -> float:
        return self.y_max - self.y_min

    def contains(self, x: float, y: float, margin: float = 0.0) -> bool:
        return (
            self.x_min - margin <= x <= self.x_max + margin
            and self.y_min - margin <= y <= self.y_max + margin
        )

    def note_for_key(self, key_index: int) -> int:
        return key_to_note(key_index, self.octave_base, self.layout)

    def key_bounds(self, key_index: int) -> Tuple[float, float]:
        """Horizontal span of a key, for overlays."""
        w = self.width / self.key_count
        return (self.x_min + key_index * w, self.x_min + (key_index + 1) * w)


def _index_in_span(x: float, lo: float, hi: float, count: int, clamp: bool) -> Optional[int]:
    rel = (x - lo) / (hi - lo)
    idx = int(math.floor(rel * count))
    if idx == count and x <= hi:
        idx = count - 1  # right edge belongs to the last key
    if clamp:
        idx = max(0, min(count - 1, idx))
    if not (0 <= idx < count):
        return None
    return idx


class RegionMapper:
    """Single-region mapping: x across the region -> key index -> MIDI note."""

    def __init__(self, region: PlayingRegion) -> None:
        self.region = region

    @property
    def key_count(self) -> int:
        return self.region.key_count

    def note_for_key(self, key_index: int) -> int:
        return self.region.note_for_key(key_index)

    def key_at(self, x: float, y: float, margin: float = 0.0) -> Optional[KeyHit]:
        r = self.region
        if not r.contains(x, y, margin):
            return None
        idx = _index_in_span(x, r.x_min, r.x_max, r.key_count, clamp=margin > 0)
        if idx is None:
            return None
        return KeyHit(key_index=idx, note_number=r.note_for_key(idx))


class DualRegionMapper:
    """
    Two-hand split: the left half plays `keys_per_hand` keys from `lower_base`,
    the right half plays `keys_per_hand` keys from `upper_base`. Overall key
    indices run 0..2*keys_per_hand-1 from left to right. The two note ranges
    may not overlap; `split_bases` picks bases that satisfy this.
    """

    def __init__(
        self,
        region: PlayingRegion,
        *,
        keys_per_hand: int,
        lower_base: int,
        upper_base: int,
    ) -> None:
        if keys_per_hand < 1:
            raise ValueError(f"keys_per_hand must be >= 1, got {keys_per_hand}")
        span = note_span(keys_per_hand, region.layout)
        if lower_base < 0 or upper_base + span - 1 > 127:
            raise ValueError(
                f"Two-hand split must map to MIDI notes 0-127, got {lower_base}-{upper_base + span - 1}"
            )
        if lower_base + span > upper_base:
            raise ValueError(
                f"Hand ranges overlap: left {lower_base}-{lower_base + span - 1}, "
                f"right {upper_base}-{upper_base + span - 1}"
            )
        self.region = region
        self.keys_per_hand = keys_per_hand
        self.lower_base = lower_base
        self.upper_base = upper_base

    @property
    def key_count(self) -> int:
        return 2 * self.keys_per_hand

    def note_for_key(self, key_index: int) -> int:
        if key_index < self.keys_per_hand:
            return key_to_note(key_index, self.lower_base, self.region.layout)
        return key_to_note(key_index - self.keys_per_hand, self.upper_base, self.region.layout)

    def key_at(self, x: float, y: float, margin: float = 0.0) -> Optional[KeyHit]:
        r = self.region
        if not r.contains(x, y, margin):
            return None
        mid = r.x_min + r.width / 2.0
        if x < mid:
            idx = _index_in_span(x, r.x_min, mid, self.keys_per_hand, clamp=margin > 0)
            if idx is None:
                return None
            note = key_to_note(idx, self.lower_base, r.layout)
            return KeyHit(key_index=idx, note_number=note, hand_side=HandSide.LEFT)
        idx = _index_in_span(x, mid, r.x_max, self.keys_per_hand, clamp=margin > 0)
        if idx is None:
            return None
        note = key_to_note(idx, self.upper_base, r.layout)
        return KeyHit(key_index=self.keys_per_hand + idx, note_number=note, hand_side=HandSide.RIGHT)
