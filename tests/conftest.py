from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

import pytest

from musicmotion_keys.scheduler import DeferredScheduler
from musicmotion_keys.types import NoteEvent


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start_ms: float = 1000.0) -> None:
        self.now_ms = float(start_ms)

    def __call__(self) -> float:
        return self.now_ms

    def advance(self, ms: float) -> float:
        self.now_ms += ms
        return self.now_ms


class CollectingSink:
    def __init__(self) -> None:
        self.events: List[NoteEvent] = []

    def handle(self, event: NoteEvent) -> None:
        self.events.append(event)

    __call__ = handle

    @property
    def ons(self) -> List[NoteEvent]:
        return [e for e in self.events if e.on]

    @property
    def offs(self) -> List[NoteEvent]:
        return [e for e in self.events if not e.on]

    def summary(self) -> List[Tuple[str, int]]:
        return [("on" if e.on else "off", e.note_number) for e in self.events]


class RecordingPlayer:
    """Stands in for the synth / MIDI port."""

    def __init__(self) -> None:
        self.calls: List[Tuple] = []

    def note_on(self, channel: int, note: int, velocity: int) -> None:
        self.calls.append(("on", channel, note, velocity))

    def note_off(self, channel: int, note: int) -> None:
        self.calls.append(("off", channel, note))


def make_hand(tips: Sequence[Optional[Tuple[float, float]]], rest: Tuple[float, float] = (0.5, 0.9)):
    """
    21 (x, y) landmarks with the given fingertip positions (thumb first).

    Fingertips not listed, or given as None, are placed at `rest`.
    """
    landmarks = [rest] * 21
    for finger, lm_idx in enumerate((4, 8, 12, 16, 20)):
        if finger < len(tips) and tips[finger] is not None:
            landmarks[lm_idx] = tips[finger]
    return landmarks


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def scheduler(clock: FakeClock) -> DeferredScheduler:
    return DeferredScheduler(clock=clock)


@pytest.fixture
def sink() -> CollectingSink:
    return CollectingSink()


@pytest.fixture
def player() -> RecordingPlayer:
    return RecordingPlayer()
