from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, Dict, Iterable, List, Optional, Protocol

from .types import HandSide, NoteEvent, NoteSource
from .utils import clamp, midi_to_note_name

logger = logging.getLogger(__name__)


# --------------------------------------------------------------------------------------
# Velocity policies


class VelocityPolicy(Protocol):
    def __call__(self, offset: Optional[float]) -> int: ...


@dataclass(frozen=True)
class ConstantVelocity:
    """Fixed velocity (silent controller modes)."""

    value: int = 100

    def __call__(self, offset: Optional[float]) -> int:
        return int(self.value)


@dataclass(frozen=True)
class DepthVelocity:
    """
    Louder the further the fingertip travels past the reference plane.

    `offset` is `signal - reference`; a press starts at `-press_threshold`,
    so depth is measured from there and saturates at `full_scale`.
    """

    press_threshold: float = 0.03
    min_velocity: int = 40
    max_velocity: int = 127
    full_scale: float = 0.08

    def __call__(self, offset: Optional[float]) -> int:
        if offset is None:
            return int(self.min_velocity)
        depth = clamp((offset + self.press_threshold) / self.full_scale, 0.0, 1.0)
        return int(round(self.min_velocity + (self.max_velocity - self.min_velocity) * depth))


# --------------------------------------------------------------------------------------
# Fan-out


class NoteSink(Protocol):
    def handle(self, event: NoteEvent) -> None: ...


class NoteBus:
    """Delivers every note event to each subscriber, in subscription order."""

    def __init__(self) -> None:
        self._subscribers: List[Callable[[NoteEvent], None]] = []

    def subscribe(self, subscriber) -> Callable[[NoteEvent], None]:
        fn = subscriber.handle if hasattr(subscriber, "handle") else subscriber
        self._subscribers.append(fn)
        return fn

    def unsubscribe(self, fn: Callable[[NoteEvent], None]) -> None:
        if fn in self._subscribers:
            self._subscribers.remove(fn)

    def publish(self, event: NoteEvent) -> None:
        for fn in list(self._subscribers):
            try:
                fn(event)
            except Exception:
                logger.exception("Note subscriber %r failed on %s", fn, event)

    def __call__(self, event: NoteEvent) -> None:
        self.publish(event)


# --------------------------------------------------------------------------------------
# Lifecycle


@dataclass(frozen=True)
class NoteCandidate:
    """A fingertip that is pressed and mapped to a key in the current frame."""

    note_number: int
    point_id: str
    velocity: int = 100
    key_index: Optional[int] = None
    hand_side: Optional[HandSide] = None


@dataclass
class _Active:
    owner: str
    key_index: Optional[int]
    hand_side: Optional[HandSide]


class NoteLifecycleManager:
    """
    Owns the active-note map (`note -> owning fingertip`).

    Each frame receives the complete set of pressed-and-mapped candidates:
    notes whose (note, owner) pair disappeared are turned off first, then new
    notes are turned on. A note's owner is fixed for its whole lifetime, so a
    second fingertip landing on an active key is ignored.
    """

    def __init__(self, emit: Callable[[NoteEvent], None]) -> None:
        self._emit = emit
        self._active: Dict[int, _Active] = {}

    @property
    def active_notes(self) -> Dict[int, str]:
        return {note: a.owner for note, a in self._active.items()}

    def is_active(self, note_number: int) -> bool:
        return note_number in self._active

    def update(self, candidates: Iterable[NoteCandidate], now_ms: float) -> List[NoteEvent]:
        candidates = list(candidates)
        sustained = {(c.note_number, c.point_id) for c in candidates}
        events: List[NoteEvent] = []

        for note in sorted(self._active):
            active = self._active[note]
            if (note, active.owner) not in sustained:
                events.append(self._off(note, now_ms))

        for c in candidates:
            if c.note_number in self._active:
                continue
            self._active[c.note_number] = _Active(c.point_id, c.key_index, c.hand_side)
            event = NoteEvent(
                note_number=c.note_number,
                velocity=int(c.velocity),
                on=True,
                timestamp=float(now_ms),
                point_id=c.point_id,
                key_index=c.key_index,
                hand_side=c.hand_side,
            )
            self._emit(event)
            events.append(event)
        return events

    def release_all(self, now_ms: float) -> List[NoteEvent]:
        """Emit one note-off per active note and clear the map."""
        events = [self._off(note, now_ms) for note in sorted(self._active)]
        if events:
            logger.info("Released %d active notes", len(events))
        return events

    def _off(self, note: int, now_ms: float) -> NoteEvent:
        active = self._active.pop(note)
        event = NoteEvent(
            note_number=note,
            velocity=0,
            on=False,
            timestamp=float(now_ms),
            point_id=active.owner,
            key_index=active.key_index,
            hand_side=active.hand_side,
        )
        self._emit(event)
        return event


# --------------------------------------------------------------------------------------
# History


@dataclass(frozen=True)
class HistoryEntry:
    name: str
    midi: int
    velocity: int
    timestamp: float
    source: NoteSource


class NoteHistory:
    """Most-recent-first log of played note-ons."""

    def __init__(self, maxlen: int = 50) -> None:
        self._entries: Deque[HistoryEntry] = deque(maxlen=maxlen)

    def handle(self, event: NoteEvent) -> None:
        if not event.on:
            return
        self._entries.appendleft(
            HistoryEntry(
                name=midi_to_note_name(event.note_number),
                midi=event.note_number,
                velocity=event.velocity,
                timestamp=event.timestamp,
                source=event.source,
            )
        )

    @property
    def entries(self) -> List[HistoryEntry]:
        return list(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
