from __future__ import annotations

import logging
from typing import Callable, Dict, List, Set, Tuple

from .errors import NothingRecorded
from .scheduler import Deferred, DeferredScheduler
from .types import NoteEvent, NoteSource, RecordedEvent

logger = logging.getLogger(__name__)


class Recorder:
    """
    Captures note-on/off pairs with offsets relative to the recording start and
    replays them through the same sink as live play.

    Playback events carry `NoteSource.PLAYBACK` and are ignored by `handle`, so
    replaying never records itself.
    """

    def __init__(
        self,
        scheduler: DeferredScheduler,
        emit: Callable[[NoteEvent], None],
        *,
        tail_ms: float = 500.0,
    ) -> None:
        self._scheduler = scheduler
        self._emit = emit
        self.tail_ms = float(tail_ms)

        self._events: List[RecordedEvent] = []
        self._pending: Dict[int, Tuple[float, int]] = {}  # note -> (start_offset_ms, velocity)
        self._recording = False
        self._recording_start_ms = 0.0

        self._playing = False
        self._playback_handles: List[Deferred] = []
        self._sounding: Set[int] = set()

    # ------------------------------------------------------------------ state

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def is_playing(self) -> bool:
        return self._playing

    @property
    def events(self) -> List[RecordedEvent]:
        return list(self._events)

    @property
    def status(self) -> str:
        if self._recording:
            return "Recording..."
        if self._playing:
            return "Playing recording..."
        if self._events:
            return f"Recorded {len(self._events)} notes"
        return "Ready to record"

    # -------------------------------------------------------------- recording

    def start_recording(self) -> None:
        if self._playing:
            self.stop_playback()
        self._events = []
        self._pending = {}
        self._recording = True
        self._recording_start_ms = self._scheduler.now()
        logger.info("Recording started")

    def stop_recording(self) -> List[RecordedEvent]:
        if self._pending:
            logger.info("Discarding %d notes still held at stop", len(self._pending))
        self._pending = {}
        self._recording = False
        logger.info("Recording stopped, captured %d notes", len(self._events))
        return self.events

    def handle(self, event: NoteEvent) -> None:
        if not self._recording or event.source is NoteSource.PLAYBACK:
            return
        offset = event.timestamp - self._recording_start_ms
        if event.on:
            self._pending[event.note_number] = (offset, event.velocity)
            return
        opened = self._pending.pop(event.note_number, None)
        if opened is None:
            return
        start, velocity = opened
        self._events.append(
            RecordedEvent(
                note_number=event.note_number,
                velocity=velocity,
                start_offset_ms=start,
                duration_ms=max(0.0, offset - start),
            )
        )

    def clear(self) -> None:
        self.stop_playback()
        self._events = []
        self._pending = {}
        self._recording = False
        logger.info("Recording cleared")

    # --------------------------------------------------------------- playback

    def play(self) -> float:
        """Schedule the whole recording; returns the playback end time in ms."""
        if not self._events:
            raise NothingRecorded("No recording to play! Record something first.")
        if self._recording:
            self.stop_recording()
        self.stop_playback()

        start = self._scheduler.now()
        self._playing = True
        for ev in sorted(self._events, key=lambda e: e.start_offset_ms):
            on_at = start + ev.start_offset_ms
            off_at = on_at + ev.duration_ms
            self._playback_handles.append(
                self._scheduler.call_at(on_at, self._play_note, ev, on_at, True, label="playback-on")
            )
            self._playback_handles.append(
                self._scheduler.call_at(off_at, self._play_note, ev, off_at, False, label="playback-off")
            )

        end = start + max(ev.end_offset_ms for ev in self._events) + self.tail_ms
        self._playback_handles.append(self._scheduler.call_at(end, self._finish, label="playback-end"))
        logger.info("Playing %d recorded notes", len(self._events))
        return end

    def stop_playback(self) -> None:
        """Cancel every pending playback callback and silence notes still sounding."""
        for handle in self._playback_handles:
            self._scheduler.cancel(handle)
        self._playback_handles = []
        now = self._scheduler.now()
        for note in sorted(self._sounding):
            self._emit(self._event(note, 0, False, now))
        self._sounding.clear()
        if self._playing:
            logger.info("Playback stopped")
        self._playing = False

    def toggle_playback(self) -> bool:
        """Start playback, or stop it if already playing. Returns the new playing state."""
        if self._playing:
            self.stop_playback()
        else:
            self.play()
        return self._playing

    def _play_note(self, ev: RecordedEvent, due_ms: float, on: bool) -> None:
        if on:
            self._sounding.add(ev.note_number)
        elif ev.note_number in self._sounding:
            self._sounding.discard(ev.note_number)
        else:
            return
        self._emit(self._event(ev.note_number, ev.velocity if on else 0, on, due_ms))

    def _finish(self) -> None:
        self._playback_handles = []
        self._playing = False
        logger.info("Playback complete")

    def _event(self, note: int, velocity: int, on: bool, timestamp: float) -> NoteEvent:
        return NoteEvent(
            note_number=note,
            velocity=velocity,
            on=on,
            timestamp=timestamp,
            source=NoteSource.PLAYBACK,
        )
