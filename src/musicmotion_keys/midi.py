from __future__ import annotations

import logging
from typing import List, Optional, Set, Tuple

import mido

logger = logging.getLogger(__name__)


def list_output_names() -> List[str]:
    """MIDI output ports visible to the active mido backend."""
    return list(mido.get_output_names())


def find_output(name_hint: str) -> Optional[str]:
    """First output port whose name contains `name_hint` (case-insensitive)."""
    hint = name_hint.lower()
    for name in list_output_names():
        if hint in name.lower():
            return name
    return None


class MidiOutput:
    """
    Sends notes to a MIDI output port, so the desk keyboard can drive a DAW or
    an external synth.

    Pass `port` to use an already-open mido port (anything with `send`), or
    `port_name` to open one; with neither, the backend's default output is used.
    """

    def __init__(self, port=None, port_name: Optional[str] = None) -> None:
        if port is None:
            port = mido.open_output(port_name)
            logger.info("Opened MIDI output: %s", getattr(port, "name", port_name))
        self.out = port
        self._sounding: Set[Tuple[int, int]] = set()

    def note_on(self, channel: int, note: int, velocity: int) -> None:
        if not (0 <= note <= 127):
            raise ValueError(f"Invalid MIDI note value: {note}. MIDI notes must be 0-127.")
        velocity = max(0, min(127, int(velocity)))
        self.out.send(mido.Message("note_on", note=note, velocity=velocity, channel=channel))
        self._sounding.add((channel, note))

    def note_off(self, channel: int, note: int) -> None:
        if not (0 <= note <= 127):
            raise ValueError(f"Invalid MIDI note value: {note}. MIDI notes must be 0-127.")
        self.out.send(mido.Message("note_off", note=note, velocity=0, channel=channel))
        self._sounding.discard((channel, note))

    def all_notes_off(self) -> None:
        for channel, note in sorted(self._sounding):
            self.out.send(mido.Message("note_off", note=note, velocity=0, channel=channel))
        self._sounding.clear()

    def close(self) -> None:
        self.all_notes_off()
        close = getattr(self.out, "close", None)
        if close is not None:
            close()

    def __enter__(self) -> "MidiOutput":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
