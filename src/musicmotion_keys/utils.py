from __future__ import annotations

import time


NOTE_NAMES = ["C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B"]


def clamp(v: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, v))


def clamp_int(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, v))


def point_id(hand_index: int, finger_index: int) -> str:
    """Stable id for a fingertip slot, e.g. ``hand0_finger1``."""
    return f"hand{hand_index}_finger{finger_index}"


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


def midi_to_freq(midi_note: int) -> float:
    """Convert MIDI note number to frequency in Hz."""
    return 440.0 * (2.0 ** ((midi_note - 69) / 12.0))


def midi_to_note_name(midi_note: int) -> str:
    """
    >>> midi_to_note_name(60)
    'C4'
    >>> midi_to_note_name(70)
    'A#4'
    """
    octave = midi_note // 12 - 1
    return f"{NOTE_NAMES[midi_note % 12]}{octave}"
