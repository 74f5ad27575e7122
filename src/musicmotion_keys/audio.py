from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol, Tuple

import numpy as np

from .types import NoteEvent
from .utils import clamp, midi_to_freq

logger = logging.getLogger(__name__)


class NotePlayer(Protocol):
    def note_on(self, channel: int, note: int, velocity: int) -> None: ...

    def note_off(self, channel: int, note: int) -> None: ...


@dataclass
class _Voice:
    freq: float
    amp: float
    phase: float = 0.0  # in cycles
    level: float = 0.0
    releasing: bool = False


def _triangle(cycles: np.ndarray) -> np.ndarray:
    frac = cycles - np.floor(cycles)
    return 4.0 * np.abs(frac - 0.5) - 1.0


class PolySynth:
    """
    Small polyphonic synthesizer for live play.

    One voice per sounding note: a triangle wave with a quieter octave partial,
    shaped by a linear attack/release envelope. Notes are keyed by
    (channel, note), so re-striking a note restarts its voice.
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        volume: float = 0.3,
        attack_ms: float = 10.0,
        release_ms: float = 300.0,
        octave_mix: float = 0.3,
        max_voices: int = 16,
    ) -> None:
        """
        Args:
            sample_rate: Audio sample rate in Hz
            volume: Master volume (0.0 to 1.0)
            attack_ms: Time to reach full level after note-on
            release_ms: Fade-out time after note-off
            octave_mix: Relative level of the octave partial
            max_voices: Oldest voices are dropped beyond this count
        """
        self.sample_rate = sample_rate
        self.volume = clamp(volume, 0.0, 1.0)
        self.attack_ms = max(0.0, float(attack_ms))
        self.release_ms = max(0.0, float(release_ms))
        self.octave_mix = clamp(octave_mix, 0.0, 1.0)
        self.max_voices = max(1, int(max_voices))

        self._stream = None
        self._lock = threading.Lock()
        self._voices: Dict[Tuple[int, int], _Voice] = {}

    def start(self) -> None:
        """Open and start the output stream."""
        if self._stream is not None:
            return
        import sounddevice as sd  # needs PortAudio at import time

        self._stream = sd.OutputStream(
            samplerate=self.sample_rate,
            channels=1,
            callback=self._audio_callback,
            blocksize=512,
        )
        self._stream.start()
        logger.info("Audio stream started (%d Hz)", self.sample_rate)

    def stop(self) -> None:
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        with self._lock:
            self._voices.clear()

    # -- NotePlayer

    def note_on(self, channel: int, note: int, velocity: int) -> None:
        with self._lock:
            if len(self._voices) >= self.max_voices and (channel, note) not in self._voices:
                oldest = next(iter(self._voices))
                del self._voices[oldest]
            self._voices.pop((channel, note), None)
            self._voices[(channel, note)] = _Voice(
                freq=midi_to_freq(note),
                amp=clamp(velocity / 127.0, 0.0, 1.0),
            )

    def note_off(self, channel: int, note: int) -> None:
        with self._lock:
            voice = self._voices.get((channel, note))
            if voice is not None:
                voice.releasing = True

    def all_notes_off(self) -> None:
        with self._lock:
            for voice in self._voices.values():
                voice.releasing = True

    def sounding_notes(self) -> List[int]:
        """Notes whose voice has not been released yet."""
        with self._lock:
            return sorted(note for (_, note), v in self._voices.items() if not v.releasing)

    # -- rendering

    def render(self, frames: int) -> np.ndarray:
        """Mix the next `frames` samples; finished voices are removed."""
        with self._lock:
            return self._render_locked(frames)

    def _render_locked(self, frames: int) -> np.ndarray:
        out = np.zeros(frames, dtype=np.float64)
        attack_step = 1.0 if self.attack_ms <= 0 else 1000.0 / (self.attack_ms * self.sample_rate)
        release_step = 1.0 if self.release_ms <= 0 else 1000.0 / (self.release_ms * self.sample_rate)
        n = np.arange(1, frames + 1)
        done = []
        for key, v in self._voices.items():
            if v.releasing:
                env = np.maximum(0.0, v.level - release_step * n)
            else:
                env = np.minimum(1.0, v.level + attack_step * n)
            cycles = v.phase + v.freq * np.arange(frames) / self.sample_rate
            wave = _triangle(cycles) + self.octave_mix * _triangle(2.0 * cycles)
            out += v.amp * env * wave
            v.phase = float((v.phase + v.freq * frames / self.sample_rate) % 1.0)
            v.level = float(env[-1]) if frames else v.level
            if v.releasing and v.level <= 0.0:
                done.append(key)
        for key in done:
            del self._voices[key]
        # Headroom for a handful of simultaneous voices.
        out *= self.volume / (1.0 + self.octave_mix) / 2.0
        return np.clip(out, -1.0, 1.0).astype(np.float32)

    def _audio_callback(self, outdata, frames, time_info, status) -> None:
        if status:
            logger.debug("Audio stream status: %s", status)
        outdata[:, 0] = self.render(frames)

    def __enter__(self) -> "PolySynth":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


class AudioSink:
    """Note-bus subscriber that forwards events to a `NotePlayer` (synth or MIDI port)."""

    def __init__(self, player: NotePlayer, channel: int = 0) -> None:
        self.player = player
        self.channel = channel

    def handle(self, event: NoteEvent) -> None:
        if event.on:
            self.player.note_on(self.channel, event.note_number, event.velocity)
        else:
            self.player.note_off(self.channel, event.note_number)


class MultiPlayer:
    """Fans `note_on`/`note_off` out to several players (e.g. synth plus MIDI)."""

    def __init__(self, players: List[NotePlayer]) -> None:
        self.players = list(players)

    def note_on(self, channel: int, note: int, velocity: int) -> None:
        for p in self.players:
            p.note_on(channel, note, velocity)

    def note_off(self, channel: int, note: int) -> None:
        for p in self.players:
            p.note_off(channel, note)


def make_player(synth: Optional[PolySynth], midi) -> Optional[NotePlayer]:
    players = [p for p in (synth, midi) if p is not None]
    if not players:
        return None
    if len(players) == 1:
        return players[0]
    return MultiPlayer(players)
