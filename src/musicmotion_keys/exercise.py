from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from .types import NoteEvent
from .utils import midi_to_note_name

logger = logging.getLogger(__name__)


# Scale intervals in semitones from the root, one octave inclusive.
SCALES: Dict[str, List[int]] = {
    "c_major": [0, 2, 4, 5, 7, 9, 11, 12],
    "c_minor": [0, 2, 3, 5, 7, 8, 10, 12],
    "pentatonic": [0, 2, 4, 7, 9, 12],
    "blues": [0, 3, 5, 6, 7, 10, 12],
    "chromatic": list(range(13)),
}


@dataclass(frozen=True)
class Exercise:
    name: str
    notes: List[int]

    def note_names(self) -> List[str]:
        return [midi_to_note_name(n) for n in self.notes]


def scale_exercise(scale: str = "c_major", root: int = 60, *, up_and_down: bool = True) -> Exercise:
    """Build an exercise from `SCALES`, optionally walking back down to the root."""
    if scale not in SCALES:
        raise ValueError(f"Unknown scale '{scale}'. Available: {list(SCALES.keys())}")
    up = [root + i for i in SCALES[scale]]
    notes = up + up[-2::-1] if up_and_down else up
    return Exercise(name=f"{midi_to_note_name(root)} {scale.replace('_', ' ')}", notes=notes)


# C4 up to C5 and back down.
C_MAJOR_EXERCISE = scale_exercise("c_major", 60)


class FeedbackKind(Enum):
    CORRECT = "correct"
    WRONG = "wrong"
    COMPLETE = "complete"
    IGNORED = "ignored"


@dataclass(frozen=True)
class Feedback:
    kind: FeedbackKind
    message: str
    expected: Optional[int] = None
    played: Optional[int] = None


@dataclass(frozen=True)
class Mistake:
    expected: int
    played: int
    position: int

    @property
    def expected_name(self) -> str:
        return midi_to_note_name(self.expected)

    @property
    def played_name(self) -> str:
        return midi_to_note_name(self.played)


@dataclass(frozen=True)
class PlayedNote:
    expected: int
    played: int
    correct: bool


@dataclass
class ExerciseValidator:
    """
    Checks played notes against an ordered expected sequence.

    A wrong note is recorded but never advances the cursor; the exercise only
    moves on when the expected note is played. Once the end is reached, the
    next note-on reports completion a single time and later ones are ignored.
    """

    exercise: Exercise = C_MAJOR_EXERCISE
    on_feedback: Optional[Callable[[Feedback], None]] = None
    cursor: int = 0
    mistakes: List[Mistake] = field(default_factory=list)
    played: List[PlayedNote] = field(default_factory=list)
    _completion_reported: bool = False

    @property
    def expected(self) -> Sequence[int]:
        return self.exercise.notes

    @property
    def complete(self) -> bool:
        return self.cursor >= len(self.exercise.notes)

    @property
    def progress(self) -> str:
        return f"{min(self.cursor, len(self.expected))}/{len(self.expected)}"

    def handle(self, event: NoteEvent) -> None:
        if event.on:
            self.check(event.note_number)

    def check(self, note: int) -> Feedback:
        if self.complete:
            if self._completion_reported:
                return Feedback(FeedbackKind.IGNORED, "", played=note)
            self._completion_reported = True
            return self._report(Feedback(FeedbackKind.COMPLETE, "Exercise Complete!", played=note))

        expected = self.expected[self.cursor]
        if note == expected:
            self.played.append(PlayedNote(expected, note, True))
            self.cursor += 1
            fb = Feedback(FeedbackKind.CORRECT, f"Correct! {midi_to_note_name(expected)}", expected, note)
        else:
            self.mistakes.append(Mistake(expected=expected, played=note, position=self.cursor))
            self.played.append(PlayedNote(expected, note, False))
            fb = Feedback(
                FeedbackKind.WRONG,
                f"Wrong! Expected {midi_to_note_name(expected)}, got {midi_to_note_name(note)}",
                expected,
                note,
            )
        logger.info("Progress: %s | Mistakes: %d", self.progress, len(self.mistakes))
        return self._report(fb)

    def load(self, exercise: Exercise) -> None:
        self.exercise = exercise
        self.reset()

    def reset(self) -> None:
        self.cursor = 0
        self.mistakes = []
        self.played = []
        self._completion_reported = False

    def _report(self, fb: Feedback) -> Feedback:
        if self.on_feedback is not None:
            self.on_feedback(fb)
        return fb
