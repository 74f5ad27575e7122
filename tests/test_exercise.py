import pytest

from musicmotion_keys.exercise import (
    C_MAJOR_EXERCISE,
    Exercise,
    ExerciseValidator,
    FeedbackKind,
    scale_exercise,
)
from musicmotion_keys.types import NoteEvent


def test_c_major_up_and_down():
    assert len(C_MAJOR_EXERCISE.notes) == 15
    assert C_MAJOR_EXERCISE.notes[:8] == [60, 62, 64, 65, 67, 69, 71, 72]
    assert C_MAJOR_EXERCISE.notes[-1] == 60
    assert C_MAJOR_EXERCISE.note_names()[7] == "C5"


def test_unknown_scale():
    with pytest.raises(ValueError, match="Unknown scale"):
        scale_exercise("lydian")


def test_correct_notes_advance():
    v = ExerciseValidator(exercise=Exercise("three", [60, 62, 64]))
    assert v.check(60).kind is FeedbackKind.CORRECT
    assert v.cursor == 1
    assert v.progress == "1/3"


def test_wrong_note_recorded_without_advancing():
    v = ExerciseValidator(exercise=Exercise("three", [60, 62, 64]))
    v.check(60)
    fb = v.check(63)
    assert fb.kind is FeedbackKind.WRONG
    assert fb.message == "Wrong! Expected D4, got D#4"
    assert v.cursor == 1
    assert [(m.expected, m.played, m.position) for m in v.mistakes] == [(62, 63, 1)]
    assert v.mistakes[0].played_name == "D#4"


def test_completion_reported_once():
    seen = []
    v = ExerciseValidator(exercise=Exercise("two", [60, 62]), on_feedback=seen.append)
    v.check(60)
    v.check(62)
    assert v.complete
    assert v.check(64).kind is FeedbackKind.COMPLETE
    assert v.check(65).kind is FeedbackKind.IGNORED
    assert [fb.kind for fb in seen] == [FeedbackKind.CORRECT, FeedbackKind.CORRECT, FeedbackKind.COMPLETE]


def test_handle_ignores_note_offs():
    v = ExerciseValidator(exercise=Exercise("one", [60]))
    v.handle(NoteEvent(note_number=61, velocity=0, on=False, timestamp=0.0))
    assert v.mistakes == []
    v.handle(NoteEvent(note_number=60, velocity=90, on=True, timestamp=0.0))
    assert v.complete


def test_reset_and_load():
    v = ExerciseValidator(exercise=Exercise("one", [60]))
    v.check(61)
    v.reset()
    assert v.cursor == 0 and v.mistakes == [] and v.played == []
    v.load(scale_exercise("pentatonic", 48, up_and_down=False))
    assert v.expected == [48, 50, 52, 55, 57, 60]
