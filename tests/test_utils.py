import pytest

from musicmotion_keys.utils import midi_to_freq, midi_to_note_name, point_id


def test_point_id():
    assert point_id(1, 3) == "hand1_finger3"


@pytest.mark.parametrize("note, name", [(21, "A0"), (60, "C4"), (61, "C#4"), (72, "C5"), (108, "C8")])
def test_note_names(note, name):
    assert midi_to_note_name(note) == name


def test_a4_is_440():
    assert midi_to_freq(69) == pytest.approx(440.0)
    assert midi_to_freq(81) == pytest.approx(880.0)
