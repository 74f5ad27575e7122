import numpy as np

from musicmotion_keys.audio import AudioSink, MultiPlayer, PolySynth, make_player
from musicmotion_keys.types import NoteEvent


def test_voices_follow_note_on_off():
    synth = PolySynth(sample_rate=8000, release_ms=10)
    synth.note_on(0, 60, 100)
    synth.note_on(0, 64, 100)
    assert synth.sounding_notes() == [60, 64]
    synth.note_off(0, 60)
    assert synth.sounding_notes() == [64]


def test_render_produces_bounded_audio_and_drops_released_voices():
    synth = PolySynth(sample_rate=8000, attack_ms=1, release_ms=10)
    synth.note_on(0, 69, 127)
    block = synth.render(256)
    assert block.dtype == np.float32
    assert np.abs(block).max() > 0
    assert np.abs(block).max() <= 1.0

    synth.note_off(0, 69)
    synth.render(256)  # 10 ms at 8 kHz is 80 samples
    assert synth.render(64).max() == 0
    assert synth.sounding_notes() == []


def test_silence_without_voices():
    assert not PolySynth(sample_rate=8000).render(128).any()


def test_voice_limit():
    synth = PolySynth(max_voices=2)
    for note in (60, 62, 64):
        synth.note_on(0, note, 100)
    assert synth.sounding_notes() == [62, 64]


def test_sink_and_multiplayer(player):
    other = type(player)()
    sink = AudioSink(MultiPlayer([player, other]))
    sink.handle(NoteEvent(note_number=60, velocity=90, on=True, timestamp=0.0))
    sink.handle(NoteEvent(note_number=60, velocity=0, on=False, timestamp=1.0))
    assert player.calls == [("on", 0, 60, 90), ("off", 0, 60)]
    assert other.calls == player.calls


def test_make_player(player):
    assert make_player(None, None) is None
    assert make_player(None, player) is player
    assert isinstance(make_player(PolySynth(), player), MultiPlayer)
