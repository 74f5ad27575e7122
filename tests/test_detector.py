from types import SimpleNamespace

import pytest

from musicmotion_keys import detector
from musicmotion_keys.errors import DetectorUnavailable


def test_existing_model_is_reused(tmp_path):
    model = tmp_path / "hand_landmarker.task"
    model.write_bytes(b"model")
    assert detector.ensure_hand_landmarker_task(str(model)) == str(model)


def test_failed_download_raises_detector_unavailable(tmp_path, monkeypatch):
    def refuse(*args, **kwargs):
        raise OSError("network down")

    monkeypatch.setattr(detector.urllib.request, "urlopen", refuse)
    model = tmp_path / "models" / "hand_landmarker.task"
    with pytest.raises(DetectorUnavailable, match="curl -L"):
        detector.ensure_hand_landmarker_task(str(model))
    assert not model.exists()


def test_landmarks_are_normalized_hand_landmarks():
    raw = [SimpleNamespace(x=i / 20.0, y=0.5, z=-0.01) for i in range(21)]
    hand = detector._build_hand_position(raw, "Left", 0.97)
    assert hand.handedness_label == "Left"
    assert len(hand.landmarks) == 21
    assert hand.landmarks[8].x_norm == pytest.approx(0.4)
    assert hand.landmarks[8].idx == 8
    assert hand.landmarks[8].z_norm == pytest.approx(-0.01)
