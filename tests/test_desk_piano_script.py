import importlib.util
import sys
from pathlib import Path

import pytest

from conftest import make_hand
from musicmotion_keys.config import PipelineConfig
from musicmotion_keys.errors import DetectorUnavailable
from musicmotion_keys.pipeline import KeyboardPipeline

SCRIPT = Path(__file__).resolve().parents[1] / "scripts" / "desk_piano.py"


@pytest.fixture(scope="module")
def desk_piano():
    spec = importlib.util.spec_from_file_location("desk_piano", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    try:
        spec.loader.exec_module(module)
        yield module
    finally:
        sys.modules.pop(spec.name, None)


class BrokenDetector:
    def detect(self, frame):
        raise DetectorUnavailable("graph crashed")


class StaticDetector:
    def __init__(self, hands):
        self.hands = hands

    def detect(self, frame):
        return self.hands


def test_detect_hands_passes_results_through(desk_piano, scheduler):
    pipeline = KeyboardPipeline(PipelineConfig(), scheduler)
    hands = [make_hand([(0.5, 0.5)])]
    assert desk_piano.detect_hands(StaticDetector(hands), None, pipeline, "top") is hands
    assert "unavailable" not in pipeline.status


def test_detect_hands_failure_shuts_pipeline_down(desk_piano, scheduler):
    pipeline = KeyboardPipeline(PipelineConfig(), scheduler)
    pipeline.begin_calibration()
    assert desk_piano.detect_hands(BrokenDetector(), None, pipeline, "side") is None
    assert pipeline.status == "Hand tracking unavailable: graph crashed"
    assert not pipeline.calibration.calibrated
    assert pipeline.calibration.countdown_remaining_ms() is None
