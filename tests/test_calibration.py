import pytest

from musicmotion_keys.calibration import CalibrationManager
from musicmotion_keys.types import TrackedPoint


def pt(pid, signal, ts=0.0):
    return TrackedPoint(point_id=pid, x=0.5, y=signal, signal=signal, timestamp=ts)


def test_countdown_then_capture(scheduler, clock):
    seen = []
    cal = CalibrationManager(scheduler, duration_ms=4000, on_calibrated=seen.append)
    deadline = cal.begin_calibration()
    assert deadline == clock.now_ms + 4000
    assert cal.is_counting_down
    assert cal.countdown_remaining_ms() == 4000

    # Before expiry nothing is captured.
    assert cal.observe([pt("a", 0.5)]) is False
    clock.advance(4000)
    scheduler.run_pending()
    assert cal.capture_armed
    assert cal.countdown_remaining_ms() is None

    assert cal.observe([pt("a", 0.5), pt("b", 0.7)]) is True
    assert cal.calibrated
    assert cal.reference_for("a") == 0.5
    assert cal.reference_plane == pytest.approx(0.6)
    assert seen == [pytest.approx(0.6)]
    assert not cal.capture_armed


def test_capture_waits_for_visible_points(scheduler, clock):
    cal = CalibrationManager(scheduler, duration_ms=100)
    cal.begin_calibration()
    clock.advance(100)
    scheduler.run_pending()
    assert cal.observe([]) is False
    assert cal.capture_armed
    assert cal.observe([pt("a", 0.4)]) is True


def test_recalibration_replaces_references(scheduler, clock):
    cal = CalibrationManager(scheduler, duration_ms=0)
    cal.capture([pt("a", 0.5), pt("b", 0.5)])
    cal.begin_calibration()
    assert not cal.calibrated
    scheduler.run_pending()
    cal.observe([pt("c", 0.6)])
    assert cal.references == {"c": 0.6}
    assert cal.reference_for("a") is None


def test_cancel_stops_countdown(scheduler, clock):
    cal = CalibrationManager(scheduler, duration_ms=1000)
    cal.begin_calibration()
    cal.cancel()
    clock.advance(2000)
    scheduler.run_pending()
    assert not cal.capture_armed
    assert cal.observe([pt("a", 0.5)]) is False
    assert cal.reference_plane is None
