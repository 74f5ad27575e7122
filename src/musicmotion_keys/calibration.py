from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, Optional

import numpy as np

from .scheduler import Deferred, DeferredScheduler
from .types import TrackedPoint

logger = logging.getLogger(__name__)


class CalibrationManager:
    """
    Captures the desk "contact plane" as one reference signal per fingertip.

    A run is a countdown followed by a single capture of every fingertip that
    is visible at (or, if none is, after) the deadline. Each run replaces the
    previous references entirely.
    """

    def __init__(
        self,
        scheduler: DeferredScheduler,
        *,
        duration_ms: float = 4000.0,
        on_calibrated: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._scheduler = scheduler
        self.duration_ms = float(duration_ms)
        self.on_calibrated = on_calibrated

        self._references: Dict[str, float] = {}
        self._countdown: Optional[Deferred] = None
        self._deadline_ms: Optional[float] = None
        self._capture_armed = False

    @property
    def calibrated(self) -> bool:
        return bool(self._references)

    @property
    def is_counting_down(self) -> bool:
        return self._countdown is not None and self._countdown.pending

    @property
    def capture_armed(self) -> bool:
        return self._capture_armed

    @property
    def references(self) -> Dict[str, float]:
        return dict(self._references)

    @property
    def reference_plane(self) -> Optional[float]:
        """Mean of all per-point references, or None before calibration."""
        if not self._references:
            return None
        return float(np.mean(list(self._references.values())))

    def reference_for(self, point_id: str) -> Optional[float]:
        return self._references.get(point_id)

    def begin_calibration(self, duration_ms: Optional[float] = None) -> float:
        """Start a countdown; returns the capture deadline in ms."""
        self.cancel()
        self.clear()
        delay = self.duration_ms if duration_ms is None else float(duration_ms)
        self._countdown = self._scheduler.call_later(delay, self._arm_capture, label="calibration")
        self._deadline_ms = self._scheduler.now() + max(0.0, delay)
        logger.info("Calibration countdown started (%.0f ms)", delay)
        return self._deadline_ms

    def countdown_remaining_ms(self) -> Optional[float]:
        if not self.is_counting_down or self._deadline_ms is None:
            return None
        return max(0.0, self._deadline_ms - self._scheduler.now())

    def observe(self, points: Iterable[TrackedPoint]) -> bool:
        """Feed a detector frame; captures if the countdown has expired. Returns True on capture."""
        if not self._capture_armed:
            return False
        points = list(points)
        if not points:
            return False
        self.capture(points)
        return True

    def capture(self, points: Iterable[TrackedPoint]) -> Optional[float]:
        refs = {p.point_id: float(p.signal) for p in points}
        if not refs:
            return None
        self._references = refs
        self._capture_armed = False
        plane = self.reference_plane
        logger.info("Calibrated %d points, reference plane %.3f", len(refs), plane)
        if self.on_calibrated is not None:
            self.on_calibrated(plane)
        return plane

    def cancel(self) -> None:
        self._scheduler.cancel(self._countdown)
        self._countdown = None
        self._deadline_ms = None
        self._capture_armed = False

    def clear(self) -> None:
        self._references = {}

    def _arm_capture(self) -> None:
        self._countdown = None
        self._deadline_ms = None
        self._capture_armed = True
        logger.debug("Calibration capture armed")
