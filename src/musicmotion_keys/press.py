from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Optional, Tuple

from .types import PressEvent, PressState, TrackedPoint

logger = logging.getLogger(__name__)

# Float slack so that a signal exactly on the tolerance boundary counts as a press.
_EPS = 1e-9


@dataclass
class _PointState:
    state: PressState = PressState.RELEASED
    last_press_ms: Optional[float] = None
    offset: float = 0.0


@dataclass
class _LateralSample:
    x: float
    y: float
    timestamp: float


class PressDetector:
    """
    Per-fingertip RELEASED/PRESSED state machines.

    - press when `signal - reference >= -press_threshold`, the point's last
      press is at least `cooldown_ms` old and a lateral sample newer than
      `stale_window_ms` exists (otherwise the press is dropped as occlusion)
    - release as soon as the threshold condition fails; no cooldown on release
    - points without a reference never press
    """

    def __init__(
        self,
        reference_for: Callable[[str], Optional[float]],
        *,
        press_threshold: float = 0.03,
        cooldown_ms: float = 200.0,
        stale_window_ms: float = 150.0,
    ) -> None:
        self._reference_for = reference_for
        self.press_threshold = float(press_threshold)
        self.cooldown_ms = float(cooldown_ms)
        self.stale_window_ms = float(stale_window_ms)
        self._states: Dict[str, _PointState] = {}
        self._positions: Dict[str, _LateralSample] = {}

    def update_position(self, point_id: str, x: float, y: float, timestamp: float) -> None:
        self._positions[point_id] = _LateralSample(float(x), float(y), float(timestamp))

    def position_of(self, point_id: str) -> Optional[Tuple[float, float]]:
        s = self._positions.get(point_id)
        return None if s is None else (s.x, s.y)

    def is_fresh(self, point_id: str, now_ms: float) -> bool:
        s = self._positions.get(point_id)
        return s is not None and (now_ms - s.timestamp) <= self.stale_window_ms

    def is_pressed(self, point_id: str) -> bool:
        st = self._states.get(point_id)
        return st is not None and st.state is PressState.PRESSED

    def state_of(self, point_id: str) -> PressState:
        st = self._states.get(point_id)
        return PressState.RELEASED if st is None else st.state

    def offset_of(self, point_id: str) -> Optional[float]:
        """Signed distance past the reference plane at the last evaluation."""
        st = self._states.get(point_id)
        if st is None or st.state is not PressState.PRESSED:
            return None
        return st.offset

    def pressed_ids(self) -> Iterable[str]:
        return [pid for pid, st in self._states.items() if st.state is PressState.PRESSED]

    def evaluate(self, point: TrackedPoint, now_ms: Optional[float] = None) -> Optional[PressEvent]:
        """Advance one point's state machine; returns a PressEvent on RELEASED -> PRESSED."""
        now = point.timestamp if now_ms is None else float(now_ms)
        reference = self._reference_for(point.point_id)
        st = self._states.setdefault(point.point_id, _PointState())

        if reference is None:
            st.state = PressState.RELEASED
            return None

        offset = float(point.signal) - float(reference)
        touching = offset >= -self.press_threshold - _EPS
        st.offset = offset

        if st.state is PressState.PRESSED:
            if not touching:
                st.state = PressState.RELEASED
                logger.debug("%s released (offset %.3f)", point.point_id, offset)
            return None

        if not touching:
            return None
        if st.last_press_ms is not None and (now - st.last_press_ms) < self.cooldown_ms:
            return None
        lateral = self._positions.get(point.point_id)
        if lateral is None or (now - lateral.timestamp) > self.stale_window_ms:
            logger.debug("%s press dropped: no fresh lateral sample", point.point_id)
            return None

        st.state = PressState.PRESSED
        st.last_press_ms = now
        logger.debug("%s pressed at (%.3f, %.3f)", point.point_id, lateral.x, lateral.y)
        return PressEvent(point_id=point.point_id, x=lateral.x, y=lateral.y, timestamp=now)

    def release_missing(self, visible_ids: Iterable[str]) -> None:
        """Points the detector stopped reporting are released immediately."""
        visible = set(visible_ids)
        for pid, st in self._states.items():
            if pid not in visible and st.state is PressState.PRESSED:
                st.state = PressState.RELEASED
                logger.debug("%s released (lost by detector)", pid)

    def reset(self) -> None:
        self._states.clear()
        self._positions.clear()
