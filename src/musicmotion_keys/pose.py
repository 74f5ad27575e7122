from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

from .types import HandSide


@dataclass
class _ArmState:
    value: float = 0.0
    start_value: float = 0.0
    target: float = 0.0
    start_ms: float = 0.0
    target_ms: float = 0.0


class ArmPoseArena:
    """
    One interpolation state per hand side, blending the arm toward the key
    position of the latest note. Purely cosmetic: nothing in the note pipeline
    reads it back.
    """

    def __init__(self, blend_ms: float = 300.0) -> None:
        self.blend_ms = float(blend_ms)
        self._states: Dict[HandSide, _ArmState] = {side: _ArmState() for side in HandSide}

    def set_target(self, side: HandSide, key_index: float, now_ms: float) -> None:
        st = self._states[HandSide(side)]
        if st.target == key_index and now_ms <= st.target_ms:
            return
        self._advance_one(st, now_ms)
        st.start_value = st.value
        st.target = float(key_index)
        st.start_ms = float(now_ms)
        st.target_ms = float(now_ms) + self.blend_ms

    def advance(self, now_ms: float) -> Dict[HandSide, float]:
        for st in self._states.values():
            self._advance_one(st, now_ms)
        return self.positions

    @property
    def positions(self) -> Dict[HandSide, float]:
        return {side: st.value for side, st in self._states.items()}

    def target_of(self, side: HandSide) -> float:
        return self._states[HandSide(side)].target

    @staticmethod
    def _advance_one(st: _ArmState, now_ms: float) -> None:
        span = st.target_ms - st.start_ms
        if span <= 0 or now_ms >= st.target_ms:
            st.value = st.target
            return
        r = max(0.0, (now_ms - st.start_ms) / span)
        st.value = st.start_value + r * (st.target - st.start_value)
