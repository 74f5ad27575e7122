from __future__ import annotations

from typing import Any, List, Sequence, Tuple

from .types import FINGERTIP_INDICES, HandPosition, TrackedPoint
from .utils import point_id


def _coords(lm: Any) -> Tuple[float, float, float]:
    """Accept `HandLandmark`s, MediaPipe landmarks, mappings or (x, y[, z]) tuples."""
    if hasattr(lm, "x_norm"):
        return float(lm.x_norm), float(lm.y_norm), float(getattr(lm, "z_norm", 0.0))
    if hasattr(lm, "x"):
        return float(lm.x), float(lm.y), float(getattr(lm, "z", 0.0) or 0.0)
    if isinstance(lm, dict):
        return float(lm["x"]), float(lm["y"]), float(lm.get("z", 0.0) or 0.0)
    x, y = float(lm[0]), float(lm[1])
    z = float(lm[2]) if len(lm) > 2 else 0.0
    return x, y, z


def _landmarks_of(hand: Any) -> Sequence[Any]:
    if isinstance(hand, HandPosition):
        return hand.landmarks
    return hand


def tracked_points_from_hands(
    hands: Sequence[Any],
    now_ms: float,
    *,
    mirror_x: bool = False,
    fingertips: Sequence[int] = FINGERTIP_INDICES,
) -> List[TrackedPoint]:
    """
    Turn one detector frame into fingertip `TrackedPoint`s.

    Ids are derived from (hand slot, finger slot), so a fingertip keeps its id
    for as long as the detector keeps reporting it in the same slot. Hands with
    fewer landmarks than a fingertip index are skipped for that finger.
    """
    points: List[TrackedPoint] = []
    for hand_index, hand in enumerate(hands):
        landmarks = _landmarks_of(hand)
        for finger_index, lm_idx in enumerate(fingertips):
            if lm_idx >= len(landmarks):
                continue
            x, y, z = _coords(landmarks[lm_idx])
            if mirror_x:
                x = 1.0 - x
            points.append(
                TrackedPoint(
                    point_id=point_id(hand_index, finger_index),
                    x=x,
                    y=y,
                    signal=y,
                    timestamp=float(now_ms),
                    hand_index=hand_index,
                    finger_index=finger_index,
                    depth=z,
                )
            )
    return points
