from __future__ import annotations

from typing import Iterable, Optional, Sequence, Set, Tuple

import cv2
import numpy as np

from .region import PlayingRegion
from .types import TrackedPoint
from .utils import clamp_int


def to_px(frame, x: float, y: float) -> Tuple[int, int]:
    h, w = frame.shape[:2]
    return (clamp_int(int(round(x * w)), 0, w - 1), clamp_int(int(round(y * h)), 0, h - 1))


def draw_text(frame, text: str, org: Tuple[int, int], color=(255, 255, 255), scale=0.6, thickness=2):
    cv2.putText(frame, text, org, cv2.FONT_HERSHEY_SIMPLEX, scale, (0, 0, 0), thickness + 2, cv2.LINE_AA)
    cv2.putText(frame, text, org, cv2.FONT_HERSHEY_SIMPLEX, scale, color, thickness, cv2.LINE_AA)
    return frame


def draw_rect_alpha(frame, p0: Tuple[int, int], p1: Tuple[int, int], color, alpha: float):
    overlay = frame.copy()
    cv2.rectangle(overlay, p0, p1, color, -1)
    cv2.addWeighted(overlay, alpha, frame, 1.0 - alpha, 0, frame)
    return frame


def draw_region_keys(frame, region: PlayingRegion, labels: Sequence[str], pressed: Set[int]):
    """Translucent keys across the playing region; pressed keys are filled blue."""
    y0 = region.y_min
    y1 = region.y_max
    key_w = region.width / len(labels)
    for i, label in enumerate(labels):
        x0, x1 = region.x_min + i * key_w, region.x_min + (i + 1) * key_w
        p0 = to_px(frame, x0, y0)
        p1 = to_px(frame, x1, y1)
        p1 = (max(p0[0], p1[0] - 2), p1[1])
        is_pressed = i in pressed
        fill = (246, 130, 59) if is_pressed else (255, 255, 255)
        draw_rect_alpha(frame, p0, p1, fill, 0.6 if is_pressed else 0.25)
        cv2.rectangle(frame, p0, p1, (250, 165, 96) if is_pressed else (200, 200, 200), 2)
        cx = (p0[0] + p1[0]) // 2 - 10
        cy = (p0[1] + p1[1]) // 2 + 6
        draw_text(frame, label, (cx, cy), scale=0.45, thickness=1)
    return frame


def draw_desk_line(frame, y_norm: Optional[float], label: str = "DESK SURFACE"):
    if y_norm is None:
        return frame
    h, w = frame.shape[:2]
    y = clamp_int(int(round(y_norm * h)), 0, h - 1)
    for x in range(0, w, 15):
        cv2.line(frame, (x, y), (min(w - 1, x + 10), y), (0, 255, 0), 3)
    draw_text(frame, label, (10, max(16, y - 6)), color=(0, 255, 0), scale=0.5)
    return frame


def draw_fingertips(frame, points: Iterable[TrackedPoint], pressed_ids: Set[str], radius: int = 6):
    for p in points:
        color = (0, 255, 0) if p.point_id in pressed_ids else (0, 0, 255)
        cv2.circle(frame, to_px(frame, p.x, p.y), radius, color, -1, lineType=cv2.LINE_AA)
    return frame


def draw_drag_rect(frame, start: Tuple[float, float], end: Tuple[float, float]):
    cv2.rectangle(frame, to_px(frame, *start), to_px(frame, *end), (246, 130, 59), 3)
    return frame


def draw_arm_markers(frame, region: PlayingRegion, key_count: int, positions: Sequence[Tuple[str, float]]):
    """Small triangles under the region at each arm's interpolated key position."""
    key_w = region.width / key_count
    for side, key_pos in positions:
        x = region.x_min + (key_pos + 0.5) * key_w
        cx, cy = to_px(frame, x, region.y_max)
        pts = np.array([(cx, cy + 4), (cx - 8, cy + 18), (cx + 8, cy + 18)], dtype=np.int32)
        color = (255, 0, 255) if side == "left" else (255, 255, 0)
        cv2.fillPoly(frame, [pts], color)
    return frame
