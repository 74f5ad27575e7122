from __future__ import annotations

import logging
import os
import ssl
import urllib.request
from dataclasses import dataclass
from typing import List, Optional

import certifi
import cv2

from .errors import DetectorUnavailable
from .types import HandLandmark, HandPosition

logger = logging.getLogger(__name__)


HAND_LANDMARKER_TASK_URL = (
    "https://storage.googleapis.com/mediapipe-models/hand_landmarker/hand_landmarker/float16/latest/hand_landmarker.task"
)


def ensure_hand_landmarker_task(model_path: str, *, url: str = HAND_LANDMARKER_TASK_URL, timeout_s: int = 30) -> str:
    """
    Ensure `hand_landmarker.task` exists at `model_path`, downloading it from the
    official MediaPipe model bucket if missing.

    Raises:
        DetectorUnavailable: the download failed; partial files are removed.
    """
    if os.path.exists(model_path):
        return model_path

    os.makedirs(os.path.dirname(model_path) or ".", exist_ok=True)
    # certifi avoids CERTIFICATE_VERIFY_FAILED on python.org macOS builds.
    ctx = ssl.create_default_context(cafile=certifi.where())
    logger.info("Downloading hand landmarker model to %s", model_path)
    try:
        with urllib.request.urlopen(url, context=ctx, timeout=timeout_s) as r, open(model_path, "wb") as f:
            f.write(r.read())
    except OSError as e:
        if os.path.exists(model_path):
            os.remove(model_path)
        raise DetectorUnavailable(
            "Missing MediaPipe Tasks model file and auto-download failed.\n\n"
            f"Expected model at: {model_path}\n"
            f"URL: {url}\n\n"
            "Download it manually:\n"
            f'  mkdir -p "{os.path.dirname(model_path) or "."}"\n'
            f'  curl -L -o "{model_path}" "{url}"\n'
        ) from e
    return model_path


@dataclass(frozen=True)
class _SolutionsBackend:
    hands: object


@dataclass(frozen=True)
class _TasksBackend:
    mp: object
    landmarker: object


def _try_create_solutions_backend(
    max_num_hands: int,
    model_complexity: int,
    min_detection_confidence: float,
    min_tracking_confidence: float,
) -> Optional[_SolutionsBackend]:
    import mediapipe as mp  # type: ignore

    if not hasattr(mp, "solutions"):
        return None
    hands = mp.solutions.hands.Hands(
        static_image_mode=False,
        max_num_hands=max_num_hands,
        model_complexity=model_complexity,
        min_detection_confidence=min_detection_confidence,
        min_tracking_confidence=min_tracking_confidence,
    )
    return _SolutionsBackend(hands=hands)


def _try_create_tasks_backend(
    model_path: str,
    max_num_hands: int,
    min_detection_confidence: float,
    min_tracking_confidence: float,
) -> _TasksBackend:
    """
    Fallback for MediaPipe distributions that do not include `mp.solutions`.

    Uses the MediaPipe Tasks HandLandmarker API, which requires a `.task` model asset on disk.
    """
    import mediapipe as mp  # type: ignore
    from mediapipe.tasks.python import BaseOptions  # type: ignore
    from mediapipe.tasks.python.vision import HandLandmarker, HandLandmarkerOptions, RunningMode  # type: ignore

    model_path = ensure_hand_landmarker_task(model_path)
    options = HandLandmarkerOptions(
        base_options=BaseOptions(model_asset_path=model_path),
        running_mode=RunningMode.VIDEO,
        num_hands=max_num_hands,
        min_hand_detection_confidence=min_detection_confidence,
        min_tracking_confidence=min_tracking_confidence,
    )
    return _TasksBackend(mp=mp, landmarker=HandLandmarker.create_from_options(options))


class HandPositionDetector:
    """
    Hand landmark detector using MediaPipe Hands.

    Input frames are expected as **BGR** images (OpenCV default). Landmarks are
    returned in normalized image coordinates; the keyboard pipeline only needs
    the fingertips, which `tracking.tracked_points_from_hands` extracts.
    """

    def __init__(
        self,
        max_num_hands: int = 2,
        model_complexity: int = 1,
        min_detection_confidence: float = 0.5,
        min_tracking_confidence: float = 0.5,
        tasks_model_path: str = "models/hand_landmarker.task",
    ) -> None:
        try:
            self._solutions = _try_create_solutions_backend(
                max_num_hands=max_num_hands,
                model_complexity=model_complexity,
                min_detection_confidence=min_detection_confidence,
                min_tracking_confidence=min_tracking_confidence,
            )
        except ImportError as e:
            raise DetectorUnavailable(
                "MediaPipe is not installed. Install it with:\n  pip install mediapipe"
            ) from e

        self._tasks: Optional[_TasksBackend] = None
        self._tasks_timestamp_ms = 0

        if self._solutions is None:
            try:
                self._tasks = _try_create_tasks_backend(
                    model_path=tasks_model_path,
                    max_num_hands=max_num_hands,
                    min_detection_confidence=min_detection_confidence,
                    min_tracking_confidence=min_tracking_confidence,
                )
            except (ImportError, RuntimeError, ValueError) as e:
                raise DetectorUnavailable(
                    "Could not initialize MediaPipe Hands.\n"
                    "Your installed `mediapipe` package does not expose `mp.solutions`, and the Tasks fallback\n"
                    f"could not be initialized ({e}).\n\n"
                    "Check the installation with:\n"
                    "  python3 -c \"import mediapipe as mp; print(mp.__file__, getattr(mp, '__version__', None))\""
                ) from e
            logger.info("Using MediaPipe Tasks HandLandmarker backend")
        else:
            logger.info("Using MediaPipe solutions backend")

    def close(self) -> None:
        if self._solutions is not None:
            self._solutions.hands.close()
        if self._tasks is not None:
            self._tasks.landmarker.close()

    def __enter__(self) -> "HandPositionDetector":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def detect(self, frame_bgr) -> List[HandPosition]:
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)

        if self._solutions is not None:
            results = self._solutions.hands.process(frame_rgb)
            if not results.multi_hand_landmarks:
                return []
            handedness_list = results.multi_handedness or []
            positions: List[HandPosition] = []
            for i, hand_landmarks in enumerate(results.multi_hand_landmarks):
                label: Optional[str] = None
                score: Optional[float] = None
                if i < len(handedness_list) and handedness_list[i].classification:
                    c = handedness_list[i].classification[0]
                    label = getattr(c, "label", None)
                    score = float(getattr(c, "score", 0.0))
                positions.append(_build_hand_position(hand_landmarks.landmark, label, score))
            return positions

        if self._tasks is None:
            return []

        mp = self._tasks.mp
        mp_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=frame_rgb)
        # VIDEO mode requires monotonically increasing timestamps.
        self._tasks_timestamp_ms += 33
        result = self._tasks.landmarker.detect_for_video(mp_image, self._tasks_timestamp_ms)

        hand_landmarks_list = getattr(result, "hand_landmarks", None) or []
        handedness_list = getattr(result, "handedness", None) or []
        positions = []
        for i, landmarks in enumerate(hand_landmarks_list):
            label = None
            score = None
            if i < len(handedness_list) and handedness_list[i]:
                cat0 = handedness_list[i][0]
                label = getattr(cat0, "category_name", None) or getattr(cat0, "display_name", None)
                score = float(getattr(cat0, "score", 0.0))
            positions.append(_build_hand_position(landmarks, label, score))
        return positions


def _build_hand_position(landmarks, label: Optional[str], score: Optional[float]) -> HandPosition:
    return HandPosition(
        handedness_label=label,
        handedness_score=score,
        landmarks=[
            HandLandmark(
                idx=idx,
                x_norm=float(lm.x),
                y_norm=float(lm.y),
                z_norm=float(getattr(lm, "z", 0.0) or 0.0),
            )
            for idx, lm in enumerate(landmarks)
        ],
    )
