from __future__ import annotations

import logging
import math
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, Union

from .audio import AudioSink, NotePlayer
from .calibration import CalibrationManager
from .config import PipelineConfig
from .errors import CalibrationIncomplete, RegionUndefined
from .exercise import C_MAJOR_EXERCISE, Exercise, ExerciseValidator, Feedback
from .notes import ConstantVelocity, DepthVelocity, NoteBus, NoteCandidate, NoteHistory, NoteLifecycleManager
from .press import PressDetector
from .recorder import Recorder
from .region import DualRegionMapper, KeyLayout, PlayingRegion, RegionMapper, split_bases
from .renderer import KeyboardRenderer, OverlayRenderer, RendererSink
from .scheduler import DeferredScheduler
from .tracking import tracked_points_from_hands
from .types import NoteEvent, PressEvent, RecordedEvent, TrackedPoint
from .utils import midi_to_note_name

logger = logging.getLogger(__name__)


class PipelineMode(Enum):
    PLAY = "play"  # depth-derived velocity
    TEACH = "teach"  # PLAY plus exercise validation
    CONTROLLER = "controller"  # constant velocity


class KeyboardPipeline:
    """
    Turns hand-landmark frames into note events.

    Two cameras: the top view supplies lateral fingertip positions
    (`process_top_frame`), the side view supplies the vertical signal that is
    compared against the calibrated desk plane (`process_side_frame`). With a
    single camera, `process_frame` feeds both from the same hands.

    Every note event goes through one `NoteBus`; audio, renderer, recorder,
    history and (in TEACH mode) the exercise validator are subscribers.
    Everything runs on the caller's thread: each frame call first fires the
    deferred callbacks that are due.
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        scheduler: Optional[DeferredScheduler] = None,
        player: Optional[NotePlayer] = None,
        renderer: Optional[KeyboardRenderer] = None,
        mode: PipelineMode = PipelineMode.PLAY,
        *,
        exercise: Exercise = C_MAJOR_EXERCISE,
        two_hand_split: bool = False,
    ) -> None:
        self.config = config or PipelineConfig()
        self.scheduler = scheduler or DeferredScheduler()
        self.mode = PipelineMode(mode)
        self.two_hand_split = two_hand_split
        if two_hand_split:
            # the left hand's range must fit below octave_base
            split_bases(self.config.octave_base, self.config.key_count, KeyLayout(self.config.layout))
        self.renderer = renderer
        cfg = self.config

        self.bus = NoteBus()
        self.calibration = CalibrationManager(
            self.scheduler, duration_ms=cfg.calibration_ms, on_calibrated=self._on_calibrated
        )
        self.press = PressDetector(
            self.calibration.reference_for,
            press_threshold=cfg.press_threshold,
            cooldown_ms=cfg.cooldown_ms,
            stale_window_ms=cfg.stale_window_ms,
        )
        self.notes = NoteLifecycleManager(self.bus.publish)
        self.recorder = Recorder(self.scheduler, self.bus.publish, tail_ms=cfg.playback_tail_ms)
        self.history = NoteHistory(maxlen=cfg.history_size)

        if self.mode is PipelineMode.CONTROLLER:
            self.velocity: Callable[[Optional[float]], int] = ConstantVelocity(cfg.velocity)
        else:
            self.velocity = DepthVelocity(
                press_threshold=cfg.press_threshold,
                min_velocity=cfg.min_velocity,
                max_velocity=cfg.max_velocity,
                full_scale=cfg.velocity_full_scale,
            )

        self.validator: Optional[ExerciseValidator] = None
        self.last_feedback: Optional[Feedback] = None
        if self.mode is PipelineMode.TEACH:
            self.validator = ExerciseValidator(exercise=exercise, on_feedback=self._on_feedback)

        if player is not None:
            self.bus.subscribe(AudioSink(player))
        if renderer is not None:
            self.bus.subscribe(RendererSink(renderer))
        self.bus.subscribe(self.recorder)
        self.bus.subscribe(self.history)
        if self.validator is not None:
            self.bus.subscribe(self.validator)

        self.mapper: Optional[Union[RegionMapper, DualRegionMapper]] = None
        self.top_points: List[TrackedPoint] = []
        self.side_points: List[TrackedPoint] = []
        self._failure: Optional[str] = None

    # ------------------------------------------------------------------ setup

    def subscribe(self, sink: Any) -> Callable[[NoteEvent], None]:
        """Attach an extra note-event consumer (object with `handle` or a callable)."""
        return self.bus.subscribe(sink)

    def begin_calibration(self) -> float:
        """Start the countdown; active notes are released and the previous plane discarded."""
        now = self.scheduler.now()
        self.notes.release_all(now)
        self.press.reset()
        self._failure = None
        return self.calibration.begin_calibration()

    def set_region(self, region: PlayingRegion) -> None:
        if self.config.enforce_order and not self.calibration.calibrated:
            raise CalibrationIncomplete("Calibrate the desk surface before drawing the playing region.")
        mapper: Union[RegionMapper, DualRegionMapper]
        if self.two_hand_split:
            lower_base, upper_base = split_bases(self.config.octave_base, self.config.key_count, region.layout)
            mapper = DualRegionMapper(
                region,
                keys_per_hand=self.config.key_count,
                lower_base=lower_base,
                upper_base=upper_base,
            )
        else:
            mapper = RegionMapper(region)
        self.notes.release_all(self.scheduler.now())
        self.mapper = mapper
        if isinstance(self.renderer, OverlayRenderer):
            self.renderer.mapper = self.mapper
        logger.info(
            "Playing region set: (%.2f, %.2f)-(%.2f, %.2f), %d keys",
            region.x_min, region.y_min, region.x_max, region.y_max, self.mapper.key_count,
        )

    def draw_region(self, start: Tuple[float, float], end: Tuple[float, float]) -> PlayingRegion:
        """Set the playing region from a drag gesture in normalized top-camera coordinates."""
        layout = KeyLayout(self.config.layout)
        key_count, octave_base = self.config.key_count, self.config.octave_base
        if self.two_hand_split:
            # the region spans both hands and starts at the left hand's lowest note
            key_count *= 2
            octave_base, _ = split_bases(octave_base, self.config.key_count, layout)
        region = PlayingRegion.from_drag(
            start,
            end,
            key_count=key_count,
            octave_base=octave_base,
            layout=layout,
        )
        self.set_region(region)
        return region

    def load_exercise(self, exercise: Exercise) -> None:
        if self.validator is None:
            raise ValueError("Exercises are only available in TEACH mode")
        self.validator.load(exercise)
        self.last_feedback = None

    # ----------------------------------------------------------------- frames

    def process_top_frame(self, hands: Sequence[Any]) -> List[TrackedPoint]:
        """Top camera: record lateral fingertip positions for the press detector."""
        now = self.scheduler.now()
        self.scheduler.run_pending(now)
        points = tracked_points_from_hands(hands, now, mirror_x=self.config.mirror_top)
        for p in points:
            self.press.update_position(p.point_id, p.x, p.y, now)
        self.top_points = points
        return points

    def process_side_frame(self, hands: Sequence[Any]) -> List[NoteEvent]:
        """Side camera: calibrate, or evaluate presses and update the active notes."""
        now = self.scheduler.now()
        self.scheduler.run_pending(now)
        points = tracked_points_from_hands(hands, now)
        self.side_points = points
        return self._evaluate(points, now)

    def process_frame(self, hands: Sequence[Any]) -> List[NoteEvent]:
        """Single camera: the same hands give both the lateral position and the press signal."""
        now = self.scheduler.now()
        self.scheduler.run_pending(now)
        points = tracked_points_from_hands(hands, now, mirror_x=self.config.mirror_top)
        for p in points:
            self.press.update_position(p.point_id, p.x, p.y, now)
        self.top_points = points
        self.side_points = points
        return self._evaluate(points, now)

    def _evaluate(self, points: List[TrackedPoint], now: float) -> List[NoteEvent]:
        if self.calibration.capture_armed:
            self.calibration.observe(points)
            return []
        if not self.calibration.calibrated:
            logger.debug("Frame ignored: not calibrated")
            return []

        self.press.release_missing(p.point_id for p in points)
        new_presses: Dict[str, PressEvent] = {}
        for p in points:
            ev = self.press.evaluate(p, now)
            if ev is not None:
                new_presses[ev.point_id] = ev

        candidates: List[NoteCandidate] = []
        if self.mapper is not None:
            for pid in sorted(self.press.pressed_ids()):
                pos = self.press.position_of(pid)
                if pos is None:
                    continue
                hit = self.mapper.key_at(pos[0], pos[1], margin=self.config.region_margin)
                if hit is None:
                    if pid in new_presses:
                        ev = new_presses[pid]
                        logger.debug("%s pressed outside the region at (%.3f, %.3f)", pid, ev.x, ev.y)
                    continue
                candidates.append(
                    NoteCandidate(
                        note_number=hit.note_number,
                        point_id=pid,
                        velocity=self.velocity(self.press.offset_of(pid)),
                        key_index=hit.key_index,
                        hand_side=hit.hand_side,
                    )
                )
        return self.notes.update(candidates, now)

    # -------------------------------------------------------------- recording

    def start_recording(self) -> None:
        if self.config.enforce_order and self.mapper is None:
            raise RegionUndefined("Draw the playing region before recording.")
        self.recorder.start_recording()

    def stop_recording(self) -> List[RecordedEvent]:
        return self.recorder.stop_recording()

    def play_recording(self) -> float:
        return self.recorder.play()

    def toggle_playback(self) -> bool:
        return self.recorder.toggle_playback()

    # -------------------------------------------------------------- lifecycle

    def detector_failed(self, exc: BaseException) -> None:
        """The detector could not start or stopped producing frames: report it and shut down."""
        logger.error("Hand detector unavailable: %s", exc)
        self.stop()
        self._failure = f"Hand tracking unavailable: {exc}"

    def stop(self) -> List[NoteEvent]:
        """
        Tear down to the initial state: every sounding note gets its note-off,
        pending deferred work is cancelled and a restart needs fresh
        calibration and a new region.
        """
        now = self.scheduler.now()
        self.recorder.stop_playback()
        if self.recorder.is_recording:
            self.recorder.stop_recording()
        self.calibration.cancel()
        released = self.notes.release_all(now)
        self.scheduler.cancel_all()
        self.calibration.clear()
        self.mapper = None
        self.press.reset()
        if isinstance(self.renderer, OverlayRenderer):
            self.renderer.mapper = None
            self.renderer.clear()
        logger.info("Pipeline stopped")
        return released

    # ----------------------------------------------------------------- status

    @property
    def ready(self) -> bool:
        return self.calibration.calibrated and self.mapper is not None

    @property
    def status(self) -> str:
        if self._failure is not None:
            return self._failure
        remaining = self.calibration.countdown_remaining_ms()
        if remaining is not None:
            return f"Rest your fingertips on the desk... {int(math.ceil(remaining / 1000.0))}"
        if self.calibration.capture_armed:
            return "Capturing desk surface..."
        if not self.calibration.calibrated:
            return "Calibrate the desk surface to start"
        if self.mapper is None:
            return "Draw the playing region on the top camera"
        if self.recorder.is_recording or self.recorder.is_playing:
            return self.recorder.status
        if self.validator is not None:
            if self.last_feedback is not None and self.last_feedback.message:
                return f"{self.last_feedback.message} ({self.validator.progress})"
            if not self.validator.complete:
                nxt = midi_to_note_name(self.validator.expected[self.validator.cursor])
                return f"{self.validator.exercise.name}: play {nxt} ({self.validator.progress})"
        return "Ready to play"

    def _on_calibrated(self, reference_plane: float) -> None:
        logger.info("Desk surface calibrated at y=%.3f", reference_plane)

    def _on_feedback(self, fb: Feedback) -> None:
        if fb.message:
            self.last_feedback = fb
