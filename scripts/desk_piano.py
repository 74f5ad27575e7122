from __future__ import annotations

import argparse
import logging
import os
import platform
import sys
from dataclasses import dataclass
from typing import Optional, Tuple

import cv2

# Allow running without installing the package (repo-local usage).
REPO_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
SRC_ROOT = os.path.join(REPO_ROOT, "src")
if SRC_ROOT not in sys.path:
    sys.path.insert(0, SRC_ROOT)

from musicmotion_keys.audio import PolySynth, make_player  # noqa: E402
from musicmotion_keys.config import PipelineConfig, load_config  # noqa: E402
from musicmotion_keys.detector import HandPositionDetector  # noqa: E402
from musicmotion_keys.drawing import draw_text  # noqa: E402
from musicmotion_keys.errors import DetectorUnavailable, PianoError  # noqa: E402
from musicmotion_keys.exercise import scale_exercise  # noqa: E402
from musicmotion_keys.midi import MidiOutput, find_output  # noqa: E402
from musicmotion_keys.pipeline import KeyboardPipeline, PipelineMode  # noqa: E402
from musicmotion_keys.renderer import OverlayRenderer  # noqa: E402
from musicmotion_keys.scheduler import DeferredScheduler  # noqa: E402

logger = logging.getLogger("desk_piano")

TOP_WINDOW = "desk piano - top"
SIDE_WINDOW = "desk piano - side"
MIN_DRAG = 0.02  # normalized; smaller drags are treated as clicks


@dataclass
class DragState:
    start: Optional[Tuple[float, float]] = None
    current: Optional[Tuple[float, float]] = None
    done: Optional[Tuple[Tuple[float, float], Tuple[float, float]]] = None

    def rect(self):
        if self.start is None or self.current is None:
            return None
        return (self.start, self.current)


def open_camera(index: int, width: int, height: int):
    if platform.system() == "Darwin":
        cap = cv2.VideoCapture(index, cv2.CAP_AVFOUNDATION)
    else:
        cap = cv2.VideoCapture(index)
    if not cap.isOpened():
        raise RuntimeError(
            f"Could not open camera index {index}. "
            "On macOS: System Settings -> Privacy & Security -> Camera -> allow your terminal."
        )
    cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
    cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
    return cap


def make_mouse_handler(drag: DragState, size: Tuple[int, int]):
    def on_mouse(event, x, y, flags, param) -> None:
        w, h = size
        pt = (x / float(max(1, w)), y / float(max(1, h)))
        if event == cv2.EVENT_LBUTTONDOWN:
            drag.start = pt
            drag.current = pt
        elif event == cv2.EVENT_MOUSEMOVE and drag.start is not None:
            drag.current = pt
        elif event == cv2.EVENT_LBUTTONUP and drag.start is not None:
            start, drag.start, drag.current = drag.start, None, None
            if abs(pt[0] - start[0]) > MIN_DRAG and abs(pt[1] - start[1]) > MIN_DRAG:
                drag.done = (start, pt)

    return on_mouse


def detect_hands(detector, frame, pipeline: KeyboardPipeline, camera: str):
    """Run one detection; on failure the pipeline is shut down and None returned."""
    try:
        return detector.detect(frame)
    except Exception as e:
        logger.exception("Hand detection failed on the %s camera", camera)
        pipeline.detector_failed(e)
        return None


def build_config(args) -> PipelineConfig:
    config = load_config(args.config) if args.config else PipelineConfig()
    overrides = {}
    if args.keys is not None:
        overrides["key_count"] = args.keys
    if args.octave_base is not None:
        overrides["octave_base"] = args.octave_base
    if args.layout is not None:
        overrides["layout"] = args.layout
    if args.threshold is not None:
        overrides["press_threshold"] = args.threshold
    return config.replace(**overrides) if overrides else config


def main() -> int:
    ap = argparse.ArgumentParser(description="Play a keyboard on your desk with one or two webcams.")
    ap.add_argument("--top-camera", type=int, default=0, help="Camera looking down at the desk (default: 0)")
    ap.add_argument(
        "--side-camera",
        type=int,
        default=None,
        help="Camera level with the desk; omit to run single-camera mode",
    )
    ap.add_argument("--width", type=int, default=1280, help="Capture width (best effort)")
    ap.add_argument("--height", type=int, default=720, help="Capture height (best effort)")
    ap.add_argument("--config", type=str, default=None, help="JSON file with PipelineConfig fields")
    ap.add_argument("--mode", choices=[m.value for m in PipelineMode], default=PipelineMode.PLAY.value)
    ap.add_argument("--keys", type=int, default=None, help="Number of keys across the region")
    ap.add_argument("--octave-base", type=int, default=None, help="MIDI note of the leftmost key (60 = C4)")
    ap.add_argument("--layout", choices=["chromatic", "white"], default=None)
    ap.add_argument("--threshold", type=float, default=None, help="Press threshold (normalized)")
    ap.add_argument("--split", action="store_true", help="Two-hand split: the left half plays whole octaves lower")
    ap.add_argument("--scale", type=str, default="c_major", help="Exercise scale for --mode teach")
    ap.add_argument("--midi", type=str, default=None, help="Send notes to the MIDI port containing this name")
    ap.add_argument("--no-audio", action="store_true", help="Disable the built-in synth")
    ap.add_argument("--verbose", action="store_true")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s: %(message)s",
    )

    config = build_config(args)
    mode = PipelineMode(args.mode)

    synth = None
    if not args.no_audio and mode is not PipelineMode.CONTROLLER:
        synth = PolySynth()
    midi = None
    if args.midi:
        port_name = find_output(args.midi)
        if port_name is None:
            raise RuntimeError(f"No MIDI output matching '{args.midi}' (see scripts/list_midi_ports.py)")
        midi = MidiOutput(port_name=port_name)

    scheduler = DeferredScheduler()
    overlay = OverlayRenderer(scheduler, flash_ms=config.flash_ms, arm_blend_ms=config.arm_blend_ms)
    pipeline = KeyboardPipeline(
        config,
        scheduler,
        player=make_player(synth, midi),
        renderer=overlay,
        mode=mode,
        exercise=scale_exercise(args.scale, config.octave_base),
        two_hand_split=args.split,
    )

    top_cap = open_camera(args.top_camera, args.width, args.height)
    side_cap = None
    if args.side_camera is not None:
        side_cap = open_camera(args.side_camera, args.width, args.height)

    drag = DragState()
    cv2.namedWindow(TOP_WINDOW)
    mouse_size = [args.width, args.height]
    cv2.setMouseCallback(TOP_WINDOW, make_mouse_handler(drag, mouse_size))
    message = ""

    try:
        if synth is not None:
            synth.start()
        top_detector = HandPositionDetector()
        side_detector = HandPositionDetector() if side_cap is not None else None
    except DetectorUnavailable as e:
        pipeline.detector_failed(e)
        print(pipeline.status)
        top_cap.release()
        if side_cap is not None:
            side_cap.release()
        if synth is not None:
            synth.stop()
        return 1

    exit_code = 0
    try:
        while True:
            ok, top = top_cap.read()
            if not ok:
                pipeline.detector_failed(DetectorUnavailable("top camera stopped producing frames"))
                exit_code = 1
                break
            hands = detect_hands(top_detector, top, pipeline, "top")
            if hands is None:
                exit_code = 1
                break
            # Landmark x is mirrored by the pipeline; flip the picture to match.
            top = cv2.flip(top, 1)
            h, w = top.shape[:2]
            mouse_size[0], mouse_size[1] = w, h

            if side_cap is None:
                pipeline.process_frame(hands)
            else:
                pipeline.process_top_frame(hands)
                ok, side = side_cap.read()
                if not ok:
                    pipeline.detector_failed(DetectorUnavailable("side camera stopped producing frames"))
                    exit_code = 1
                    break
                side_hands = detect_hands(side_detector, side, pipeline, "side")
                if side_hands is None:
                    exit_code = 1
                    break
                pipeline.process_side_frame(side_hands)
                pressed = set(pipeline.press.pressed_ids())
                overlay.draw_side(side, pipeline.side_points, pressed, pipeline.calibration.reference_plane)
                draw_text(side, pipeline.status, (12, 28))
                cv2.imshow(SIDE_WINDOW, side)

            if drag.done is not None:
                start, end = drag.done
                drag.done = None
                try:
                    pipeline.draw_region(start, end)
                    message = ""
                except (PianoError, ValueError) as e:
                    message = str(e)

            pressed = set(pipeline.press.pressed_ids())
            overlay.draw_top(top, pipeline.top_points, pressed, drag.rect())
            draw_text(top, pipeline.status, (12, 28))
            if message:
                draw_text(top, message, (12, 56), color=(0, 0, 255))
            draw_text(top, "c: calibrate | r: record | p: play | s: stop | q: quit", (12, h - 16), scale=0.5)
            cv2.imshow(TOP_WINDOW, top)

            key = cv2.waitKey(1) & 0xFF
            if key in (ord("q"), 27):
                break
            if key == ord("c"):
                pipeline.begin_calibration()
                message = ""
            elif key == ord("r"):
                try:
                    if pipeline.recorder.is_recording:
                        pipeline.stop_recording()
                    else:
                        pipeline.start_recording()
                    message = ""
                except PianoError as e:
                    message = str(e)
            elif key == ord("p"):
                try:
                    pipeline.toggle_playback()
                    message = ""
                except PianoError as e:
                    message = str(e)
            elif key == ord("s"):
                pipeline.stop()
                message = "Stopped. Calibrate again to play."
    finally:
        failure = pipeline.status if exit_code else None
        pipeline.stop()
        top_detector.close()
        if side_detector is not None:
            side_detector.close()
        top_cap.release()
        if side_cap is not None:
            side_cap.release()
        if synth is not None:
            synth.stop()
        if midi is not None:
            midi.close()
        cv2.destroyAllWindows()

    if failure is not None:
        print(failure)
    if pipeline.history.entries:
        played = " ".join(e.name for e in reversed(pipeline.history.entries))
        print(f"Last notes: {played}")
    return exit_code


if __name__ == "__main__":
    raise SystemExit(main())
