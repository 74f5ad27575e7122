from __future__ import annotations

import dataclasses
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Union

from .region import KeyLayout, key_to_note


# --- Press detection tuning (favor fewer false positives over latency) ---
PRESS_THRESHOLD = 0.03  # normalized-depth tolerance band around the desk
COOLDOWN_MS = 200.0
STALE_WINDOW_MS = 150.0

# --- Keyboard ---
KEY_COUNT = 12
OCTAVE_BASE = 60  # C4
LAYOUTS = ("chromatic", "white")

# --- Timing ---
CALIBRATION_MS = 4000.0
PLAYBACK_TAIL_MS = 500.0
FLASH_MS = 150.0
ARM_BLEND_MS = 300.0

# --- Velocity ---
VELOCITY = 100
MIN_VELOCITY = 40
MAX_VELOCITY = 127
VELOCITY_FULL_SCALE = 0.08

HISTORY_SIZE = 50


@dataclass(frozen=True)
class PipelineConfig:
    """User-tunable options of the gesture-to-note pipeline."""

    press_threshold: float = PRESS_THRESHOLD
    cooldown_ms: float = COOLDOWN_MS
    stale_window_ms: float = STALE_WINDOW_MS
    key_count: int = KEY_COUNT
    octave_base: int = OCTAVE_BASE
    layout: str = "chromatic"
    calibration_ms: float = CALIBRATION_MS
    playback_tail_ms: float = PLAYBACK_TAIL_MS
    flash_ms: float = FLASH_MS
    history_size: int = HISTORY_SIZE
    region_margin: float = 0.0
    enforce_order: bool = True
    velocity: int = VELOCITY
    min_velocity: int = MIN_VELOCITY
    max_velocity: int = MAX_VELOCITY
    velocity_full_scale: float = VELOCITY_FULL_SCALE
    arm_blend_ms: float = ARM_BLEND_MS
    mirror_top: bool = True

    def __post_init__(self) -> None:
        self.validate()

    def validate(self) -> None:
        if self.press_threshold < 0:
            raise ValueError(f"press_threshold must be >= 0, got {self.press_threshold}")
        for name in ("cooldown_ms", "stale_window_ms", "calibration_ms", "playback_tail_ms", "flash_ms", "arm_blend_ms"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must be >= 0, got {getattr(self, name)}")
        if self.key_count < 1:
            raise ValueError(f"key_count must be >= 1, got {self.key_count}")
        if not (0 <= self.octave_base <= 127):
            raise ValueError(f"octave_base must be 0-127, got {self.octave_base}")
        if self.layout not in LAYOUTS:
            raise ValueError(f"Unknown layout '{self.layout}'. Available: {list(LAYOUTS)}")
        top = key_to_note(self.key_count - 1, self.octave_base, KeyLayout(self.layout))
        if top > 127:
            raise ValueError(
                f"key_count {self.key_count} from octave_base {self.octave_base} reaches MIDI note {top}; "
                f"the highest key must be <= 127"
            )
        if self.history_size < 1:
            raise ValueError(f"history_size must be >= 1, got {self.history_size}")
        if self.region_margin < 0:
            raise ValueError(f"region_margin must be >= 0, got {self.region_margin}")
        for name in ("velocity", "min_velocity", "max_velocity"):
            v = getattr(self, name)
            if not (1 <= v <= 127):
                raise ValueError(f"{name} must be 1-127, got {v}")
        if self.min_velocity > self.max_velocity:
            raise ValueError("min_velocity must not exceed max_velocity")
        if self.velocity_full_scale <= 0:
            raise ValueError(f"velocity_full_scale must be > 0, got {self.velocity_full_scale}")

    def replace(self, **overrides: Any) -> "PipelineConfig":
        return dataclasses.replace(self, **overrides)

    def to_dict(self) -> Dict[str, Any]:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PipelineConfig":
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config keys: {unknown}")
        return cls(**data)


def load_config(path: Union[str, Path]) -> PipelineConfig:
    """Load a `PipelineConfig` from a JSON file; missing keys keep their defaults."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    with open(config_path, "r") as f:
        return PipelineConfig.from_dict(json.load(f))


def save_config(path: Union[str, Path], config: PipelineConfig) -> None:
    config_path = Path(path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
