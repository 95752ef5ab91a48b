"""
Live Coach Configuration
=========================
Centralized configuration with environment variable overrides.
All magic numbers, thresholds, and cadences live here.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


# ── Face-validity gate ────────────────────────────────────────────

@dataclass(frozen=True)
class GateConfig:
    """Tuning knobs for deciding whether a usable face is in frame."""

    confidence_threshold: float = 0.5     # detector score must exceed this
    min_area_ratio: float = 0.05          # face box / frame area, exclusive
    max_area_ratio: float = 0.8
    centering_tolerance: float = 0.3      # fraction of frame dimension from center
    stability_count: int = 2              # consecutive frames before toggling presence

    # Advisory notifications
    advisory_cooldown_seconds: float = 2.0
    absence_notice_after_seconds: float = 0.5


# ── Audio analysis ────────────────────────────────────────────────

@dataclass(frozen=True)
class AudioConfig:
    fft_size: int = 2048
    sample_rate: int = 44100
    smoothing_time_constant: float = 0.8
    min_decibels: float = -100.0
    max_decibels: float = -30.0
    speech_bin_range: Tuple[int, int] = (10, 400)   # ~100-4000 Hz
    base_wpm: float = 130.0
    min_wpm: float = 60.0
    max_wpm: float = 200.0


# ── Aggregation ───────────────────────────────────────────────────

@dataclass(frozen=True)
class AggregatorConfig:
    history_size: int = 30                # points kept per series
    change_threshold: float = 5.0         # body-language hysteresis, absolute points
    emotion_confidence_threshold: float = 0.2
    ideal_pace_range: Tuple[float, float] = (120.0, 150.0)

    # Response timing (speech volume driven)
    response_start_volume: float = 20.0
    response_stop_volume: float = 10.0
    response_optimal_ms: float = 30000.0
    response_span_ms: float = 90000.0


# ── Feedback ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class FeedbackConfig:
    debounce_seconds: float = 3.0
    change_threshold: float = 10.0        # category average must move more than this
    low_score: float = 70.0               # below → two suggestions
    high_score: float = 90.0              # above → congratulate
    threshold_feedback_keep: int = 2


# ── Session (cadences + devices) ──────────────────────────────────

@dataclass(frozen=True)
class SessionConfig:
    camera_index: int = 0
    frame_width: int = 640
    frame_height: int = 480
    analysis_interval: float = 1.0        # pause between video analysis passes
    audio_tick_seconds: float = 1.0 / 60.0
    history_interval: float = 10.0
    previous_snapshot_interval: float = 5.0
    detector_input_size: int = 320

    gate: GateConfig = field(default_factory=GateConfig)
    audio: AudioConfig = field(default_factory=AudioConfig)
    aggregator: AggregatorConfig = field(default_factory=AggregatorConfig)
    feedback: FeedbackConfig = field(default_factory=FeedbackConfig)


def load_config() -> SessionConfig:
    """Load config with environment variable overrides."""
    sections: Dict[str, Dict[str, Any]] = {
        "session": {},
        "gate": {},
        "audio": {},
        "aggregator": {},
        "feedback": {},
    }
    env_map = {
        "LIVE_COACH_CAMERA_INDEX": ("session", "camera_index", int),
        "LIVE_COACH_ANALYSIS_INTERVAL": ("session", "analysis_interval", float),
        "LIVE_COACH_HISTORY_INTERVAL": ("session", "history_interval", float),
        "LIVE_COACH_SNAPSHOT_INTERVAL": ("session", "previous_snapshot_interval", float),
        "LIVE_COACH_DETECTOR_INPUT_SIZE": ("session", "detector_input_size", int),
        "LIVE_COACH_CONFIDENCE_THRESHOLD": ("gate", "confidence_threshold", float),
        "LIVE_COACH_MIN_FACE_RATIO": ("gate", "min_area_ratio", float),
        "LIVE_COACH_MAX_FACE_RATIO": ("gate", "max_area_ratio", float),
        "LIVE_COACH_CENTERING_TOLERANCE": ("gate", "centering_tolerance", float),
        "LIVE_COACH_STABILITY_COUNT": ("gate", "stability_count", int),
        "LIVE_COACH_SAMPLE_RATE": ("audio", "sample_rate", int),
        "LIVE_COACH_HISTORY_SIZE": ("aggregator", "history_size", int),
        "LIVE_COACH_FEEDBACK_DEBOUNCE": ("feedback", "debounce_seconds", float),
    }
    for env_key, (section, field_name, cast_fn) in env_map.items():
        val = os.getenv(env_key)
        if val is not None:
            try:
                sections[section][field_name] = cast_fn(val)
            except (ValueError, TypeError):
                pass
    return SessionConfig(
        gate=GateConfig(**sections["gate"]),
        audio=AudioConfig(**sections["audio"]),
        aggregator=AggregatorConfig(**sections["aggregator"]),
        feedback=FeedbackConfig(**sections["feedback"]),
        **sections["session"],
    )
