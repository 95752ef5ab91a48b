"""
Live Coach Models
==================
Fixed-field records shared by the detector, extractors, aggregator and
feedback generator. Detector output is ephemeral; metric snapshots are
immutable so "no change" is observable as plain equality.
"""

from __future__ import annotations

import math
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

import numpy as np


# ── Numeric helpers ───────────────────────────────────────────────

def round_half_up(value: float) -> int:
    """Round .5 away from zero on the positive side (browser rounding)."""
    return int(math.floor(value + 0.5))


def clamp(value: float, low: float = 0.0, high: float = 100.0) -> float:
    return max(low, min(high, value))


def clamp_percent(value: float) -> int:
    """Half-up round and clamp to [0, 100]; non-finite input becomes 0."""
    if not math.isfinite(value):
        return 0
    return int(clamp(round_half_up(value)))


# ── Geometry ──────────────────────────────────────────────────────

@dataclass(frozen=True)
class Point:
    x: float
    y: float


@dataclass(frozen=True)
class FrameSize:
    width: int = 640
    height: int = 480

    @property
    def area(self) -> float:
        return float(self.width * self.height)

    @property
    def center(self) -> Point:
        return Point(self.width / 2.0, self.height / 2.0)


@dataclass(frozen=True)
class BoundingBox:
    x: float
    y: float
    width: float
    height: float

    @property
    def center(self) -> Point:
        return Point(self.x + self.width / 2.0, self.y + self.height / 2.0)

    @property
    def area(self) -> float:
        return self.width * self.height


class LandmarkRegion(str, Enum):
    """Named clusters of the 68-point face layout (index ranges, end exclusive)."""

    JAW_OUTLINE = "jaw_outline"
    RIGHT_EYEBROW = "right_eyebrow"
    LEFT_EYEBROW = "left_eyebrow"
    NOSE_BRIDGE = "nose_bridge"
    NOSE_TIP = "nose_tip"
    LEFT_EYE = "left_eye"
    RIGHT_EYE = "right_eye"
    OUTER_LIPS = "outer_lips"
    INNER_LIPS = "inner_lips"


REGION_SLICES: Dict[LandmarkRegion, Tuple[int, int]] = {
    LandmarkRegion.JAW_OUTLINE: (0, 17),
    LandmarkRegion.RIGHT_EYEBROW: (17, 22),
    LandmarkRegion.LEFT_EYEBROW: (22, 27),
    LandmarkRegion.NOSE_BRIDGE: (27, 31),
    LandmarkRegion.NOSE_TIP: (31, 36),
    LandmarkRegion.LEFT_EYE: (36, 42),
    LandmarkRegion.RIGHT_EYE: (42, 48),
    LandmarkRegion.OUTER_LIPS: (48, 60),
    LandmarkRegion.INNER_LIPS: (60, 68),
}

LANDMARK_COUNT = 68


@dataclass
class FaceLandmarks68:
    """68 (x, y) landmark points in pixel coordinates."""

    points: np.ndarray  # shape: (68, 2)

    def __post_init__(self) -> None:
        try:
            self.points = np.asarray(self.points, dtype=np.float64)
        except (ValueError, TypeError):
            pass  # ragged input stays as-is and reports not well formed

    def region(self, region: LandmarkRegion) -> np.ndarray:
        start, end = REGION_SLICES[region]
        return self.points[start:end]

    @property
    def jaw_outline(self) -> np.ndarray:
        return self.region(LandmarkRegion.JAW_OUTLINE)

    @property
    def left_eye(self) -> np.ndarray:
        return self.region(LandmarkRegion.LEFT_EYE)

    @property
    def right_eye(self) -> np.ndarray:
        return self.region(LandmarkRegion.RIGHT_EYE)

    @property
    def is_well_formed(self) -> bool:
        pts = self.points
        return (
            isinstance(pts, np.ndarray)
            and pts.ndim == 2
            and pts.shape == (LANDMARK_COUNT, 2)
            and bool(np.all(np.isfinite(pts)))
        )


# ── Expressions ───────────────────────────────────────────────────

class Expression(str, Enum):
    NEUTRAL = "neutral"
    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    FEARFUL = "fearful"
    DISGUSTED = "disgusted"
    SURPRISED = "surprised"


@dataclass(frozen=True)
class ExpressionVector:
    """Per-expression probabilities, each in [0, 1]."""

    neutral: float = 0.0
    happy: float = 0.0
    sad: float = 0.0
    angry: float = 0.0
    fearful: float = 0.0
    disgusted: float = 0.0
    surprised: float = 0.0

    @classmethod
    def from_mapping(cls, values: Mapping[str, float]) -> "ExpressionVector":
        kwargs = {}
        for expr in Expression:
            raw = float(values.get(expr.value, 0.0) or 0.0)
            kwargs[expr.value] = clamp(raw, 0.0, 1.0) if math.isfinite(raw) else 0.0
        return cls(**kwargs)

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)

    def dominant(self) -> Expression:
        scores = self.as_dict()
        return Expression(max(scores, key=scores.get))

    def readings(self, min_probability: float, timestamp: float) -> List["EmotionReading"]:
        """Expressions at or above ``min_probability``, strongest first."""
        out = [
            EmotionReading(emotion=Expression(name), confidence=prob * 100.0, timestamp=timestamp)
            for name, prob in self.as_dict().items()
            if prob >= min_probability
        ]
        out.sort(key=lambda r: r.confidence, reverse=True)
        return out


@dataclass(frozen=True)
class EmotionReading:
    emotion: Expression
    confidence: float          # 0–100
    timestamp: float


# ── Detector output ───────────────────────────────────────────────

@dataclass
class DetectionSample:
    """One face detection for one frame. Never persisted."""

    box: BoundingBox
    score: float
    landmarks: FaceLandmarks68
    expressions: ExpressionVector
    frame_size: FrameSize = field(default_factory=FrameSize)
    timestamp: float = field(default_factory=time.time)

    @property
    def area_ratio(self) -> float:
        if self.frame_size.area <= 0:
            return 0.0
        return self.box.area / self.frame_size.area


# ── Metric snapshots ──────────────────────────────────────────────

class Posture(str, Enum):
    EXCELLENT = "Excellent"
    NEEDS_IMPROVEMENT = "Needs Improvement"
    UNKNOWN = "Unknown"


class Movement(str, Enum):
    MINIMAL = "Minimal"
    STEADY = "Steady"
    EXCESSIVE = "Excessive"
    UNKNOWN = "Unknown"


@dataclass(frozen=True)
class BodyLanguageMetrics:
    posture: Posture = Posture.UNKNOWN
    eye_contact: int = 0
    movement: Movement = Movement.UNKNOWN
    engagement: int = 0
    confidence: int = 0
    clarity: int = 0

    def to_dict(self) -> Dict:
        return {
            "posture": self.posture.value,
            "eye_contact": self.eye_contact,
            "movement": self.movement.value,
            "engagement": self.engagement,
            "confidence": self.confidence,
            "clarity": self.clarity,
        }


@dataclass(frozen=True)
class SpeechMetrics:
    pace: int = 0      # words per minute estimate; 60–200 once measured
    volume: int = 0
    clarity: int = 0

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class InterviewMetrics:
    confidence: int = 0
    professionalism: int = 0
    overall_score: int = 0

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass(frozen=True)
class MetricPoint:
    timestamp: float
    value: float


@dataclass
class MetricThresholds:
    min: float
    max: float
    optimal: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class PreviousMetrics:
    """Reduced bundle snapshotted on a slow cadence for trend deltas."""

    confidence: int = 0
    professionalism: int = 0
    engagement: int = 0
    speech_clarity: int = 0
    speech_pace: int = 0
    overall_score: int = 0


@dataclass(frozen=True)
class DashboardMetrics:
    """Rounded, read-only values handed to presentation."""

    confidence: int = 0
    professionalism: int = 0
    engagement: int = 0
    speech_clarity: int = 0
    speech_pace: int = 0
    overall_score: int = 0
    eye_contact: int = 0
    volume: int = 0
    response_time: int = 0
    previous: Optional[PreviousMetrics] = None

    def get(self, key: str) -> int:
        return int(getattr(self, key))

    def as_dict(self) -> Dict[str, int]:
        return {key: self.get(key) for key in DASHBOARD_KEYS}


DASHBOARD_KEYS: Tuple[str, ...] = (
    "confidence",
    "professionalism",
    "engagement",
    "speech_clarity",
    "speech_pace",
    "eye_contact",
    "volume",
    "response_time",
    "overall_score",
)

# Display name → DashboardMetrics field
METRIC_KEYS: Dict[str, str] = {
    "Confidence": "confidence",
    "Professionalism": "professionalism",
    "Engagement": "engagement",
    "Speech Clarity": "speech_clarity",
    "Speech Pace": "speech_pace",
    "Eye Contact": "eye_contact",
    "Voice Volume": "volume",
    "Response Time": "response_time",
    "Overall Performance": "overall_score",
}
