"""
Body-Language Metric Extractors
================================

Pure functions over a single DetectionSample. They run inside the per-frame
loop, so none of them raises: malformed landmarks (wrong shape, NaN, a chin
at y <= 0) degrade to 0 or ``UNKNOWN``.

Metrics produced
----------------
* ``posture``      – Excellent | Needs Improvement, from jawline tilt
* ``eye_contact``  – 0-100, eye level + horizontal centering
* ``movement``     – Minimal | Steady | Excessive, jawline horizontal span
* ``engagement``   – 0-100, neutral/happy/attentive expression blend
* ``confidence``   – 0-100, head straightness as a continuous score
* ``clarity``      – 0-100, expression-based composure
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from .models import (
    BodyLanguageMetrics,
    DetectionSample,
    ExpressionVector,
    FaceLandmarks68,
    FrameSize,
    Movement,
    Posture,
    clamp_percent,
)

logger = logging.getLogger(__name__)

# ── Jaw outline indices (within the 17-point jaw region) ────────────
JAW_LEFT_END = 0
JAW_CHIN = 8
JAW_RIGHT_END = 16

POSTURE_STRAIGHTNESS_MIN = 80.0   # strictly above → Excellent
MOVEMENT_EXCESSIVE_PX = 50.0
MOVEMENT_MINIMAL_PX = 10.0
EYE_LEVEL_DIVISOR = 10.0


def head_straightness(landmarks: FaceLandmarks68) -> Optional[float]:
    """100 when both jaw endpoints sit at the same height.

    Tilt is normalized by the chin's y coordinate. Returns None when the
    geometry is unusable.
    """
    if not landmarks.is_well_formed:
        return None
    jaw = landmarks.jaw_outline
    chin_y = float(jaw[JAW_CHIN][1])
    if chin_y <= 0:
        return None
    tilt = abs(float(jaw[JAW_LEFT_END][1]) - float(jaw[JAW_RIGHT_END][1]))
    value = 100.0 - (tilt / chin_y) * 100.0
    return value if math.isfinite(value) else None


def analyze_posture(landmarks: FaceLandmarks68) -> Posture:
    straightness = head_straightness(landmarks)
    if straightness is None:
        return Posture.UNKNOWN
    if straightness > POSTURE_STRAIGHTNESS_MIN:
        return Posture.EXCELLENT
    return Posture.NEEDS_IMPROVEMENT


def calculate_confidence(landmarks: FaceLandmarks68) -> int:
    straightness = head_straightness(landmarks)
    if straightness is None:
        return 0
    return clamp_percent(straightness)


def calculate_eye_contact(landmarks: FaceLandmarks68, frame_size: FrameSize) -> int:
    """Weighted blend of how level the eyes are and how centered they sit."""
    if not landmarks.is_well_formed or frame_size.width <= 0:
        return 0
    left = landmarks.left_eye.mean(axis=0)
    right = landmarks.right_eye.mean(axis=0)

    eye_level = abs(float(left[1]) - float(right[1]))
    center_alignment = abs((float(left[0]) + float(right[0])) / 2.0 - frame_size.width / 2.0)

    level_score = 100.0 - eye_level / EYE_LEVEL_DIVISOR
    alignment_score = 100.0 - (center_alignment / frame_size.width) * 100.0
    return clamp_percent(level_score * 0.5 + alignment_score * 0.5)


def analyze_movement(landmarks: FaceLandmarks68) -> Movement:
    if not landmarks.is_well_formed:
        return Movement.UNKNOWN
    jaw = landmarks.jaw_outline
    span = abs(float(jaw[JAW_CHIN][0]) - float(jaw[JAW_LEFT_END][0]))
    if span > MOVEMENT_EXCESSIVE_PX:
        return Movement.EXCESSIVE
    if span < MOVEMENT_MINIMAL_PX:
        return Movement.MINIMAL
    return Movement.STEADY


def calculate_engagement(expressions: ExpressionVector) -> int:
    attentive = 1.0 - expressions.sad - expressions.angry - expressions.fearful
    value = expressions.neutral * 0.4 + expressions.happy * 0.3 + attentive * 0.3
    return clamp_percent(value * 100.0)


def calculate_clarity(expressions: ExpressionVector) -> int:
    negative = expressions.angry + expressions.fearful + expressions.disgusted
    value = expressions.neutral * 0.6 + expressions.happy * 0.4 - negative * 0.3
    return clamp_percent(value * 100.0)


def extract_body_language(sample: DetectionSample) -> BodyLanguageMetrics:
    """Run every extractor over one sample."""
    landmarks = sample.landmarks
    if not landmarks.is_well_formed:
        logger.debug("Malformed landmarks, geometry metrics fall back to defaults")
    return BodyLanguageMetrics(
        posture=analyze_posture(landmarks),
        eye_contact=calculate_eye_contact(landmarks, sample.frame_size),
        movement=analyze_movement(landmarks),
        engagement=calculate_engagement(sample.expressions),
        confidence=calculate_confidence(landmarks),
        clarity=calculate_clarity(sample.expressions),
    )
