"""
Face-Validity Gate
===================

Decides, frame by frame, whether a usable face is in view and debounces that
decision so single-frame glitches never toggle downstream state.

State Machine:
  ABSENT  ──[consecutive_valid >= stability_count]──────────────►  PRESENT
  PRESENT ──[consecutive_invalid_or_missing >= stability_count]──►  ABSENT

Starts ABSENT. Positioning advisories ("Move back from the camera", ...)
are only raised while ABSENT, and are rate-limited per message.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Protocol, Sequence

import numpy as np

from .config import GateConfig
from .models import DetectionSample

logger = logging.getLogger(__name__)

NO_FACE_TITLE = "No Face Detected"
NO_FACE_MESSAGE = "Please ensure your face is visible and well-lit"
ADJUST_TITLE = "Adjust Position"


class FaceDetector(Protocol):
    """Anything that turns a frame into zero or more face detections."""

    def detect(self, frame: np.ndarray) -> List[DetectionSample]:
        ...


def best_detection(samples: Sequence[DetectionSample]) -> Optional[DetectionSample]:
    """Highest-confidence face, or None."""
    if not samples:
        return None
    return max(samples, key=lambda s: s.score)


# ── Validity rule ────────────────────────────────────────────────

def _offsets(sample: DetectionSample) -> tuple[float, float]:
    center = sample.box.center
    frame_center = sample.frame_size.center
    return center.x - frame_center.x, center.y - frame_center.y


def is_properly_visible(sample: DetectionSample, config: GateConfig) -> bool:
    """Centered, sensibly sized and confidently detected."""
    frame = sample.frame_size
    if frame.width <= 0 or frame.height <= 0:
        return False
    dx, dy = _offsets(sample)
    is_centered = (
        abs(dx) < frame.width * config.centering_tolerance
        and abs(dy) < frame.height * config.centering_tolerance
    )
    ratio = sample.area_ratio
    is_good_size = config.min_area_ratio < ratio < config.max_area_ratio
    is_clear = sample.score > config.confidence_threshold
    return is_centered and is_good_size and is_clear


def positioning_advice(sample: DetectionSample, config: GateConfig) -> Optional[str]:
    """Most likely framing problem, or None when size/centering look fine."""
    frame = sample.frame_size
    ratio = sample.area_ratio
    if ratio > config.max_area_ratio:
        return "Move back from the camera"
    if ratio < config.min_area_ratio:
        return "Move closer to the camera"
    dx, dy = _offsets(sample)
    # The preview is mirrored, so a face left of center must move right.
    if abs(dx) > frame.width * config.centering_tolerance:
        return "Move right" if dx < 0 else "Move left"
    if abs(dy) > frame.height * config.centering_tolerance:
        return "Move down" if dy < 0 else "Move up"
    return None


# ── Advisories ───────────────────────────────────────────────────

@dataclass(frozen=True)
class Advisory:
    title: str
    message: str


class AdvisoryLimiter:
    """Suppresses a repeated message until its cooldown elapses."""

    def __init__(self, cooldown_seconds: float) -> None:
        self.cooldown_seconds = cooldown_seconds
        self._last_sent: Dict[str, float] = {}

    def allow(self, message: str, now: float) -> bool:
        last = self._last_sent.get(message)
        if last is not None and now - last < self.cooldown_seconds:
            return False
        self._last_sent[message] = now
        return True


@dataclass(frozen=True)
class GateVerdict:
    valid: bool
    present: bool
    became_present: bool = False
    became_absent: bool = False
    advisory: Optional[Advisory] = None


class FaceGate:
    """Per-session presence state machine."""

    def __init__(
        self,
        config: Optional[GateConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or GateConfig()
        self._clock = clock
        self._limiter = AdvisoryLimiter(self.config.advisory_cooldown_seconds)
        self.consecutive_valid = 0
        self.consecutive_invalid_or_missing = 0
        self.present = False
        self.last_present_at: Optional[float] = None
        self._absence_notified = False

    def observe(self, sample: Optional[DetectionSample]) -> GateVerdict:
        now = self._clock()
        cfg = self.config

        if sample is not None and is_properly_visible(sample, cfg):
            self.consecutive_valid += 1
            self.consecutive_invalid_or_missing = 0
            became_present = False
            if not self.present and self.consecutive_valid >= cfg.stability_count:
                self.present = True
                self._absence_notified = False
                became_present = True
                logger.info("Face present after %d valid frames", self.consecutive_valid)
            if self.present:
                self.last_present_at = now
            return GateVerdict(valid=True, present=self.present, became_present=became_present)

        self.consecutive_valid = 0
        self.consecutive_invalid_or_missing += 1
        advisory: Optional[Advisory] = None

        if sample is not None and not self.present:
            message = positioning_advice(sample, cfg)
            if message and self._limiter.allow(message, now):
                advisory = Advisory(title=ADJUST_TITLE, message=message)

        became_absent = False
        if self.present and self.consecutive_invalid_or_missing >= cfg.stability_count:
            self.present = False
            became_absent = True
            logger.info("Face absent after %d invalid frames", self.consecutive_invalid_or_missing)

        if (
            sample is None
            and not self.present
            and not self._absence_notified
            and self.last_present_at is not None
            and now - self.last_present_at > cfg.absence_notice_after_seconds
        ):
            self._absence_notified = True
            advisory = Advisory(title=NO_FACE_TITLE, message=NO_FACE_MESSAGE)

        return GateVerdict(
            valid=False,
            present=self.present,
            became_absent=became_absent,
            advisory=advisory,
        )
