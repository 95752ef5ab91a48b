"""
Metrics Aggregator
===================

Owns every piece of mutable per-session metric state and fuses it into
composite interview scores.

Formulas (all half-up rounded, clamped to [0, 100]):

  posture_bonus   = 100 if posture is Excellent else 70
  confidence      = 0.25·eye_contact + 0.25·engagement
                  + 0.25·speech_clarity + 0.25·posture_bonus
  professionalism = 0.2·posture_bonus + 0.3·speech_clarity
                  + 0.3·emotion_score + 0.2·pace_bonus
  overall_score   = 0.35·confidence + 0.35·professionalism
                  + 0.15·engagement + 0.15·speech_clarity

Body-language snapshots only change when engagement, clarity or eye contact
moves by more than ``change_threshold`` points, so the dashboard does not
flicker on near-identical frames.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, List, Optional

from .audio import normalize_speech_pace
from .config import AggregatorConfig
from .extractors import extract_body_language
from .history import MetricHistory, ThresholdRegistry
from .models import (
    BodyLanguageMetrics,
    DashboardMetrics,
    DetectionSample,
    EmotionReading,
    Expression,
    InterviewMetrics,
    Posture,
    PreviousMetrics,
    SpeechMetrics,
    clamp_percent,
    round_half_up,
)

logger = logging.getLogger(__name__)

DEFAULT_EMOTION_SCORE = 70.0


def posture_bonus(posture: Posture) -> float:
    return 100.0 if posture == Posture.EXCELLENT else 70.0


def emotion_score(emotions: List[EmotionReading]) -> float:
    """Favor a composed neutral expression with a touch of warmth."""
    by_name = {reading.emotion: reading.confidence for reading in emotions}
    neutral = by_name.get(Expression.NEUTRAL)
    happy = by_name.get(Expression.HAPPY)
    if neutral is not None:
        return neutral * 0.8 + (happy or 0.0) * 0.2
    if happy is not None:
        return happy
    return DEFAULT_EMOTION_SCORE


def pace_bonus(pace: float, ideal_range: tuple = (120.0, 150.0)) -> float:
    low, high = ideal_range
    return 100.0 if low <= pace <= high else 70.0


def has_significant_change(
    previous: BodyLanguageMetrics,
    current: BodyLanguageMetrics,
    threshold: float = 5.0,
) -> bool:
    return (
        abs(previous.engagement - current.engagement) > threshold
        or abs(previous.clarity - current.clarity) > threshold
        or abs(previous.eye_contact - current.eye_contact) > threshold
    )


def compute_interview_metrics(
    body: BodyLanguageMetrics,
    speech: SpeechMetrics,
    emotions: List[EmotionReading],
    ideal_pace_range: tuple = (120.0, 150.0),
) -> InterviewMetrics:
    bonus = posture_bonus(body.posture)
    confidence = clamp_percent(
        body.eye_contact * 0.25
        + body.engagement * 0.25
        + speech.clarity * 0.25
        + bonus * 0.25
    )
    professionalism = clamp_percent(
        bonus * 0.2
        + speech.clarity * 0.3
        + emotion_score(emotions) * 0.3
        + pace_bonus(speech.pace, ideal_pace_range) * 0.2
    )
    overall = overall_score(confidence, professionalism, body.engagement, speech.clarity)
    return InterviewMetrics(confidence=confidence, professionalism=professionalism, overall_score=overall)


def overall_score(confidence: float, professionalism: float, engagement: float, speech_clarity: float) -> int:
    return clamp_percent(
        confidence * 0.35
        + professionalism * 0.35
        + engagement * 0.15
        + speech_clarity * 0.15
    )


class ResponseTimer:
    """Times a spoken answer from the volume envelope.

    Starts when volume rises above ``start_volume`` and stops when it falls
    below ``stop_volume``; the finished duration is scored so that 30 s maps
    to 100 and two minutes to 0.
    """

    def __init__(
        self,
        start_volume: float = 20.0,
        stop_volume: float = 10.0,
        optimal_ms: float = 30000.0,
        span_ms: float = 90000.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.start_volume = start_volume
        self.stop_volume = stop_volume
        self.optimal_ms = optimal_ms
        self.span_ms = span_ms
        self._clock = clock
        self.started_at: Optional[float] = None
        self.score = 0

    def update(self, volume: float) -> Optional[int]:
        """Feed one volume reading; returns the new score when an answer ends."""
        if volume > self.start_volume and self.started_at is None:
            self.started_at = self._clock()
        elif volume < self.stop_volume and self.started_at is not None:
            duration_ms = (self._clock() - self.started_at) * 1000.0
            self.score = clamp_percent(100.0 - (duration_ms - self.optimal_ms) / self.span_ms * 100.0)
            self.started_at = None
            logger.debug("Response finished after %.1fs, score %d", duration_ms / 1000.0, self.score)
            return self.score
        return None


class MetricsAggregator:
    """Per-session metric state: body, speech, emotions, composites, history."""

    def __init__(
        self,
        config: Optional[AggregatorConfig] = None,
        thresholds: Optional[ThresholdRegistry] = None,
        clock: Callable[[], float] = time.time,
        monotonic: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or AggregatorConfig()
        self._clock = clock
        self.body = BodyLanguageMetrics()
        self.speech = SpeechMetrics()
        self.interview = InterviewMetrics()
        self.emotions: List[EmotionReading] = []
        self.history = MetricHistory(maxlen=self.config.history_size)
        self.thresholds = thresholds or ThresholdRegistry()
        self.previous: Optional[PreviousMetrics] = None
        self.response_timer = ResponseTimer(
            start_volume=self.config.response_start_volume,
            stop_volume=self.config.response_stop_volume,
            optimal_ms=self.config.response_optimal_ms,
            span_ms=self.config.response_span_ms,
            clock=monotonic,
        )
        # Composites are only meaningful while a face is being tracked.
        self.tracking = False

    # ── Producers ────────────────────────────────────────────────

    def apply_detection(self, sample: DetectionSample) -> bool:
        """Fold one valid detection in; returns True if body metrics changed."""
        candidate = extract_body_language(sample)
        changed = has_significant_change(self.body, candidate, self.config.change_threshold)
        if changed:
            self.body = candidate
        self.emotions = sample.expressions.readings(
            self.config.emotion_confidence_threshold, sample.timestamp
        )
        self.tracking = True
        self.recompute()
        return changed

    def apply_speech(self, speech: SpeechMetrics) -> None:
        self.speech = speech
        self.response_timer.update(speech.volume)
        if self.tracking:
            self.recompute()

    def reset(self) -> None:
        """Return body, speech, emotions and composites to their defaults."""
        self.body = BodyLanguageMetrics()
        self.speech = SpeechMetrics()
        self.interview = InterviewMetrics()
        self.emotions = []
        self.tracking = False
        logger.info("Metrics reset")

    def recompute(self) -> InterviewMetrics:
        self.interview = compute_interview_metrics(
            self.body, self.speech, self.emotions, self.config.ideal_pace_range
        )
        return self.interview

    # ── Views ────────────────────────────────────────────────────

    @property
    def normalized_speech_pace(self) -> int:
        return normalize_speech_pace(self.speech.pace)

    def dashboard_metrics(self) -> DashboardMetrics:
        return DashboardMetrics(
            confidence=round_half_up(self.interview.confidence),
            professionalism=round_half_up(self.interview.professionalism),
            engagement=round_half_up(self.body.engagement),
            speech_clarity=round_half_up(self.speech.clarity),
            speech_pace=self.normalized_speech_pace,
            overall_score=round_half_up(self.interview.overall_score),
            eye_contact=round_half_up(self.body.eye_contact),
            volume=round_half_up(self.speech.volume),
            response_time=round_half_up(self.response_timer.score),
            previous=self.previous,
        )

    # ── Periodic jobs ────────────────────────────────────────────

    def record_history(self, now: Optional[float] = None) -> DashboardMetrics:
        """Append the current dashboard values to their series."""
        ts = self._clock() if now is None else now
        m = self.dashboard_metrics()
        self.history.append("Confidence", m.confidence, ts)
        self.history.append("Professionalism", m.professionalism, ts)
        self.history.append("Engagement", m.engagement, ts)
        self.history.append("Speech Clarity", m.speech_clarity, ts)
        self.history.append("Speech Pace", m.speech_pace, ts)
        self.history.append("Overall Performance", m.overall_score, ts)
        if m.eye_contact:
            self.history.append("Eye Contact", m.eye_contact, ts)
        if m.volume:
            self.history.append("Voice Volume", m.volume, ts)
        if m.response_time:
            self.history.append("Response Time", m.response_time, ts)
        return m

    def snapshot_previous(self) -> PreviousMetrics:
        m = self.dashboard_metrics()
        self.previous = PreviousMetrics(
            confidence=m.confidence,
            professionalism=m.professionalism,
            engagement=m.engagement,
            speech_clarity=m.speech_clarity,
            speech_pace=m.speech_pace,
            overall_score=m.overall_score,
        )
        return self.previous
