"""
Feedback Generator
===================

Turns dashboard metrics into short coaching lines without flicker.

Three independent sources:

1. **Category feedback** (``FeedbackGenerator``) – per category, average the
   mapped metrics and pick suggestions from a fixed pool. Updates are
   debounced (trailing edge, 3 s) and a category only changes when its
   average moved by more than 10 points since it last changed.
2. **Threshold feedback** (``ThresholdFeedback``) – generic below/above
   target lines from the user's thresholds; keeps the two most recent.
3. **Coaching tips** (``coaching_tips``) – a rule catalogue over raw body,
   speech and interview metrics, shuffled and de-duplicated.

Nothing is generated while no face is present; ``display()`` shows a
placeholder instead.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

from .config import FeedbackConfig
from .history import ThresholdRegistry, ThresholdStatus
from .models import (
    METRIC_KEYS,
    BodyLanguageMetrics,
    DashboardMetrics,
    EmotionReading,
    Expression,
    InterviewMetrics,
    Movement,
    Posture,
    SpeechMetrics,
)
from .scheduling import DeferredTask

logger = logging.getLogger(__name__)

WAITING_PLACEHOLDER = "Waiting for face detection..."


@dataclass(frozen=True)
class FeedbackCategory:
    title: str
    metrics: Sequence[str]          # DashboardMetrics field names
    suggestions: Sequence[str]

    def average(self, metrics: DashboardMetrics) -> float:
        if not self.metrics:
            return 0.0
        return sum(metrics.get(name) for name in self.metrics) / len(self.metrics)


DEFAULT_CATEGORIES = (
    FeedbackCategory(
        title="Professional Presence",
        metrics=("professionalism", "confidence"),
        suggestions=(
            "👔 Maintain professional posture and attire",
            "💼 Use industry-appropriate terminology",
            "🎯 Keep responses focused and structured",
            "✨ Project confidence through body language",
        ),
    ),
    FeedbackCategory(
        title="Communication Skills",
        metrics=("speech_clarity", "speech_pace", "volume"),
        suggestions=(
            "🗣️ Speak clearly and at a moderate pace",
            "🎤 Maintain consistent volume",
            "⏸️ Use appropriate pauses for emphasis",
            "📢 Articulate key points carefully",
        ),
    ),
    FeedbackCategory(
        title="Engagement & Presence",
        metrics=("engagement", "eye_contact"),
        suggestions=(
            "👀 Maintain steady eye contact",
            "🤝 Show active listening",
            "💫 Use appropriate facial expressions",
            "✋ Incorporate natural gestures",
        ),
    ),
)


@dataclass(frozen=True)
class FeedbackUpdate:
    timestamp: float
    by_category: Dict[str, List[str]]

    @property
    def lines(self) -> List[str]:
        return [line for lines in self.by_category.values() for line in lines]


class FeedbackGenerator:
    """Debounced, per-category coaching lines.

    Usage:
        generator = FeedbackGenerator(on_update=print)
        generator.request_update(aggregator.dashboard_metrics(), face_present=True)
        # ... 3 s of quiet later, on_update receives a FeedbackUpdate
    """

    def __init__(
        self,
        categories: Sequence[FeedbackCategory] = DEFAULT_CATEGORIES,
        config: Optional[FeedbackConfig] = None,
        rng: Optional[random.Random] = None,
        on_update: Optional[Callable[[FeedbackUpdate], None]] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.categories = tuple(categories)
        self.config = config or FeedbackConfig()
        self.rng = rng or random.Random()
        self.on_update = on_update
        self._clock = clock
        self._task = DeferredTask(self._apply_pending, self.config.debounce_seconds)
        self._pending: Optional[DashboardMetrics] = None
        self._applied_average: Dict[str, float] = {}
        self.current: Dict[str, List[str]] = {c.title: [] for c in self.categories}
        self.last_update: Optional[FeedbackUpdate] = None

    @property
    def pending(self) -> bool:
        return self._task.pending

    def request_update(self, metrics: DashboardMetrics, face_present: bool) -> None:
        """Restart the debounce window with the latest metrics."""
        if not face_present:
            return
        self._pending = metrics
        self._task.schedule()

    def cancel(self) -> None:
        self._task.cancel()
        self._pending = None

    def _select(self, category: FeedbackCategory, average: float) -> List[str]:
        cfg = self.config
        if average > cfg.high_score:
            return [f"⭐ Excellent {category.title.lower()}! Keep it up!"]
        count = 2 if average < cfg.low_score else 1
        return self.rng.sample(list(category.suggestions), min(count, len(category.suggestions)))

    def generate(self, metrics: DashboardMetrics) -> FeedbackUpdate:
        """Apply one update immediately; categories that barely moved keep their lines."""
        by_category: Dict[str, List[str]] = {}
        for category in self.categories:
            average = category.average(metrics)
            last = self._applied_average.get(category.title)
            if last is None or abs(average - last) > self.config.change_threshold:
                self.current[category.title] = self._select(category, average)
                self._applied_average[category.title] = average
            by_category[category.title] = list(self.current[category.title])

        update = FeedbackUpdate(timestamp=self._clock(), by_category=by_category)
        self.last_update = update
        return update

    def _apply_pending(self) -> None:
        metrics, self._pending = self._pending, None
        if metrics is None:
            return
        update = self.generate(metrics)
        logger.debug("Feedback updated: %s", update.lines)
        if self.on_update is not None:
            self.on_update(update)

    def display(self, face_present: bool) -> Dict[str, List[str]]:
        """Lines to show per category, with placeholders."""
        if not face_present:
            return {c.title: [WAITING_PLACEHOLDER] for c in self.categories}
        return {
            c.title: list(self.current[c.title]) or [f"Analyzing {c.title.lower()}..."]
            for c in self.categories
        }

    def reset(self) -> None:
        self.cancel()
        self._applied_average.clear()
        self.current = {c.title: [] for c in self.categories}


# ── Threshold crossings ──────────────────────────────────────────

class ThresholdFeedback:
    """Generic below/above-target lines; keeps only the most recent few."""

    def __init__(self, keep: int = 2) -> None:
        self.keep = keep
        self.items: List[str] = []

    def check(self, metrics: DashboardMetrics, thresholds: ThresholdRegistry) -> List[str]:
        new_items: List[str] = []
        for metric, _ in thresholds.items():
            key = METRIC_KEYS.get(metric)
            if key is None:
                continue
            status = thresholds.classify(metric, metrics.get(key))
            if status == ThresholdStatus.BELOW:
                new_items.append(f"📊 Your {metric} is below target. Try to improve it.")
            elif status == ThresholdStatus.ABOVE:
                new_items.append(f"📈 Your {metric} is above the optimal range. Consider adjusting.")
        if new_items:
            self.items = (self.items + new_items)[-self.keep:]
        return list(self.items)


# ── Rule-based coaching tips ─────────────────────────────────────

PROFESSIONAL_TIPS = (
    "👔 Maintain a professional yet friendly demeanor",
    "🎯 Listen carefully and respond thoughtfully",
    "💡 Use professional language and clear examples",
)

CONFIDENCE_TIPS = (
    "💪 Remember to breathe and stay calm",
    "⭐ Speak with conviction about your experiences",
    "✨ Use confident body language",
)


def _expression_tip(reading: EmotionReading) -> Optional[str]:
    emotion = reading.emotion
    if emotion == Expression.NEUTRAL:
        if reading.confidence > 70:
            return "😊 Your professional expression is perfect"
        return "🎯 Try to keep a relaxed, natural expression"
    if emotion == Expression.HAPPY:
        return "✨ Your friendly smile creates a positive impression" if reading.confidence > 50 else None
    if emotion == Expression.SAD:
        return "💡 Try to appear more enthusiastic"
    if emotion == Expression.ANGRY:
        return "💭 Take a deep breath and relax your expression"
    if emotion == Expression.SURPRISED:
        return "🎯 Keep a more neutral expression"
    return None


def coaching_tips(
    body: BodyLanguageMetrics,
    speech: SpeechMetrics,
    interview: InterviewMetrics,
    emotions: Sequence[EmotionReading],
    rng: Optional[random.Random] = None,
    limit: int = 2,
) -> List[str]:
    """Up to ``limit`` distinct tips, randomly chosen from every rule that fires."""
    tips: List[str] = []

    if body.eye_contact < 50:
        tips.append("👀 Look at the camera more often to seem more confident")
    elif body.eye_contact >= 80:
        tips.append("👍 Great job maintaining eye contact!")

    if emotions:
        tip = _expression_tip(emotions[0])
        if tip:
            tips.append(tip)

    if body.engagement < 50:
        tips.append("💪 Show more interest by nodding occasionally")
    elif body.engagement >= 80:
        tips.append("⭐ You're showing great engagement!")

    if body.posture != Posture.EXCELLENT:
        tips.append("🪑 Sit up straight and face the camera directly")

    if speech.volume < 30:
        tips.append("🔊 Speak a bit louder to be heard clearly")
    elif speech.volume > 80:
        tips.append("🎤 Lower your voice slightly")

    if speech.pace < 100:
        tips.append("🗣️ Try speaking a bit faster to maintain interest")
    elif speech.pace > 160:
        tips.append("⏸️ Slow down a little for better clarity")

    if speech.clarity < 60:
        tips.append("🎯 Speak more clearly and avoid mumbling")

    if body.movement == Movement.EXCESSIVE:
        tips.append("✋ Try to minimize excessive movement")
    elif body.movement == Movement.MINIMAL:
        tips.append("👋 Use some hand gestures while speaking")

    if interview.professionalism < 70:
        tips.extend(PROFESSIONAL_TIPS)
    if interview.confidence < 70:
        tips.extend(CONFIDENCE_TIPS)

    unique = list(dict.fromkeys(tips))
    (rng or random).shuffle(unique)
    return unique[:limit]
