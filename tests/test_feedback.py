from __future__ import annotations

import asyncio
import random

from live_coach.config import FeedbackConfig
from live_coach.feedback import (
    CONFIDENCE_TIPS,
    DEFAULT_CATEGORIES,
    PROFESSIONAL_TIPS,
    WAITING_PLACEHOLDER,
    FeedbackGenerator,
    ThresholdFeedback,
    coaching_tips,
)
from live_coach.history import ThresholdRegistry
from live_coach.models import (
    BodyLanguageMetrics,
    DashboardMetrics,
    EmotionReading,
    Expression,
    InterviewMetrics,
    Movement,
    Posture,
    SpeechMetrics,
)


def uniform(value: int) -> DashboardMetrics:
    return DashboardMetrics(
        confidence=value,
        professionalism=value,
        engagement=value,
        speech_clarity=value,
        speech_pace=value,
        overall_score=value,
        eye_contact=value,
        volume=value,
        response_time=value,
    )


def test_debounce_applies_latest_metrics_once():
    updates = []

    async def scenario():
        loop = asyncio.get_running_loop()
        generator = FeedbackGenerator(
            config=FeedbackConfig(debounce_seconds=0.3),
            rng=random.Random(1),
            on_update=updates.append,
            clock=loop.time,
        )
        start = loop.time()
        generator.request_update(uniform(50), face_present=True)
        await asyncio.sleep(0.1)
        generator.request_update(uniform(95), face_present=True)
        assert generator.pending
        await asyncio.sleep(0.6)
        assert not generator.pending
        return start

    start = asyncio.run(scenario())
    assert len(updates) == 1
    assert updates[0].timestamp - start >= 0.3
    assert updates[0].lines == [
        "⭐ Excellent professional presence! Keep it up!",
        "⭐ Excellent communication skills! Keep it up!",
        "⭐ Excellent engagement & presence! Keep it up!",
    ]


def test_cancel_drops_pending_update():
    updates = []

    async def scenario():
        generator = FeedbackGenerator(config=FeedbackConfig(debounce_seconds=0.05), on_update=updates.append)
        generator.request_update(uniform(50), face_present=True)
        generator.cancel()
        await asyncio.sleep(0.15)

    asyncio.run(scenario())
    assert updates == []


def test_requests_ignored_without_face():
    generator = FeedbackGenerator()
    generator.request_update(uniform(50), face_present=False)
    assert not generator.pending


def test_suggestion_counts_follow_average():
    generator = FeedbackGenerator(rng=random.Random(3))
    low = generator.generate(uniform(50))
    assert all(len(lines) == 2 for lines in low.by_category.values())
    for category in DEFAULT_CATEGORIES:
        assert set(low.by_category[category.title]) <= set(category.suggestions)

    generator.reset()
    mid = generator.generate(uniform(80))
    assert all(len(lines) == 1 for lines in mid.by_category.values())


def test_small_moves_keep_existing_lines():
    generator = FeedbackGenerator(rng=random.Random(5))
    first = generator.generate(uniform(80))
    second = generator.generate(uniform(85))
    assert second.by_category == first.by_category

    third = generator.generate(uniform(50))
    assert all(len(lines) == 2 for lines in third.by_category.values())


def test_display_placeholders():
    generator = FeedbackGenerator()
    assert generator.display(face_present=False) == {c.title: [WAITING_PLACEHOLDER] for c in DEFAULT_CATEGORIES}
    assert generator.display(face_present=True)["Communication Skills"] == ["Analyzing communication skills..."]

    generator.generate(uniform(95))
    generator.reset()
    assert generator.display(face_present=True)["Professional Presence"] == ["Analyzing professional presence..."]


def test_threshold_feedback_keeps_two_most_recent():
    feedback = ThresholdFeedback(keep=2)
    registry = ThresholdRegistry()
    items = feedback.check(uniform(0), registry)
    assert items == [
        "📊 Your Response Time is below target. Try to improve it.",
        "📊 Your Overall Performance is below target. Try to improve it.",
    ]

    items = feedback.check(uniform(95), registry)
    assert items == [
        "📈 Your Voice Volume is above the optimal range. Consider adjusting.",
        "📈 Your Response Time is above the optimal range. Consider adjusting.",
    ]

    # nothing out of range: previous lines stay
    assert feedback.check(uniform(85), registry) == items


def test_coaching_tips_for_strong_candidate():
    body = BodyLanguageMetrics(
        posture=Posture.EXCELLENT, eye_contact=90, movement=Movement.STEADY, engagement=85, clarity=80
    )
    speech = SpeechMetrics(pace=130, volume=50, clarity=80)
    interview = InterviewMetrics(confidence=90, professionalism=90, overall_score=90)
    emotions = [EmotionReading(Expression.NEUTRAL, 90.0, 0.0)]
    tips = coaching_tips(body, speech, interview, emotions, rng=random.Random(0), limit=10)
    assert set(tips) == {
        "👍 Great job maintaining eye contact!",
        "😊 Your professional expression is perfect",
        "⭐ You're showing great engagement!",
    }


def test_coaching_tips_are_distinct_and_limited():
    rng = random.Random(2)
    weak = coaching_tips(BodyLanguageMetrics(), SpeechMetrics(), InterviewMetrics(), [], rng=rng, limit=2)
    assert len(weak) == 2
    assert len(set(weak)) == 2

    everything = coaching_tips(BodyLanguageMetrics(), SpeechMetrics(), InterviewMetrics(), [], rng=rng, limit=50)
    assert len(everything) == len(set(everything))
    assert set(PROFESSIONAL_TIPS) <= set(everything)
    assert set(CONFIDENCE_TIPS) <= set(everything)
