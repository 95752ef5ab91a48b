from __future__ import annotations

import pytest

from conftest import FakeClock, make_landmarks, make_sample
from live_coach.aggregator import (
    MetricsAggregator,
    ResponseTimer,
    compute_interview_metrics,
    emotion_score,
    has_significant_change,
    overall_score,
    pace_bonus,
    posture_bonus,
)
from live_coach.models import (
    BodyLanguageMetrics,
    EmotionReading,
    Expression,
    ExpressionVector,
    InterviewMetrics,
    Movement,
    Posture,
    SpeechMetrics,
)


def reading(emotion: Expression, confidence: float) -> EmotionReading:
    return EmotionReading(emotion=emotion, confidence=confidence, timestamp=0.0)


def test_overall_score_formula():
    assert overall_score(80, 90, 70, 60) == 79


def test_posture_and_pace_bonuses():
    assert posture_bonus(Posture.EXCELLENT) == 100
    assert posture_bonus(Posture.NEEDS_IMPROVEMENT) == 70
    assert posture_bonus(Posture.UNKNOWN) == 70
    assert pace_bonus(120) == 100
    assert pace_bonus(150) == 100
    assert pace_bonus(151) == 70


def test_emotion_score_rules():
    assert emotion_score([]) == 70
    assert emotion_score([reading(Expression.HAPPY, 60)]) == pytest.approx(60)
    assert emotion_score([reading(Expression.NEUTRAL, 90)]) == pytest.approx(72)
    both = [reading(Expression.NEUTRAL, 50), reading(Expression.HAPPY, 40)]
    assert emotion_score(both) == pytest.approx(48)


def test_compute_interview_metrics():
    body = BodyLanguageMetrics(posture=Posture.EXCELLENT, eye_contact=100, engagement=69, clarity=58)
    speech = SpeechMetrics(pace=130, volume=40, clarity=80)
    metrics = compute_interview_metrics(body, speech, [reading(Expression.NEUTRAL, 90)])
    # 25 + 17.25 + 20 + 25
    assert metrics.confidence == 87
    # 20 + 24 + 21.6 + 20
    assert metrics.professionalism == 86
    # 30.45 + 30.1 + 10.35 + 12
    assert metrics.overall_score == 83


def test_composites_never_exceed_100():
    body = BodyLanguageMetrics(posture=Posture.EXCELLENT, eye_contact=100, engagement=100, clarity=100)
    speech = SpeechMetrics(pace=130, volume=100, clarity=100)
    emotions = [reading(Expression.NEUTRAL, 100), reading(Expression.HAPPY, 100)]
    metrics = compute_interview_metrics(body, speech, emotions)
    assert metrics == InterviewMetrics(confidence=100, professionalism=100, overall_score=100)

    neutral_only = compute_interview_metrics(body, speech, [reading(Expression.NEUTRAL, 100)])
    # emotion score 80 -> 20 + 30 + 24 + 20
    assert neutral_only.professionalism == 94


def test_first_detection_updates_body_and_composites():
    agg = MetricsAggregator()
    assert agg.apply_detection(make_sample())
    assert agg.body.posture == Posture.EXCELLENT
    assert agg.body.eye_contact == 100
    assert [r.emotion for r in agg.emotions] == [Expression.NEUTRAL]
    assert agg.interview.confidence == 67
    assert agg.interview.professionalism == 56
    assert agg.interview.overall_score == 53


def test_near_identical_detections_hold_body_metrics():
    agg = MetricsAggregator()
    agg.apply_detection(make_sample())
    held = agg.body

    wobble = make_sample(
        landmarks=make_landmarks(tilt=100.0, left_eye=(280.0, 190.0), right_eye=(360.0, 210.0)),
        expressions=ExpressionVector(neutral=0.88, happy=0.12),
    )
    assert not agg.apply_detection(wobble)
    assert agg.body is held
    assert agg.body.posture == Posture.EXCELLENT


def test_significant_change_threshold_is_exclusive():
    base = BodyLanguageMetrics(eye_contact=50, engagement=50, clarity=50)
    assert not has_significant_change(base, BodyLanguageMetrics(eye_contact=55, engagement=45, clarity=50))
    assert has_significant_change(base, BodyLanguageMetrics(eye_contact=56, engagement=50, clarity=50))


def test_reset_restores_defaults():
    agg = MetricsAggregator()
    agg.apply_detection(make_sample())
    agg.apply_speech(SpeechMetrics(pace=130, volume=50, clarity=70))
    agg.reset()
    assert agg.body == BodyLanguageMetrics()
    assert agg.body.posture == Posture.UNKNOWN
    assert agg.body.movement == Movement.UNKNOWN
    assert agg.speech == SpeechMetrics()
    assert agg.interview == InterviewMetrics()
    assert agg.emotions == []


def test_speech_without_face_leaves_composites_at_zero():
    agg = MetricsAggregator()
    agg.apply_speech(SpeechMetrics(pace=130, volume=50, clarity=70))
    assert agg.speech.clarity == 70
    assert agg.interview == InterviewMetrics()


def test_speech_while_tracking_recomputes():
    agg = MetricsAggregator()
    agg.apply_detection(make_sample())
    before = agg.interview
    agg.apply_speech(SpeechMetrics(pace=130, volume=50, clarity=80))
    assert agg.interview.confidence > before.confidence


def test_response_timer_scores_answer_length():
    clock = FakeClock(0.0)
    timer = ResponseTimer(clock=clock)
    assert timer.update(30) is None
    clock.advance(30.0)
    assert timer.update(5) == 100

    timer.update(30)
    clock.advance(75.0)
    assert timer.update(15) is None  # between thresholds: still answering
    assert timer.update(5) == 50

    timer.update(30)
    clock.advance(300.0)
    assert timer.update(0) == 0


def test_record_history_skips_zero_optional_series():
    agg = MetricsAggregator()
    agg.record_history(now=1.0)
    assert len(agg.history.series("Confidence")) == 1
    assert len(agg.history.series("Overall Performance")) == 1
    assert len(agg.history.series("Eye Contact")) == 0
    assert len(agg.history.series("Voice Volume")) == 0
    assert len(agg.history.series("Response Time")) == 0

    agg.apply_detection(make_sample())
    agg.record_history(now=2.0)
    assert agg.history.series("Eye Contact").values() == [100.0]
    assert agg.history.series("Confidence").latest.timestamp == 2.0


def test_dashboard_metrics_and_previous_snapshot():
    agg = MetricsAggregator()
    agg.apply_detection(make_sample())
    agg.apply_speech(SpeechMetrics(pace=80, volume=40, clarity=60))
    dashboard = agg.dashboard_metrics()
    assert dashboard.speech_pace == 80
    assert dashboard.volume == 40
    assert dashboard.previous is None

    snapshot = agg.snapshot_previous()
    assert snapshot.overall_score == dashboard.overall_score
    assert agg.dashboard_metrics().previous == snapshot


def test_history_bounded_through_aggregator():
    agg = MetricsAggregator()
    for i in range(40):
        agg.record_history(now=float(i))
    series = agg.history.series("Confidence")
    assert len(series) == 30
    assert series.points()[0].timestamp == 10.0
