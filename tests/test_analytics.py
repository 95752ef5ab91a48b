from __future__ import annotations

import csv
import io
import json

import pytest
from pydantic import ValidationError

from live_coach.analytics import (
    RADAR_AXES,
    SessionSummary,
    calculate_trend,
    export_history_csv,
    history_csv_text,
    insights,
    radar_data,
    summary_json,
    trend_table,
)
from live_coach.history import MetricHistory
from live_coach.models import DashboardMetrics


def test_calculate_trend():
    assert calculate_trend(110, 100) == 10
    assert calculate_trend(90, 100) == -10
    assert calculate_trend(100, 0) is None
    assert calculate_trend(100, None) is None
    assert calculate_trend(110, 100, active=False) is None


def test_insights_against_benchmark():
    current = DashboardMetrics(
        confidence=90,
        professionalism=70,
        engagement=60,
        speech_clarity=80,
        speech_pace=100,
        overall_score=90,
        eye_contact=60,
        volume=50,
        response_time=0,
    )
    overall, top, focus = insights(current)
    assert overall.change == 5
    assert overall.description == "Performing above benchmark"
    assert (top.metric, top.value) == ("speech_pace", 100)
    assert top.description == "Excellent speech_pace performance"
    assert (focus.metric, focus.value) == ("response_time", 0)
    assert focus.description == "Consider improving response_time"


def test_insight_ties_pick_first_metric():
    overall, top, focus = insights(DashboardMetrics(**{k: 50 for k in ("confidence", "engagement", "volume")}))
    assert overall.description == "Room for improvement"
    assert top.metric == "confidence"
    assert focus.metric == "professionalism"


def test_radar_has_six_axes():
    points = radar_data(DashboardMetrics(confidence=70))
    assert [p.metric for p in points] == [label for label, _ in RADAR_AXES]
    assert len(points) == 6
    assert (points[0].current, points[0].benchmark) == (70, 85)


def test_trend_table_sorted_by_movement():
    history = MetricHistory(names=["Confidence", "Engagement"])
    history.append("Confidence", 50, 1.0)
    history.append("Confidence", 55, 2.0)
    history.append("Engagement", 40, 1.0)
    history.append("Engagement", 20, 2.0)
    table = trend_table(history)
    assert [entry.metric for entry in table] == ["Engagement", "Confidence"]
    assert table[0].trend == pytest.approx(-50.0)
    assert table[0].current_value == 20.0


def make_history() -> MetricHistory:
    history = MetricHistory(names=["Confidence", "Eye Contact"])
    history.append("Confidence", 60, 0.0)
    history.append("Confidence", 70, 10.0)
    history.append("Eye Contact", 80, 10.0)
    return history


def test_export_history_csv_fills_missing_cells():
    buffer = io.StringIO()
    assert export_history_csv(make_history(), buffer) == 2
    rows = list(csv.reader(io.StringIO(buffer.getvalue())))
    assert rows[0] == ["Timestamp", "Confidence", "Eye Contact"]
    assert rows[1] == ["1970-01-01T00:00:00+00:00", "60.0", ""]
    assert rows[2] == ["1970-01-01T00:00:10+00:00", "70.0", "80.0"]


def test_export_history_csv_to_path(tmp_path):
    target = tmp_path / "exports" / "history.csv"
    assert export_history_csv(make_history(), target) == 2
    assert target.read_text().splitlines()[0] == "Timestamp,Confidence,Eye Contact"
    assert history_csv_text(make_history()).splitlines() == target.read_text().splitlines()


def test_summary_json_is_parseable():
    payload = json.loads(summary_json(DashboardMetrics(overall_score=72), make_history()))
    assert payload["overall_score"] == 72
    assert [i["title"] for i in payload["insights"]] == ["Overall Performance", "Top Strength", "Focus Area"]
    assert len(payload["trends"]) == 2


def test_summary_rejects_out_of_range_score():
    with pytest.raises(ValidationError):
        SessionSummary(overall_score=150, timestamp="now")
