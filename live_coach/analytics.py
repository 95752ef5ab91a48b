"""
Session Analytics
==================
Trend deltas, benchmark comparison and exports over a session's metric
history. Read-only: nothing here feeds back into the live loop.
"""

from __future__ import annotations

import csv
import io
import logging
import pathlib
from datetime import datetime, timezone
from typing import Dict, List, Optional, TextIO, Union

from pydantic import BaseModel, Field

from .history import MetricHistory, trend_percent
from .models import DashboardMetrics, round_half_up

logger = logging.getLogger(__name__)

DEFAULT_BENCHMARK: Dict[str, int] = {
    "confidence": 85,
    "professionalism": 90,
    "engagement": 80,
    "speech_clarity": 85,
    "speech_pace": 75,
    "eye_contact": 80,
    "volume": 70,
    "response_time": 75,
    "overall_score": 85,
}

RADAR_AXES = (
    ("Confidence", "confidence"),
    ("Professionalism", "professionalism"),
    ("Engagement", "engagement"),
    ("Speech Clarity", "speech_clarity"),
    ("Speech Pace", "speech_pace"),
    ("Eye Contact", "eye_contact"),
)


class Insight(BaseModel):
    title: str
    value: float
    description: str
    metric: Optional[str] = None
    change: Optional[float] = None


class TrendEntry(BaseModel):
    metric: str
    trend: float
    current_value: float


class RadarPoint(BaseModel):
    metric: str
    current: float
    benchmark: float


class SessionSummary(BaseModel):
    """Shareable snapshot of where a session stands."""
    overall_score: int = Field(0, ge=0, le=100)
    timestamp: str
    insights: List[Insight] = Field(default_factory=list)
    trends: List[TrendEntry] = Field(default_factory=list)

    def to_dict(self) -> dict:
        return self.model_dump()


def calculate_trend(current: float, previous: Optional[float], active: bool = True) -> Optional[int]:
    """Whole-percent change from ``previous``; None when inactive or no baseline."""
    if not active or not previous:
        return None
    return round_half_up((current - previous) / previous * 100.0)


def trend_table(history: MetricHistory) -> List[TrendEntry]:
    """Per-series trend, largest movement first."""
    entries = []
    for series in history:
        latest = series.latest
        entries.append(
            TrendEntry(
                metric=series.name,
                trend=trend_percent(series),
                current_value=latest.value if latest else 0.0,
            )
        )
    entries.sort(key=lambda e: abs(e.trend), reverse=True)
    return entries


def insights(current: DashboardMetrics, benchmark: Optional[Dict[str, int]] = None) -> List[Insight]:
    bench = DEFAULT_BENCHMARK if benchmark is None else benchmark
    values = current.as_dict()

    overall_diff = values["overall_score"] - bench.get("overall_score", 0)
    results = [
        Insight(
            title="Overall Performance",
            value=values["overall_score"],
            change=overall_diff,
            description="Performing above benchmark" if overall_diff > 0 else "Room for improvement",
        )
    ]

    others = [(k, v) for k, v in values.items() if k != "overall_score"]
    # First maximum / minimum wins on ties.
    top_key, top_value = others[0]
    low_key, low_value = others[0]
    for key, value in others[1:]:
        if value > top_value:
            top_key, top_value = key, value
        if value < low_value:
            low_key, low_value = key, value

    results.append(
        Insight(
            title="Top Strength",
            value=top_value,
            metric=top_key,
            description=f"Excellent {top_key} performance",
        )
    )
    results.append(
        Insight(
            title="Focus Area",
            value=low_value,
            metric=low_key,
            description=f"Consider improving {low_key}",
        )
    )
    return results


def radar_data(current: DashboardMetrics, benchmark: Optional[Dict[str, int]] = None) -> List[RadarPoint]:
    bench = DEFAULT_BENCHMARK if benchmark is None else benchmark
    return [
        RadarPoint(metric=label, current=current.get(key), benchmark=bench.get(key, 0))
        for label, key in RADAR_AXES
    ]


def _iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def export_history_csv(history: MetricHistory, target: Union[str, pathlib.Path, TextIO]) -> int:
    """Write one row per distinct timestamp; returns the number of data rows.

    Columns are ``Timestamp`` followed by every series name. A series with no
    point at a given timestamp leaves its cell empty.
    """
    names = history.names()
    by_time: Dict[float, Dict[str, float]] = {}
    for series in history:
        for point in series.points():
            by_time.setdefault(point.timestamp, {})[series.name] = point.value

    def _write(handle: TextIO) -> None:
        writer = csv.writer(handle)
        writer.writerow(["Timestamp", *names])
        for ts in sorted(by_time):
            row = by_time[ts]
            writer.writerow([_iso(ts), *[row.get(name, "") for name in names]])

    if isinstance(target, (str, pathlib.Path)):
        path = pathlib.Path(target)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", newline="") as handle:
            _write(handle)
        logger.info("Exported %d history rows to %s", len(by_time), path)
    else:
        _write(target)
    return len(by_time)


def build_summary(
    current: DashboardMetrics,
    history: MetricHistory,
    benchmark: Optional[Dict[str, int]] = None,
) -> SessionSummary:
    return SessionSummary(
        overall_score=current.overall_score,
        timestamp=datetime.now(timezone.utc).isoformat(),
        insights=insights(current, benchmark),
        trends=trend_table(history),
    )


def summary_json(
    current: DashboardMetrics,
    history: MetricHistory,
    benchmark: Optional[Dict[str, int]] = None,
) -> str:
    return build_summary(current, history, benchmark).model_dump_json(indent=2)


def history_csv_text(history: MetricHistory) -> str:
    buffer = io.StringIO()
    export_history_csv(history, buffer)
    return buffer.getvalue()
