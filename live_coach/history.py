"""
Metric History & Thresholds
============================

Bounded per-metric time series plus the user-adjustable {min, max, optimal}
targets used to classify them.

Each producer appends only to the series it names, so concurrent producers
(video loop, audio loop, periodic timers) never contend. Eviction of the
oldest point is local to each series.
"""

from __future__ import annotations

import logging
from collections import deque
from enum import Enum
from typing import Deque, Dict, Iterable, Iterator, List, Optional

from .models import MetricPoint, MetricThresholds, clamp

logger = logging.getLogger(__name__)

HISTORY_SIZE = 30

DEFAULT_SERIES_NAMES = (
    "Confidence",
    "Professionalism",
    "Engagement",
    "Speech Clarity",
    "Speech Pace",
    "Eye Contact",
    "Voice Volume",
    "Response Time",
    "Overall Performance",
)


class MetricSeries:
    """Insertion-ordered ring of the most recent ``maxlen`` points."""

    def __init__(self, name: str, maxlen: int = HISTORY_SIZE) -> None:
        self.name = name
        self._points: Deque[MetricPoint] = deque(maxlen=maxlen)

    def append(self, value: float, timestamp: float) -> MetricPoint:
        point = MetricPoint(timestamp=timestamp, value=float(value))
        self._points.append(point)
        return point

    @property
    def maxlen(self) -> int:
        return self._points.maxlen or 0

    @property
    def latest(self) -> Optional[MetricPoint]:
        return self._points[-1] if self._points else None

    def values(self) -> List[float]:
        return [p.value for p in self._points]

    def points(self) -> List[MetricPoint]:
        return list(self._points)

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[MetricPoint]:
        return iter(list(self._points))


class MetricHistory:
    """Named collection of MetricSeries; one per tracked metric."""

    def __init__(self, names: Iterable[str] = DEFAULT_SERIES_NAMES, maxlen: int = HISTORY_SIZE) -> None:
        self.maxlen = maxlen
        self._series: Dict[str, MetricSeries] = {name: MetricSeries(name, maxlen) for name in names}

    def append(self, name: str, value: float, timestamp: float) -> MetricPoint:
        series = self._series.get(name)
        if series is None:
            series = self._series[name] = MetricSeries(name, self.maxlen)
        return series.append(value, timestamp)

    def series(self, name: str) -> MetricSeries:
        return self._series[name]

    def names(self) -> List[str]:
        return list(self._series)

    def __contains__(self, name: object) -> bool:
        return name in self._series

    def __iter__(self) -> Iterator[MetricSeries]:
        return iter(list(self._series.values()))

    def to_dict(self) -> Dict[str, List[Dict[str, float]]]:
        return {
            name: [{"timestamp": p.timestamp, "value": p.value} for p in series.points()]
            for name, series in self._series.items()
        }


def trend_percent(series: MetricSeries) -> float:
    """Percent change from the first to the last point (0 when undefined)."""
    values = series.values()
    if len(values) < 2 or values[0] == 0:
        return 0.0
    return (values[-1] - values[0]) / values[0] * 100.0


# ── Thresholds ───────────────────────────────────────────────────

class ThresholdStatus(str, Enum):
    BELOW = "below"
    WITHIN = "within"
    ABOVE = "above"


THRESHOLD_BOUNDS = ("min", "max", "optimal")

DEFAULT_THRESHOLDS: Dict[str, tuple] = {
    "Confidence": (60, 100, 80),
    "Professionalism": (70, 100, 85),
    "Engagement": (60, 100, 80),
    "Speech Clarity": (65, 100, 85),
    "Speech Pace": (70, 90, 80),
    "Eye Contact": (60, 100, 80),
    "Voice Volume": (60, 90, 75),
    "Response Time": (60, 90, 80),
    "Overall Performance": (65, 100, 85),
}


class ThresholdRegistry:
    """Per-metric {min, max, optimal} targets, owned by one session."""

    def __init__(self, defaults: Optional[Dict[str, tuple]] = None) -> None:
        table = DEFAULT_THRESHOLDS if defaults is None else defaults
        self._thresholds: Dict[str, MetricThresholds] = {
            name: MetricThresholds(min=float(lo), max=float(hi), optimal=float(opt))
            for name, (lo, hi, opt) in table.items()
        }

    def get(self, metric: str) -> MetricThresholds:
        return self._thresholds[metric]

    def items(self):
        return self._thresholds.items()

    def __contains__(self, metric: object) -> bool:
        return metric in self._thresholds

    def update(self, metric: str, bound: str, value: float) -> MetricThresholds:
        if metric not in self._thresholds:
            raise KeyError(f"Unknown metric: {metric}")
        if bound not in THRESHOLD_BOUNDS:
            raise ValueError(f"Unknown threshold bound: {bound!r} (expected one of {THRESHOLD_BOUNDS})")
        thresholds = self._thresholds[metric]
        setattr(thresholds, bound, float(clamp(float(value))))
        logger.info("Threshold %s.%s set to %.0f", metric, bound, getattr(thresholds, bound))
        return thresholds

    def classify(self, metric: str, value: float) -> ThresholdStatus:
        t = self._thresholds[metric]
        if value < t.min:
            return ThresholdStatus.BELOW
        if value > t.max:
            return ThresholdStatus.ABOVE
        return ThresholdStatus.WITHIN

    def describe(self, metric: str, value: float) -> str:
        t = self._thresholds.get(metric)
        if t is None:
            return "No threshold data available"
        if value >= t.optimal:
            return "Excellent - Keep it up!"
        if t.min <= value <= t.max:
            return "Good - Within acceptable range"
        if value < t.min:
            return "Below target - Try to improve"
        return "Above target - Consider adjusting"

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {name: t.to_dict() for name, t in self._thresholds.items()}
