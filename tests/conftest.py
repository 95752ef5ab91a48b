from __future__ import annotations

from typing import List, Optional

import numpy as np
import pytest

from live_coach.errors import AcquisitionError
from live_coach.models import (
    BoundingBox,
    DetectionSample,
    ExpressionVector,
    FaceLandmarks68,
    FrameSize,
)

FRAME = FrameSize(640, 480)


def make_landmarks(
    tilt: float = 0.0,
    jaw_y: float = 300.0,
    chin: tuple = (320.0, 400.0),
    jaw_left_x: float = 300.0,
    left_eye: tuple = (280.0, 200.0),
    right_eye: tuple = (360.0, 200.0),
) -> FaceLandmarks68:
    """68 points with a controllable jaw line and eye centers."""
    pts = np.full((68, 2), [320.0, 240.0])
    jaw_right_x = 2 * chin[0] - jaw_left_x
    pts[0:17, 0] = np.linspace(jaw_left_x, jaw_right_x, 17)
    pts[0:17, 1] = jaw_y
    pts[0] = (jaw_left_x, jaw_y)
    pts[8] = chin
    pts[16] = (jaw_right_x, jaw_y + tilt)
    pts[36:42] = left_eye
    pts[42:48] = right_eye
    return FaceLandmarks68(points=pts)


def centered_box(area_ratio: float, frame: FrameSize = FRAME, dx: float = 0.0, dy: float = 0.0) -> BoundingBox:
    aspect = frame.width / frame.height
    height = (area_ratio * frame.area / aspect) ** 0.5
    width = height * aspect
    cx, cy = frame.width / 2 + dx, frame.height / 2 + dy
    return BoundingBox(x=cx - width / 2, y=cy - height / 2, width=width, height=height)


def make_sample(
    area_ratio: float = 0.15,
    score: float = 0.9,
    dx: float = 0.0,
    dy: float = 0.0,
    landmarks: Optional[FaceLandmarks68] = None,
    expressions: Optional[ExpressionVector] = None,
    timestamp: float = 1000.0,
) -> DetectionSample:
    return DetectionSample(
        box=centered_box(area_ratio, dx=dx, dy=dy),
        score=score,
        landmarks=landmarks if landmarks is not None else make_landmarks(),
        expressions=expressions if expressions is not None else ExpressionVector(neutral=0.9, happy=0.1),
        frame_size=FRAME,
        timestamp=timestamp,
    )


class FakeClock:
    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeCamera:
    def __init__(self) -> None:
        self.closed = False
        self.reads = 0

    def read(self) -> Optional[np.ndarray]:
        if self.closed:
            return None
        self.reads += 1
        return np.zeros((FRAME.height, FRAME.width, 3), dtype=np.uint8)

    def close(self) -> None:
        self.closed = True


class ScriptedDetector:
    """Returns scripted results in order, then repeats the last one."""

    def __init__(self, script: List[List[DetectionSample]]) -> None:
        self.script = list(script)
        self.calls = 0
        self.closed = False

    def detect(self, frame: np.ndarray) -> List[DetectionSample]:
        idx = min(self.calls, len(self.script) - 1)
        self.calls += 1
        result = self.script[idx]
        if isinstance(result, Exception):
            raise result
        return result

    def close(self) -> None:
        self.closed = True


class FakeMicrophone:
    def __init__(self, samples: Optional[np.ndarray] = None, fail: bool = False) -> None:
        self.samples = samples if samples is not None else np.zeros(2048, dtype=np.float32)
        self.fail = fail
        self.started = False
        self.stopped = False

    def start(self) -> None:
        if self.fail:
            raise AcquisitionError("microphone", "Microphone access denied or no microphone found")
        self.started = True

    def latest_samples(self) -> np.ndarray:
        return self.samples

    def stop(self) -> None:
        self.stopped = True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(100.0)


@pytest.fixture
def good_sample() -> DetectionSample:
    return make_sample()
