"""
Live Analysis Session
======================

Wires one camera, one face detector, an optional microphone, the validity
gate, the aggregator and the feedback generator into a running session.

Tasks (all on one asyncio loop):

  video     every analysis_interval   read frame → detect (worker thread)
                                      → gate → aggregate → request feedback
  audio     every audio_tick_seconds  latest samples → SpeechMetrics
  history   every history_interval    append dashboard values to series
  snapshot  every previous_snapshot   store the reduced "previous" bundle

Failure policy:
  * Camera cannot be acquired → ``error`` is set and nothing runs.
  * Microphone cannot be acquired → audio stays off, speech metrics stay 0.
  * A detector error on one frame is logged; the next pass tries again.

Usage:
    session = LiveAnalysisSession()
    asyncio.run(session.run())
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol

import numpy as np

from .aggregator import MetricsAggregator
from .audio import MicrophoneStream, SpeechAnalyzer
from .config import SessionConfig
from .errors import AcquisitionError
from .feedback import FeedbackGenerator, FeedbackUpdate, ThresholdFeedback, coaching_tips
from .gate import Advisory, FaceDetector, FaceGate, GateVerdict, best_detection
from .history import MetricHistory, ThresholdRegistry, ThresholdStatus
from .models import (
    METRIC_KEYS,
    BodyLanguageMetrics,
    DashboardMetrics,
    DetectionSample,
    InterviewMetrics,
    MetricPoint,
    MetricThresholds,
    SpeechMetrics,
)
from .scheduling import PeriodicTask

logger = logging.getLogger(__name__)


class FrameSource(Protocol):
    def read(self) -> Optional[np.ndarray]:
        ...

    def close(self) -> None:
        ...


class AudioSource(Protocol):
    def start(self) -> None:
        ...

    def latest_samples(self) -> np.ndarray:
        ...

    def stop(self) -> None:
        ...


@dataclass(frozen=True)
class MetricDetail:
    """Everything a drill-down view needs for one metric."""

    name: str
    value: int
    history: List[MetricPoint]
    thresholds: MetricThresholds
    status: ThresholdStatus
    description: str


@dataclass
class SessionCallbacks:
    on_feedback: Optional[Callable[[FeedbackUpdate], None]] = None
    on_advisory: Optional[Callable[[Advisory], None]] = None
    on_history: Optional[Callable[[DashboardMetrics], None]] = None
    on_frame: Optional[Callable[[np.ndarray, Optional[DetectionSample], GateVerdict], None]] = None


class LiveAnalysisSession:
    """One live coaching session; create per interview, close when done."""

    def __init__(
        self,
        config: Optional[SessionConfig] = None,
        camera: Optional[FrameSource] = None,
        detector: Optional[FaceDetector] = None,
        microphone: Optional[AudioSource] = None,
        enable_audio: bool = True,
        callbacks: Optional[SessionCallbacks] = None,
        camera_factory: Optional[Callable[[], FrameSource]] = None,
        detector_factory: Optional[Callable[[], FaceDetector]] = None,
    ) -> None:
        self.config = config or SessionConfig()
        self.camera = camera
        self._camera_factory = camera_factory or self._open_default_camera
        self._detector_factory = detector_factory or self._open_default_detector
        self.detector = detector
        self.microphone = microphone
        self.enable_audio = enable_audio
        self.callbacks = callbacks or SessionCallbacks()

        self.gate = FaceGate(self.config.gate)
        self.aggregator = MetricsAggregator(self.config.aggregator)
        self.speech_analyzer = SpeechAnalyzer(self.config.audio)
        self._feedback = FeedbackGenerator(config=self.config.feedback, on_update=self._on_feedback)
        self.threshold_feedback = ThresholdFeedback(keep=self.config.feedback.threshold_feedback_keep)

        self.error: Optional[str] = None
        self.audio_error: Optional[str] = None
        self.advisories: List[Advisory] = []
        self._tasks: List[PeriodicTask] = []
        self._stopped = asyncio.Event()
        self._closed = False
        self._last_requested: Optional[Dict[str, int]] = None
        self._audio_active = False

    # ── Read-only views ──────────────────────────────────────────

    @property
    def dashboard_metrics(self) -> DashboardMetrics:
        return self.aggregator.dashboard_metrics()

    @property
    def body_language(self) -> BodyLanguageMetrics:
        return self.aggregator.body

    @property
    def speech(self) -> SpeechMetrics:
        return self.aggregator.speech

    @property
    def interview(self) -> InterviewMetrics:
        return self.aggregator.interview

    @property
    def history(self) -> MetricHistory:
        return self.aggregator.history

    @property
    def thresholds(self) -> ThresholdRegistry:
        return self.aggregator.thresholds

    @property
    def feedback(self) -> FeedbackGenerator:
        return self._feedback

    @property
    def face_present(self) -> bool:
        return self.gate.present

    @property
    def audio_active(self) -> bool:
        return self._audio_active

    def feedback_lines(self) -> dict:
        return self._feedback.display(self.face_present)

    def coaching_tips(self, limit: int = 2) -> List[str]:
        if not self.face_present:
            return []
        agg = self.aggregator
        return coaching_tips(agg.body, agg.speech, agg.interview, agg.emotions, self._feedback.rng, limit)

    # ── Inbound controls ─────────────────────────────────────────

    def change_threshold(self, metric: str, bound: str, value: float) -> MetricThresholds:
        return self.thresholds.update(metric, bound, value)

    def select_metric(self, name: str) -> MetricDetail:
        if name not in METRIC_KEYS:
            raise KeyError(f"Unknown metric: {name}")
        value = self.dashboard_metrics.get(METRIC_KEYS[name])
        history = self.history.series(name).points() if name in self.history else []
        return MetricDetail(
            name=name,
            value=value,
            history=history,
            thresholds=self.thresholds.get(name),
            status=self.thresholds.classify(name, value),
            description=self.thresholds.describe(name, value),
        )

    # ── Acquisition ──────────────────────────────────────────────

    def _open_default_camera(self) -> FrameSource:
        from .camera import open_camera

        cfg = self.config
        return open_camera(cfg.camera_index, cfg.frame_width, cfg.frame_height)

    def _open_default_detector(self) -> FaceDetector:
        from .detector import MediaPipeFaceDetector

        cfg = self.config
        return MediaPipeFaceDetector(
            input_size=cfg.detector_input_size,
            score_threshold=cfg.gate.confidence_threshold,
        )

    def open(self) -> bool:
        """Acquire devices; returns False (with ``error`` set) if the camera is unavailable."""
        if self.camera is None:
            try:
                self.camera = self._camera_factory()
            except AcquisitionError as exc:
                self.error = exc.message
                logger.error("Camera unavailable: %s", exc.message)
                return False

        if self.detector is None:
            try:
                self.detector = self._detector_factory()
            except RuntimeError as exc:
                self.error = str(exc)
                logger.error("Face detector unavailable: %s", exc)
                self.camera.close()
                self.camera = None
                return False

        if self.enable_audio:
            self._start_audio()
        return True

    def _start_audio(self) -> None:
        if self.microphone is None:
            self.microphone = MicrophoneStream(
                sample_rate=self.config.audio.sample_rate,
                buffer_size=self.config.audio.fft_size,
            )
        try:
            self.microphone.start()
        except AcquisitionError as exc:
            self.audio_error = exc.message
            self.microphone = None
            logger.error("Audio analysis disabled: %s", exc.message)
            return
        self._audio_active = True

    # ── Per-iteration work ───────────────────────────────────────

    def handle_detection(self, sample: Optional[DetectionSample]) -> GateVerdict:
        """Push one frame's best detection (or None) through gate and aggregator."""
        verdict = self.gate.observe(sample)

        if verdict.advisory is not None:
            self.advisories.append(verdict.advisory)
            logger.info("%s: %s", verdict.advisory.title, verdict.advisory.message)
            if self.callbacks.on_advisory is not None:
                self.callbacks.on_advisory(verdict.advisory)

        if verdict.became_absent:
            self.aggregator.reset()
            self.speech_analyzer.reset()
            self._feedback.reset()
            self._last_requested = None

        if verdict.valid and verdict.present and sample is not None:
            self.aggregator.apply_detection(sample)
            metrics = self.aggregator.dashboard_metrics()
            # Only changed metrics restart the debounce window.
            current = metrics.as_dict()
            if current != self._last_requested:
                self._last_requested = current
                self._feedback.request_update(metrics, face_present=True)
            self.threshold_feedback.check(metrics, self.thresholds)
        return verdict

    async def analyze_once(self) -> Optional[GateVerdict]:
        frame = await asyncio.to_thread(self.camera.read) if self.camera is not None else None
        if frame is None:
            logger.debug("No frame from camera")
            return self.handle_detection(None)
        try:
            samples = await asyncio.to_thread(self.detector.detect, frame)
        except Exception as e:
            logger.warning(f"Detection failed, skipping frame: {e}")
            return None
        sample = best_detection(samples)
        verdict = self.handle_detection(sample)
        if self.callbacks.on_frame is not None:
            self.callbacks.on_frame(frame, sample, verdict)
        return verdict

    def audio_tick(self) -> Optional[SpeechMetrics]:
        if self.microphone is None:
            return None
        speech = self.speech_analyzer.analyze_samples(self.microphone.latest_samples())
        self.aggregator.apply_speech(speech)
        return speech

    def record_history(self) -> DashboardMetrics:
        metrics = self.aggregator.record_history()
        if self.callbacks.on_history is not None:
            self.callbacks.on_history(metrics)
        return metrics

    def _on_feedback(self, update: FeedbackUpdate) -> None:
        if self.callbacks.on_feedback is not None:
            self.callbacks.on_feedback(update)

    # ── Lifecycle ────────────────────────────────────────────────

    async def run(self, duration: Optional[float] = None) -> None:
        """Run until ``stop()``/``close()`` is called or ``duration`` elapses."""
        cfg = self.config
        try:
            if not self.open():
                return
            self._tasks = [
                PeriodicTask(self.analyze_once, cfg.analysis_interval, name="video-analysis"),
                PeriodicTask(self.record_history, cfg.history_interval, name="history"),
                PeriodicTask(self.aggregator.snapshot_previous, cfg.previous_snapshot_interval, name="snapshot"),
            ]
            if self._audio_active:
                self._tasks.append(PeriodicTask(self.audio_tick, cfg.audio_tick_seconds, name="audio-analysis"))
            for task in self._tasks:
                task.start()
            logger.info("Session started (%d tasks)", len(self._tasks))

            if duration is None:
                await self._stopped.wait()
            else:
                try:
                    await asyncio.wait_for(self._stopped.wait(), timeout=duration)
                except asyncio.TimeoutError:
                    pass
        finally:
            await self.close()

    def stop(self) -> None:
        self._stopped.set()

    async def close(self) -> None:
        """Cancel every task and release devices. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._stopped.set()
        for task in self._tasks:
            await task.stop()
        self._tasks = []
        self._feedback.cancel()
        if self.microphone is not None:
            self.microphone.stop()
            self._audio_active = False
        if self.camera is not None:
            self.camera.close()
        close_detector: Any = getattr(self.detector, "close", None)
        if callable(close_detector):
            close_detector()
        logger.info("Session closed")

    async def __aenter__(self) -> "LiveAnalysisSession":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
