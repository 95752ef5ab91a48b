"""
Live Interview Coach
=====================

Real-time presence coaching for mock interviews:
  - Face-validity gate with presence hysteresis and framing advice
  - Body-language extractors (posture, eye contact, movement, engagement)
  - Speech volume / clarity / pace from microphone spectra
  - Composite confidence, professionalism and overall scores with history
  - Debounced, categorised coaching feedback

Quick Start:
    import asyncio
    from live_coach import LiveAnalysisSession, load_config

    session = LiveAnalysisSession(config=load_config())
    asyncio.run(session.run(duration=60))
    print(session.dashboard_metrics.overall_score)

Camera and MediaPipe backends are imported lazily, and sounddevice is
optional at import time (``MicrophoneStream.start`` reports it missing), so
the metric pipeline can be driven directly with ``DetectionSample`` objects.
"""

__version__ = "1.0.0"

# ── Core classes ─────────────────────────────────────────────────
from .config import (
    AggregatorConfig,
    AudioConfig,
    FeedbackConfig,
    GateConfig,
    SessionConfig,
    load_config,
)
from .errors import AcquisitionError, LiveCoachError
from .models import (
    BodyLanguageMetrics,
    BoundingBox,
    DashboardMetrics,
    DetectionSample,
    Expression,
    ExpressionVector,
    FaceLandmarks68,
    FrameSize,
    InterviewMetrics,
    Movement,
    Posture,
    SpeechMetrics,
)

# ── Pipeline ─────────────────────────────────────────────────────
from .gate import FaceGate, is_properly_visible, positioning_advice
from .extractors import extract_body_language
from .audio import SpeechAnalyzer
from .aggregator import MetricsAggregator
from .history import MetricHistory, ThresholdRegistry
from .feedback import FeedbackGenerator, ThresholdFeedback, coaching_tips
from .session import LiveAnalysisSession, MetricDetail

__all__ = [
    # Config
    "AggregatorConfig",
    "AudioConfig",
    "FeedbackConfig",
    "GateConfig",
    "SessionConfig",
    "load_config",
    # Errors
    "AcquisitionError",
    "LiveCoachError",
    # Models
    "BodyLanguageMetrics",
    "BoundingBox",
    "DashboardMetrics",
    "DetectionSample",
    "Expression",
    "ExpressionVector",
    "FaceLandmarks68",
    "FrameSize",
    "InterviewMetrics",
    "Movement",
    "Posture",
    "SpeechMetrics",
    # Pipeline
    "FaceGate",
    "is_properly_visible",
    "positioning_advice",
    "extract_body_language",
    "SpeechAnalyzer",
    "MetricsAggregator",
    "MetricHistory",
    "ThresholdRegistry",
    "FeedbackGenerator",
    "ThresholdFeedback",
    "coaching_tips",
    "LiveAnalysisSession",
    "MetricDetail",
]
