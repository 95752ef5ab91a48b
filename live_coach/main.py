from __future__ import annotations

import argparse
import asyncio
import dataclasses
import logging
import pathlib
from typing import Dict, List, Optional, Tuple

import cv2
import numpy as np
from dotenv import load_dotenv

from .analytics import export_history_csv, summary_json
from .config import load_config
from .dashboard import Dashboard
from .data_logger import DataLogger
from .feedback import FeedbackUpdate
from .gate import Advisory, GateVerdict
from .models import DashboardMetrics, DetectionSample
from .session import LiveAnalysisSession, SessionCallbacks

logger = logging.getLogger(__name__)

# ── Colour palette (BGR) ────────────────────────────────────────────
GOOD = (0, 200, 0)          # green
FAIR = (0, 200, 255)        # amber / yellow
POOR = (0, 0, 230)          # red
WHITE = (255, 255, 255)
BLACK = (0, 0, 0)
GRAY = (60, 60, 60)
DARK_BG = (30, 30, 30)
BAR_BG = (50, 50, 50)
GUIDE_COLOR = (120, 120, 120)
TARGET_COLOR = (255, 200, 0)     # optimal-threshold tick

WINDOW = "Live Interview Coach"
PANEL_W = 340

PANEL_METRICS = (
    ("Confidence", "confidence"),
    ("Professionalism", "professionalism"),
    ("Engagement", "engagement"),
    ("Eye Contact", "eye_contact"),
    ("Speech Clarity", "speech_clarity"),
    ("Speech Pace", "speech_pace"),
    ("Voice Volume", "volume"),
    ("Response Time", "response_time"),
)


def score_color(value: float) -> Tuple[int, int, int]:
    if value >= 80:
        return GOOD
    if value >= 60:
        return FAIR
    return POOR


# ── Score bar with the optimal-target marker ────────────────────────
def draw_bar(
    panel: np.ndarray,
    origin: Tuple[int, int],
    size: Tuple[int, int],
    score: float,
    target: Optional[float] = None,
) -> None:
    """Fill a 0-100 score bar in its traffic-light colour; ``target`` adds a tick."""
    x, y = origin
    bar_w, bar_h = size
    fill_w = int(bar_w * float(np.clip(score, 0.0, 100.0)) / 100.0)
    cv2.rectangle(panel, (x, y), (x + bar_w, y + bar_h), BAR_BG, -1)
    if fill_w > 0:
        cv2.rectangle(panel, (x, y), (x + fill_w, y + bar_h), score_color(score), -1)
    if target is not None:
        tx = x + int(bar_w * float(np.clip(target, 0.0, 100.0)) / 100.0)
        cv2.line(panel, (tx, y - 2), (tx, y + bar_h + 2), TARGET_COLOR, 2)
    cv2.rectangle(panel, (x, y), (x + bar_w, y + bar_h), WHITE, 1)


# ── Framing guide + face box on the camera image ────────────────────
def draw_guide(image: np.ndarray, sample: Optional[DetectionSample], valid: bool) -> None:
    h, w = image.shape[:2]
    cx, cy = w // 2, h // 2
    guide = 20
    cv2.line(image, (cx - guide, cy), (cx + guide, cy), GUIDE_COLOR, 1)
    cv2.line(image, (cx, cy - guide), (cx, cy + guide), GUIDE_COLOR, 1)
    ow, oh = int(w * 0.4), int(h * 0.4)
    cv2.rectangle(image, (cx - ow // 2, cy - oh // 2), (cx + ow // 2, cy + oh // 2), GUIDE_COLOR, 1)
    if sample is not None:
        box = sample.box
        color = GOOD if valid else POOR
        cv2.rectangle(
            image,
            (int(box.x), int(box.y)),
            (int(box.x + box.width), int(box.y + box.height)),
            color,
            2,
        )


# ── Build the side panel ────────────────────────────────────────────
def build_panel(
    height: int,
    metrics: DashboardMetrics,
    feedback: Dict[str, List[str]],
    face_present: bool,
    targets: Optional[Dict[str, float]] = None,
) -> np.ndarray:
    targets = targets or {}
    panel = np.full((height, PANEL_W, 3), DARK_BG, dtype=np.uint8)

    # ── Overall banner ──────────────────────────────────────────
    banner_h = 70
    color = score_color(metrics.overall_score) if face_present else GRAY
    cv2.rectangle(panel, (0, 0), (PANEL_W, banner_h), color, -1)
    title = "OVERALL" if face_present else "NO FACE"
    cv2.putText(panel, title, (15, 30),
                cv2.FONT_HERSHEY_SIMPLEX, 0.7, BLACK, 2, cv2.LINE_AA)
    cv2.putText(panel, f"Score: {metrics.overall_score}", (15, 58),
                cv2.FONT_HERSHEY_SIMPLEX, 0.6, BLACK, 1, cv2.LINE_AA)

    # ── Metric bars ─────────────────────────────────────────────
    y = banner_h + 22
    bar_w = PANEL_W - 40
    bar_h = 12
    for label, key in PANEL_METRICS:
        val = metrics.get(key)
        cv2.putText(panel, f"{label}: {val}", (15, y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.42, WHITE, 1, cv2.LINE_AA)
        draw_bar(panel, (15, y + 5), (bar_w, bar_h), val, targets.get(label))
        y += bar_h + 24

    # ── Feedback ───────────────────────────────────────────────
    y += 5
    for title, lines in feedback.items():
        cv2.putText(panel, title, (15, y),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.45, (180, 220, 255), 1, cv2.LINE_AA)
        y += 18
        for line in lines:
            # Hershey fonts have no emoji glyphs.
            text = line.encode("ascii", "ignore").decode().strip()
            cv2.putText(panel, text[:44], (20, y),
                        cv2.FONT_HERSHEY_SIMPLEX, 0.38, WHITE, 1, cv2.LINE_AA)
            y += 16
        y += 6

    cv2.putText(panel, "Press 'q' to quit", (15, height - 20),
                cv2.FONT_HERSHEY_SIMPLEX, 0.45, GRAY, 1, cv2.LINE_AA)
    return panel


def render_frame(
    image: np.ndarray,
    sample: Optional[DetectionSample],
    verdict: GateVerdict,
    session: LiveAnalysisSession,
) -> np.ndarray:
    canvas = image.copy()
    draw_guide(canvas, sample, verdict.valid)
    panel = build_panel(
        canvas.shape[0],
        session.dashboard_metrics,
        session.feedback_lines(),
        session.face_present,
        {label: session.thresholds.get(label).optimal for label, _ in PANEL_METRICS},
    )
    return np.hstack([canvas, panel])


# ── Main loop ───────────────────────────────────────────────────────
def run(
    camera_index: Optional[int],
    log_path: pathlib.Path,
    display: bool,
    audio: bool,
    verbose: bool,
    export_csv: Optional[pathlib.Path] = None,
    duration: Optional[float] = None,
) -> int:
    config = load_config()
    if camera_index is not None:
        config = dataclasses.replace(config, camera_index=camera_index)

    dashboard = Dashboard(verbose=verbose)

    with DataLogger(log_path) as data_logger:
        session: LiveAnalysisSession

        def on_history(metrics: DashboardMetrics) -> None:
            data_logger.log_metrics(metrics, session.body_language)
            dashboard.render(metrics, session.body_language, session.feedback_lines())

        def on_advisory(advisory: Advisory) -> None:
            print(f"\n⚠️  {advisory.title}: {advisory.message}")

        def on_feedback(update: FeedbackUpdate) -> None:
            if verbose:
                for line in update.lines:
                    print(f"  {line}")

        def on_frame(frame: np.ndarray, sample: Optional[DetectionSample], verdict: GateVerdict) -> None:
            if not display:
                return
            cv2.imshow(WINDOW, render_frame(frame, sample, verdict, session))
            if cv2.waitKey(1) & 0xFF == ord("q"):
                session.stop()

        session = LiveAnalysisSession(
            config=config,
            enable_audio=audio,
            callbacks=SessionCallbacks(
                on_feedback=on_feedback,
                on_advisory=on_advisory,
                on_history=on_history,
                on_frame=on_frame,
            ),
        )
        try:
            asyncio.run(session.run(duration=duration))
        except KeyboardInterrupt:
            logger.info("Interrupted")
        finally:
            if display:
                cv2.destroyAllWindows()

    if session.error:
        print(f"❌ {session.error}")
        return 1
    if session.audio_error:
        print(f"⚠️  {session.audio_error}")

    if export_csv is not None:
        export_history_csv(session.history, export_csv)
        print(f"✅ History exported to {export_csv}")
    if verbose:
        print(summary_json(session.dashboard_metrics, session.history))
    return 0


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Real-time interview presence coach"
    )
    parser.add_argument("--camera-index", type=int, default=None)
    parser.add_argument(
        "--log-path",
        type=pathlib.Path,
        default=pathlib.Path("logs/session.csv"),
    )
    parser.add_argument(
        "--no-display",
        action="store_true",
        help="Disable OpenCV preview window",
    )
    parser.add_argument(
        "--no-audio",
        action="store_true",
        help="Skip microphone analysis",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Print full metric breakdown and debug logs",
    )
    parser.add_argument(
        "--export-csv",
        type=pathlib.Path,
        default=None,
        help="Write the metric history to this CSV when the session ends",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop automatically after this many seconds",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    return run(
        camera_index=args.camera_index,
        log_path=args.log_path,
        display=not args.no_display,
        audio=not args.no_audio,
        verbose=args.verbose,
        export_csv=args.export_csv,
        duration=args.duration,
    )


if __name__ == "__main__":
    raise SystemExit(main())
