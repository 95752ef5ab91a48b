"""
Face / Landmark / Expression Detector
======================================

Wraps **MediaPipe FaceDetector** (BlazeFace box + score) and
**MediaPipe FaceLandmarker** (478-point mesh + 52 blendshapes) using the
Tasks API, and folds both into one ``DetectionSample`` per frame.

Requirements
------------
* mediapipe >= 0.10.8
* blaze_face_short_range.tflite  (auto-downloaded on first run)
* face_landmarker.task           (auto-downloaded on first run)
"""

from __future__ import annotations

import logging
import pathlib
import time
import urllib.request
from typing import List, Optional

import cv2
import mediapipe as mp
import numpy as np

from .landmarks import box_from_mesh, expressions_from_blendshapes, mesh_to_68
from .models import BoundingBox, DetectionSample, FrameSize

logger = logging.getLogger(__name__)

# ── Model paths & auto-download URLs ────────────────────────────────
_DIR = pathlib.Path(__file__).parent

_DETECTOR_MODEL_PATH = _DIR / "blaze_face_short_range.tflite"
_DETECTOR_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/"
    "face_detector/blaze_face_short_range/float16/latest/blaze_face_short_range.tflite"
)

_LANDMARKER_MODEL_PATH = _DIR / "face_landmarker.task"
_LANDMARKER_MODEL_URL = (
    "https://storage.googleapis.com/mediapipe-models/"
    "face_landmarker/face_landmarker/float16/latest/face_landmarker.task"
)


def _ensure_model(path: pathlib.Path, url: str) -> pathlib.Path:
    """Download a MediaPipe model bundle if it is not already cached."""
    if path.exists():
        return path
    logger.info("Downloading %s", path.name)
    try:
        urllib.request.urlretrieve(url, str(path))
    except OSError as exc:
        raise RuntimeError(
            f"Failed to download {path.name} from {url}. "
            "You can download it manually and place it next to this file."
        ) from exc
    logger.info("Saved %s (%.1f MB)", path.name, path.stat().st_size / 1e6)
    return path


# ── MediaPipe Tasks API aliases ─────────────────────────────────────
BaseOptions = mp.tasks.BaseOptions
MPFaceDetector = mp.tasks.vision.FaceDetector
MPFaceDetectorOptions = mp.tasks.vision.FaceDetectorOptions
FaceLandmarker = mp.tasks.vision.FaceLandmarker
FaceLandmarkerOptions = mp.tasks.vision.FaceLandmarkerOptions
VisionRunningMode = mp.tasks.vision.RunningMode


class MediaPipeFaceDetector:
    """Box + 68 landmarks + expression vector for the strongest face in a BGR frame."""

    def __init__(
        self,
        input_size: int = 320,
        score_threshold: float = 0.5,
        running_mode: VisionRunningMode = VisionRunningMode.VIDEO,
    ) -> None:
        self.input_size = input_size
        self.score_threshold = score_threshold
        self._running_mode = running_mode
        self._last_ts_ms: int = 0  # strictly increasing for VIDEO mode

        detector_path = _ensure_model(_DETECTOR_MODEL_PATH, _DETECTOR_MODEL_URL)
        landmarker_path = _ensure_model(_LANDMARKER_MODEL_PATH, _LANDMARKER_MODEL_URL)

        self._detector = MPFaceDetector.create_from_options(
            MPFaceDetectorOptions(
                base_options=BaseOptions(model_asset_path=str(detector_path)),
                running_mode=running_mode,
                min_detection_confidence=score_threshold,
            )
        )
        try:
            self._landmarker = FaceLandmarker.create_from_options(
                FaceLandmarkerOptions(
                    base_options=BaseOptions(model_asset_path=str(landmarker_path)),
                    running_mode=running_mode,
                    num_faces=1,
                    min_face_detection_confidence=score_threshold,
                    output_face_blendshapes=True,
                    output_facial_transformation_matrixes=False,
                )
            )
        except Exception:
            self._detector.close()
            raise

    def _next_timestamp_ms(self) -> int:
        ts = int(time.monotonic() * 1000)
        if ts <= self._last_ts_ms:
            ts = self._last_ts_ms + 1
        self._last_ts_ms = ts
        return ts

    def _resize(self, image_rgb: np.ndarray) -> tuple[np.ndarray, float]:
        h, w = image_rgb.shape[:2]
        longest = max(h, w)
        if self.input_size <= 0 or longest <= self.input_size:
            return image_rgb, 1.0
        scale = self.input_size / float(longest)
        small = cv2.resize(image_rgb, (int(w * scale), int(h * scale)), interpolation=cv2.INTER_AREA)
        return small, scale

    def _run(self, task, image: mp.Image, ts_ms: int):
        if self._running_mode == VisionRunningMode.VIDEO:
            return task.detect_for_video(image, ts_ms)
        return task.detect(image)

    def detect(self, image_bgr: np.ndarray) -> List[DetectionSample]:
        frame_size = FrameSize(width=int(image_bgr.shape[1]), height=int(image_bgr.shape[0]))
        image_rgb = cv2.cvtColor(image_bgr, cv2.COLOR_BGR2RGB)
        ts_ms = self._next_timestamp_ms()

        small, scale = self._resize(image_rgb)
        small_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=np.ascontiguousarray(small))
        full_image = mp.Image(image_format=mp.ImageFormat.SRGB, data=image_rgb)

        detections = self._run(self._detector, small_image, ts_ms).detections
        landmark_result = self._run(self._landmarker, full_image, ts_ms)
        if not landmark_result.face_landmarks:
            return []

        mesh = np.array(
            [[lm.x, lm.y, lm.z] for lm in landmark_result.face_landmarks[0]],
            dtype=np.float32,
        )
        blendshapes = {}
        if landmark_result.face_blendshapes:
            blendshapes = {
                c.category_name: float(c.score) for c in landmark_result.face_blendshapes[0]
            }

        box: Optional[BoundingBox] = None
        score = 0.0
        if detections:
            best = max(detections, key=lambda d: d.categories[0].score if d.categories else 0.0)
            bb = best.bounding_box
            box = BoundingBox(
                x=bb.origin_x / scale,
                y=bb.origin_y / scale,
                width=bb.width / scale,
                height=bb.height / scale,
            )
            score = float(best.categories[0].score) if best.categories else 0.0
        if box is None:
            # Landmarker found a face the box detector missed; score stays 0 so the gate rejects it.
            box = box_from_mesh(mesh, frame_size)

        return [
            DetectionSample(
                box=box,
                score=score,
                landmarks=mesh_to_68(mesh, frame_size),
                expressions=expressions_from_blendshapes(blendshapes),
                frame_size=frame_size,
                timestamp=time.time(),
            )
        ]

    def close(self) -> None:
        self._detector.close()
        self._landmarker.close()

    def __enter__(self) -> "MediaPipeFaceDetector":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
