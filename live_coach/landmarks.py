"""
Landmark & Expression Mapping
==============================

Converts MediaPipe FaceLandmarker output into the fixed vocabulary the rest
of the package works with:

* the 478-point face mesh (normalized coordinates) → 68 pixel-space points
  laid out jaw / brows / nose / eyes / lips, the classic 68-point scheme
* the 52 ARKit-style blendshape scores → a 7-way expression vector

Both are pure numpy so they can be exercised without a model bundle.
"""

from __future__ import annotations

from typing import Dict, Mapping, Optional

import numpy as np

from .models import BoundingBox, ExpressionVector, FaceLandmarks68, FrameSize

# ── Mesh index for each of the 68 points ─────────────────────────────
MESH_TO_68 = (
    # jaw outline 0-16 (8 = chin)
    127, 234, 93, 132, 58, 172, 136, 150, 152, 379, 365, 397, 288, 361, 323, 454, 356,
    # right eyebrow 17-21
    70, 63, 105, 66, 107,
    # left eyebrow 22-26
    336, 296, 334, 293, 300,
    # nose bridge 27-30
    168, 197, 5, 4,
    # nose bottom 31-35
    75, 97, 2, 326, 305,
    # left eye 36-41 (image left)
    33, 160, 158, 133, 153, 144,
    # right eye 42-47
    362, 385, 387, 263, 373, 380,
    # outer lips 48-59
    61, 39, 37, 0, 267, 269, 291, 405, 314, 17, 84, 181,
    # inner lips 60-67
    78, 82, 13, 312, 308, 317, 14, 87,
)


def mesh_to_68(mesh: np.ndarray, frame_size: FrameSize) -> FaceLandmarks68:
    """Project normalized mesh points (N >= 468, columns x, y[, z]) to pixels."""
    mesh = np.asarray(mesh, dtype=np.float64)
    picked = mesh[list(MESH_TO_68), :2].copy()
    picked[:, 0] *= frame_size.width
    picked[:, 1] *= frame_size.height
    return FaceLandmarks68(points=picked)


def box_from_mesh(mesh: np.ndarray, frame_size: FrameSize) -> BoundingBox:
    """Tight pixel box around every mesh point, used when no detector box is available."""
    mesh = np.asarray(mesh, dtype=np.float64)
    xs = np.clip(mesh[:, 0], 0.0, 1.0) * frame_size.width
    ys = np.clip(mesh[:, 1], 0.0, 1.0) * frame_size.height
    x0, y0 = float(xs.min()), float(ys.min())
    return BoundingBox(x=x0, y=y0, width=float(xs.max()) - x0, height=float(ys.max()) - y0)


# ── Blendshapes → expressions ─────────────────────────────────────────

def _mean(scores: Mapping[str, float], *names: str) -> float:
    return float(np.mean([scores.get(n, 0.0) for n in names]))


def expressions_from_blendshapes(scores: Optional[Mapping[str, float]]) -> ExpressionVector:
    """Heuristic mapping from blendshape activations to expression probabilities.

    Raw activations are computed per expression, neutral takes whatever
    activation is left over, and the vector is normalized to sum to 1.
    """
    if not scores:
        return ExpressionVector(neutral=1.0)

    brow_inner_up = scores.get("browInnerUp", 0.0)
    eye_wide = _mean(scores, "eyeWideLeft", "eyeWideRight")

    raw: Dict[str, float] = {
        "happy": _mean(scores, "mouthSmileLeft", "mouthSmileRight"),
        "sad": _mean(scores, "mouthFrownLeft", "mouthFrownRight") * 0.7 + brow_inner_up * 0.3,
        "angry": _mean(scores, "browDownLeft", "browDownRight") * 0.8
        + _mean(scores, "mouthPressLeft", "mouthPressRight") * 0.2,
        "fearful": eye_wide * 0.5 + brow_inner_up * 0.5 * _mean(scores, "mouthStretchLeft", "mouthStretchRight"),
        "disgusted": _mean(scores, "noseSneerLeft", "noseSneerRight") * 0.7
        + scores.get("mouthUpperUpLeft", 0.0) * 0.15
        + scores.get("mouthUpperUpRight", 0.0) * 0.15,
        "surprised": scores.get("jawOpen", 0.0) * 0.5
        + _mean(scores, "browOuterUpLeft", "browOuterUpRight") * 0.3
        + eye_wide * 0.2,
    }
    raw = {k: float(np.clip(v, 0.0, 1.0)) for k, v in raw.items()}
    raw["neutral"] = max(0.0, 1.0 - sum(raw.values()))

    total = sum(raw.values())
    if total <= 0:
        return ExpressionVector(neutral=1.0)
    return ExpressionVector.from_mapping({k: v / total for k, v in raw.items()})
