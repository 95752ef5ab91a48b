from __future__ import annotations

import numpy as np
import pytest

pytest.importorskip("cv2")

from live_coach.main import BAR_BG, PANEL_W, TARGET_COLOR, build_panel, draw_bar, score_color  # noqa: E402
from live_coach.models import DashboardMetrics  # noqa: E402


def test_bar_fill_tracks_score_and_target_tick():
    panel = np.zeros((40, 220, 3), dtype=np.uint8)
    draw_bar(panel, (10, 10), (200, 12), 50, target=80)
    row = panel[16]
    assert tuple(row[60]) == score_color(50)
    assert tuple(row[150]) == BAR_BG
    assert tuple(row[170]) == TARGET_COLOR


def test_bar_without_target_has_no_tick():
    panel = np.zeros((40, 220, 3), dtype=np.uint8)
    draw_bar(panel, (10, 10), (200, 12), 100)
    assert not (panel == TARGET_COLOR).all(axis=2).any()


def test_panel_draws_targets():
    metrics = DashboardMetrics(confidence=90)
    plain = build_panel(480, metrics, {}, True)
    marked = build_panel(480, metrics, {}, True, {"Confidence": 80})
    assert plain.shape == (480, PANEL_W, 3)
    assert not (plain == TARGET_COLOR).all(axis=2).any()
    assert (marked == TARGET_COLOR).all(axis=2).any()
