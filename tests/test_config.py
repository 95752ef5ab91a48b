from __future__ import annotations

import dataclasses

import pytest

from live_coach.config import SessionConfig, load_config


def test_defaults():
    cfg = SessionConfig()
    assert cfg.analysis_interval == 1.0
    assert cfg.history_interval == 10.0
    assert cfg.gate.stability_count == 2
    assert cfg.aggregator.history_size == 30
    assert cfg.feedback.debounce_seconds == 3.0


def test_env_overrides(monkeypatch):
    monkeypatch.setenv("LIVE_COACH_CAMERA_INDEX", "2")
    monkeypatch.setenv("LIVE_COACH_FEEDBACK_DEBOUNCE", "1.5")
    monkeypatch.setenv("LIVE_COACH_MIN_FACE_RATIO", "0.1")
    cfg = load_config()
    assert cfg.camera_index == 2
    assert cfg.feedback.debounce_seconds == 1.5
    assert cfg.gate.min_area_ratio == 0.1


def test_bad_env_value_keeps_default(monkeypatch):
    monkeypatch.setenv("LIVE_COACH_STABILITY_COUNT", "two")
    assert load_config().gate.stability_count == 2


def test_config_is_frozen():
    cfg = SessionConfig()
    with pytest.raises(dataclasses.FrozenInstanceError):
        cfg.camera_index = 3  # type: ignore[misc]
