from __future__ import annotations

import pytest

pytest.importorskip("mediapipe")

from live_coach import detector  # noqa: E402


class FakeTask:
    instances = []

    def __init__(self) -> None:
        self.closed = False
        FakeTask.instances.append(self)

    @classmethod
    def create_from_options(cls, options):
        return cls()

    def close(self) -> None:
        self.closed = True


class BrokenLandmarker:
    @classmethod
    def create_from_options(cls, options):
        raise ValueError("landmarker bundle is corrupt")


@pytest.fixture
def fake_tasks(monkeypatch):
    FakeTask.instances = []
    monkeypatch.setattr(detector, "_ensure_model", lambda path, url: path)
    monkeypatch.setattr(detector, "BaseOptions", lambda **kwargs: kwargs)
    monkeypatch.setattr(detector, "MPFaceDetectorOptions", lambda **kwargs: kwargs)
    monkeypatch.setattr(detector, "FaceLandmarkerOptions", lambda **kwargs: kwargs)
    monkeypatch.setattr(detector, "MPFaceDetector", FakeTask)
    monkeypatch.setattr(detector, "FaceLandmarker", FakeTask)
    return monkeypatch


def test_close_releases_both_tasks(fake_tasks):
    with detector.MediaPipeFaceDetector():
        pass
    assert len(FakeTask.instances) == 2
    assert all(task.closed for task in FakeTask.instances)


def test_landmarker_failure_closes_box_detector(fake_tasks):
    fake_tasks.setattr(detector, "FaceLandmarker", BrokenLandmarker)
    with pytest.raises(ValueError):
        detector.MediaPipeFaceDetector()
    [box_detector] = FakeTask.instances
    assert box_detector.closed


def test_cached_model_is_not_downloaded(tmp_path, monkeypatch):
    bundle = tmp_path / "face_landmarker.task"
    bundle.write_bytes(b"model")

    def fail(*args):
        raise AssertionError("should not download")

    monkeypatch.setattr(detector.urllib.request, "urlretrieve", fail)
    assert detector._ensure_model(bundle, "https://example.invalid/model") == bundle


def test_failed_download_raises_runtime_error(tmp_path, monkeypatch):
    def offline(*args):
        raise OSError("network unreachable")

    monkeypatch.setattr(detector.urllib.request, "urlretrieve", offline)
    with pytest.raises(RuntimeError, match="face_landmarker.task"):
        detector._ensure_model(tmp_path / "face_landmarker.task", "https://example.invalid/model")
