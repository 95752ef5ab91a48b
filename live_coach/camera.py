from __future__ import annotations

import logging
import threading
from typing import Optional

import cv2
import numpy as np

from .errors import AcquisitionError
from .models import FrameSize

logger = logging.getLogger(__name__)


class CameraStream:
    """Exclusive owner of one OpenCV capture device."""

    def __init__(self, camera_index: int = 0, width: int = 640, height: int = 480, fps: int = 30) -> None:
        self.camera_index = camera_index
        self._lock = threading.Lock()  # reads run on a worker thread
        self._cap = cv2.VideoCapture(camera_index)
        if not self._cap.isOpened():
            self._cap.release()
            raise AcquisitionError(
                "camera", "No camera found - please connect a camera and refresh"
            )
        self._cap.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        self._cap.set(cv2.CAP_PROP_FRAME_HEIGHT, height)
        self._cap.set(cv2.CAP_PROP_FPS, fps)

        success, frame = self._cap.read()
        if not success:
            self._cap.release()
            raise AcquisitionError(
                "camera",
                "Camera is in use by another application - please close other apps using the camera",
            )
        self._frame_size = FrameSize(width=int(frame.shape[1]), height=int(frame.shape[0]))
        logger.info("Camera %d opened at %dx%d", camera_index, self._frame_size.width, self._frame_size.height)

    @property
    def frame_size(self) -> FrameSize:
        return self._frame_size

    def read(self) -> Optional[np.ndarray]:
        with self._lock:
            if self._cap is None:
                return None
            success, frame = self._cap.read()
        if not success:
            return None
        return frame

    def close(self) -> None:
        with self._lock:
            if self._cap is None:
                return
            self._cap.release()
            self._cap = None
        logger.info("Camera %d released", self.camera_index)

    def __enter__(self) -> "CameraStream":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()


def open_camera(camera_index: int = 0, width: int = 640, height: int = 480) -> CameraStream:
    """Request the user-facing camera at an ideal 640x480."""
    return CameraStream(camera_index=camera_index, width=width, height=height)
