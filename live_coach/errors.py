"""
Error Types
============
Only acquisition failures ever surface to the caller. Per-frame detection
problems are handled inside the analysis loops and never raised past them.
"""

from __future__ import annotations


class LiveCoachError(Exception):
    """Base class for errors raised by the live coach."""


class AcquisitionError(LiveCoachError):
    """Camera or microphone could not be opened.

    Fatal to the owning analyzer only. ``message`` is safe to show to the user.
    """

    def __init__(self, device: str, message: str) -> None:
        super().__init__(f"{device}: {message}")
        self.device = device
        self.message = message
