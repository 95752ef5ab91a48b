"""CSV log of dashboard snapshots, one row per history tick."""

from __future__ import annotations

import csv
import logging
import pathlib
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence, TextIO

from .models import DASHBOARD_KEYS, BodyLanguageMetrics, DashboardMetrics

logger = logging.getLogger(__name__)


@dataclass
class DataLogger:
    output_path: pathlib.Path
    columns: Sequence[str] = DASHBOARD_KEYS
    overwrite: bool = False
    rows_written: int = field(init=False, default=0)
    _handle: Optional[TextIO] = field(init=False, default=None, repr=False)
    _writer: Optional[Any] = field(init=False, default=None, repr=False)

    def __post_init__(self) -> None:
        self.output_path = pathlib.Path(self.output_path)
        self.columns = tuple(self.columns)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        fresh = self.overwrite or not self.output_path.exists() or self.output_path.stat().st_size == 0
        self._handle = self.output_path.open("w" if self.overwrite else "a", newline="")
        self._writer = csv.writer(self._handle)
        if fresh:
            self._writer.writerow(["timestamp", "posture", "movement", *self.columns])
        logger.info("Logging snapshots to %s", self.output_path)

    def log_metrics(
        self,
        metrics: DashboardMetrics,
        body: Optional[BodyLanguageMetrics] = None,
        now: Optional[float] = None,
    ) -> None:
        if self._writer is None or self._handle is None:
            raise ValueError(f"DataLogger for {self.output_path} is closed")
        ts = time.time() if now is None else now
        self._writer.writerow([
            f"{ts:.3f}",
            body.posture.value if body is not None else "",
            body.movement.value if body is not None else "",
            *(metrics.get(column) for column in self.columns),
        ])
        self._handle.flush()
        self.rows_written += 1

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None
            self._writer = None

    def __enter__(self) -> "DataLogger":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
