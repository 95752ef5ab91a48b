from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import Dict, List, Optional

from .analytics import calculate_trend
from .models import BodyLanguageMetrics, DashboardMetrics

LABELS = {
    "confidence": "Conf",
    "professionalism": "Prof",
    "engagement": "Eng",
    "speech_clarity": "Clarity",
    "speech_pace": "Pace",
    "eye_contact": "Eye",
    "volume": "Vol",
    "response_time": "Resp",
    "overall_score": "Overall",
}


@dataclass
class Dashboard:
    verbose: bool = False

    @staticmethod
    def _trend(metrics: DashboardMetrics, name: str) -> str:
        """Change since the last snapshot, e.g. " (+5%)"; empty without one."""
        previous = getattr(metrics.previous, name, None)
        trend = calculate_trend(metrics.get(name), previous)
        if not trend:
            return ""
        return f" ({trend:+d}%)"

    def render(
        self,
        metrics: DashboardMetrics,
        body: Optional[BodyLanguageMetrics] = None,
        feedback: Optional[Dict[str, List[str]]] = None,
    ) -> None:
        if self.verbose:
            sys.stdout.write("\033[2J\033[H")  # simple terminal clear
        lines = [f"Overall: {metrics.overall_score}{self._trend(metrics, 'overall_score')}"]
        for name, value in metrics.as_dict().items():
            if name == "overall_score":
                continue
            lines.append(f"{LABELS.get(name, name)}: {value}{self._trend(metrics, name)}")
        if body is not None:
            lines.append(f"Posture: {body.posture.value}")
            lines.append(f"Movement: {body.movement.value}")
        if self.verbose and feedback:
            for title, messages in feedback.items():
                lines.append(f"{title}: {' / '.join(messages)}")
        output = "\n".join(lines)
        if self.verbose:
            print(output)
        else:
            sys.stdout.write("\r" + output.replace("\n", " | "))
            sys.stdout.flush()
