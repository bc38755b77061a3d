from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Any

MAX_POINTS = 1440


@dataclass(frozen=True)
class HistoryPoint:
    timestamp: float
    value: float
    delta: float

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "value": self.value, "delta": self.delta}


class PortfolioHistory:
    """Rolling portfolio value series, one point per sample (a day at one-minute sampling)."""

    def __init__(self, max_points: int = MAX_POINTS):
        self._points: deque[HistoryPoint] = deque(maxlen=max(1, int(max_points)))

    def __len__(self) -> int:
        return len(self._points)

    def clear(self) -> None:
        self._points.clear()

    def record(self, timestamp: float, value: float) -> HistoryPoint:
        prev = self._points[-1].value if self._points else value
        point = HistoryPoint(timestamp=float(timestamp), value=float(value), delta=float(value) - prev)
        self._points.append(point)
        return point

    def to_list(self) -> list[dict[str, Any]]:
        return [p.to_dict() for p in self._points]

    def load(self, rows: list[dict[str, Any]] | None) -> None:
        self._points.clear()
        for r in rows or []:
            self._points.append(
                HistoryPoint(
                    timestamp=float(r.get("timestamp", 0.0) or 0.0),
                    value=float(r.get("value", 0.0) or 0.0),
                    delta=float(r.get("delta", 0.0) or 0.0),
                )
            )
