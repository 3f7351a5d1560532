"""
History.py - Rolling Performance History
----------------------------------------
Bounded, time-ordered buffer of past round scores plus the statistics the
controller derives from it (average, trend, variance, confidence).

Concepts: Rolling window (FIFO), least-squares trend over round index,
          recency weighting (exponential half-life on entry age)
"""

import math
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Optional

from adm_config import (
    ADMConfig,
    DOMType,
    KPIType,
    CONFIDENCE_DIRECTION_BASELINE,
    CONFIDENCE_HISTORY_BASELINE,
    clamp_unit,
    coerce_number,
)


@dataclass(frozen=True)
class PerformanceHistoryEntry:
    timestamp: float
    overall_score: float
    normalized_kpis: dict = field(default_factory=dict)
    arousal_level: float = 0.5
    current_dom_values: dict = field(default_factory=dict)
    session_context: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp,
            "overallScore": self.overall_score,
            "normalizedKPIs": {k.value: v for k, v in self.normalized_kpis.items()},
            "arousalLevel": self.arousal_level,
            "currentDOMValues": {k.value: v for k, v in self.current_dom_values.items()},
            "sessionContext": self.session_context,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PerformanceHistoryEntry":
        kpis = {}
        for key, value in (data.get("normalizedKPIs") or {}).items():
            try:
                kpis[KPIType(key)] = float(value)
            except (TypeError, ValueError):
                continue
        dom_values = {}
        for key, value in (data.get("currentDOMValues") or {}).items():
            try:
                dom_values[DOMType(key)] = float(value)
            except (TypeError, ValueError):
                continue
        return cls(
            timestamp=coerce_number(data.get("timestamp"), 0.0),
            overall_score=clamp_unit(coerce_number(data.get("overallScore"), 0.5)),
            normalized_kpis=kpis,
            arousal_level=clamp_unit(coerce_number(data.get("arousalLevel"), 0.5)),
            current_dom_values=dom_values,
            session_context=data.get("sessionContext"),
        )


@dataclass(frozen=True)
class Confidence:
    total: float
    variance: float
    direction: float
    history: float


NEUTRAL_CONFIDENCE = Confidence(total=0.5, variance=0.5, direction=0.5, history=0.5)


# Recency Weight: 1.0 for fresh entries, 0.5 after one half-life
def recency_weight(timestamp: float, now: float, half_life_hours: float) -> float:
    if half_life_hours <= 0:
        return 1.0
    age_hours = max(0.0, now - timestamp) / 3600.0
    return math.exp(-age_hours * math.log(2.0) / half_life_hours)


def least_squares_slope(xs: list, ys: list, weights: Optional[list] = None) -> float:
    """Weighted least-squares slope of ys over xs (0.0 when undefined)."""
    n = len(xs)
    if n < 2 or n != len(ys):
        return 0.0
    if weights is None:
        weights = [1.0] * n
    total_w = sum(weights)
    if total_w <= 0:
        return 0.0
    mean_x = sum(w * x for w, x in zip(weights, xs)) / total_w
    mean_y = sum(w * y for w, y in zip(weights, ys)) / total_w
    numerator = 0.0
    denominator = 0.0
    for w, x, y in zip(weights, xs, ys):
        dx = x - mean_x
        numerator += w * dx * (y - mean_y)
        denominator += w * dx * dx
    if denominator < 1e-12:
        return 0.0
    return numerator / denominator


class HistoryTracker:

    __slots__ = ("_config", "_entries")

    def __init__(self, config: ADMConfig, entries: Iterable[PerformanceHistoryEntry] = ()):
        self._config = config
        self._entries: deque = deque(maxlen=max(1, config.performance_history_window_size))
        self.load(entries)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def entries(self) -> list:
        return list(self._entries)

    def add_performance_entry(self, entry: PerformanceHistoryEntry) -> None:
        # deque(maxlen) evicts the oldest entry on overflow
        self._entries.append(entry)

    def load(self, entries: Iterable[PerformanceHistoryEntry]) -> None:
        """Replace the buffer, keeping only the most recent window."""
        self._entries.clear()
        for entry in entries:
            self._entries.append(entry)

    def get_performance_metrics(self) -> tuple[float, float, float]:
        """Return (average, trend, variance) of the buffered scores."""
        scores = [e.overall_score for e in self._entries]
        if not scores:
            return 0.5, 0.0, 0.0
        n = len(scores)
        average = sum(scores) / n
        if n == 1:
            return average, 0.0, 0.0
        variance = sum((s - average) ** 2 for s in scores) / n
        trend = least_squares_slope(list(range(n)), scores)
        return average, trend, variance

    def recency_weights(self, now: Optional[float] = None) -> list:
        now = time.time() if now is None else now
        half_life = self._config.recency_half_life_hours
        return [recency_weight(e.timestamp, now, half_life) for e in self._entries]

    # Confidence: how much to trust the global signal this round
    # variance -> consistency of recent scores, direction -> stability of the
    # adaptation direction, history -> recency-weighted amount of evidence
    def calculate_confidence(self, direction_stable_count: int, now: Optional[float] = None) -> Confidence:
        if not self._entries:
            return NEUTRAL_CONFIDENCE

        weights = self.recency_weights(now)
        scores = [e.overall_score for e in self._entries]
        total_w = sum(weights)
        if total_w > 0:
            mean = sum(w * s for w, s in zip(weights, scores)) / total_w
            weighted_var = sum(w * (s - mean) ** 2 for w, s in zip(weights, scores)) / total_w
        else:
            weighted_var = 0.0

        variance_conf = clamp_unit(1.0 - math.sqrt(weighted_var) / 0.5)
        direction_conf = clamp_unit(direction_stable_count / CONFIDENCE_DIRECTION_BASELINE)
        history_conf = clamp_unit(total_w / CONFIDENCE_HISTORY_BASELINE)

        total = 0.4 * variance_conf + 0.3 * direction_conf + 0.3 * history_conf
        return Confidence(
            total=clamp_unit(total),
            variance=variance_conf,
            direction=direction_conf,
            history=history_conf,
        )
