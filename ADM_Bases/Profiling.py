"""
Profiling.py - Per-DOM Profiling / Local PD Control
---------------------------------------------------
Each DOM keeps its own buffer of (position, performance) samples. With enough
samples the DOM is steered by a local PD correction instead of the global
budget allocator.

PD signal:   P = recency-weighted mean performance - target
             D = recency-weighted slope(performance over position) / dampening
             signal = clamp(P + D, +-max_signal_per_round)
Guards:      too few samples  -> None (caller falls back to the allocator)
             too little spread in positions -> 0.0 (not yet explored)
Exploration: once a DOM has been converged for N rounds it gets a small
             deterministic nudge.
"""

import logging
import math
import time
from collections import deque
from dataclasses import dataclass
from typing import Iterable, Optional

from adm_config import (
    ADMConfig,
    DOMType,
    ALL_DOMS,
    DOM_NUDGE_EDGE_MARGIN,
    DOM_PROFILE_CAPACITY,
    POSITION_MAX,
    POSITION_MIN,
    clamp_signal,
    clamp_unit,
    coerce_number,
)
from ADM_Bases.History import least_squares_slope, recency_weight

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PerformanceDataPoint:
    timestamp: float
    value: float
    performance: float

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, "value": self.value, "performance": self.performance}

    @classmethod
    def from_dict(cls, data: dict) -> "PerformanceDataPoint":
        return cls(
            timestamp=coerce_number(data.get("timestamp"), 0.0),
            value=clamp_unit(coerce_number(data.get("value"), 0.5)),
            performance=clamp_unit(coerce_number(data.get("performance"), 0.5)),
        )


class DOMPerformanceProfile:
    """Capped FIFO buffer of samples for one DOM."""

    __slots__ = ("dom_type", "_points")

    def __init__(self, dom_type: DOMType, points: Iterable[PerformanceDataPoint] = ()):
        self.dom_type = DOMType(dom_type)
        self._points: deque = deque(points, maxlen=DOM_PROFILE_CAPACITY)

    def __len__(self) -> int:
        return len(self._points)

    @property
    def points(self) -> list:
        return list(self._points)

    def record_performance(self, timestamp: float, dom_value: float, performance: float) -> None:
        self._points.append(
            PerformanceDataPoint(timestamp=timestamp, value=clamp_unit(dom_value), performance=clamp_unit(performance))
        )

    def to_dict(self) -> dict:
        return {
            "domType": self.dom_type.value,
            "performanceByValue": [point.to_dict() for point in self._points],
        }

    @classmethod
    def from_dict(cls, dom_type: DOMType, data: dict) -> "DOMPerformanceProfile":
        raw_points = (data or {}).get("performanceByValue") or []
        return cls(dom_type, (PerformanceDataPoint.from_dict(p) for p in raw_points))


def empty_profiles() -> dict:
    return {dom: DOMPerformanceProfile(dom) for dom in ALL_DOMS}


def calculate_standard_deviation(values: list) -> float:
    """Population standard deviation (0.0 for fewer than two values)."""
    n = len(values)
    if n < 2:
        return 0.0
    mean = sum(values) / n
    return math.sqrt(sum((v - mean) ** 2 for v in values) / n)


def calculate_weighted_slope(points: list, weights: list) -> float:
    """Weighted least-squares slope of performance over DOM position."""
    return least_squares_slope([p.value for p in points], [p.performance for p in points], weights)


class DOMProfiler:

    __slots__ = ("_config", "profiles", "_converged_rounds", "_round_index")

    def __init__(self, config: ADMConfig, profiles: Optional[dict] = None):
        self._config = config
        self.profiles = empty_profiles()
        if profiles:
            self.profiles.update(profiles)
        self._converged_rounds = {dom: 0 for dom in ALL_DOMS}
        self._round_index = 0

    def snapshot_profiles(self) -> dict:
        """Independent copies of every profile; safe to serialize off the lock."""
        return {dom: DOMPerformanceProfile(dom, profile.points) for dom, profile in self.profiles.items()}

    def record(self, dom_type: DOMType, timestamp: float, position: float, performance: float) -> None:
        self.profiles[dom_type].record_performance(timestamp, position, performance)

    def has_sufficient_data(self, dom_type: DOMType) -> bool:
        return len(self.profiles[dom_type]) >= self._config.dom_min_data_points_for_profiling

    def _weights(self, points: list, now: float) -> list:
        half_life = self._config.recency_half_life_hours
        return [recency_weight(p.timestamp, now, half_life) for p in points]

    def calculate_adaptation_signal(self, dom_type: DOMType, now: Optional[float] = None) -> Optional[float]:
        """Local PD signal for one DOM, or None when the DOM lacks samples."""
        if not self.has_sufficient_data(dom_type):
            return None

        cfg = self._config
        now = time.time() if now is None else now
        points = self.profiles[dom_type].points

        if calculate_standard_deviation([p.value for p in points]) < cfg.minimum_dom_variance_threshold:
            return 0.0

        weights = self._weights(points, now)
        total_w = sum(weights)
        if total_w <= 0:
            return 0.0

        mean_perf = sum(w * p.performance for w, p in zip(weights, points)) / total_w
        proportional = mean_perf - cfg.dom_profiling_performance_target
        derivative = calculate_weighted_slope(points, weights) / cfg.dom_slope_dampening_factor
        return clamp_signal(proportional + derivative, cfg.dom_max_signal_per_round)

    # Local Confidence: consistency + data sufficiency + P/D agreement
    def calculate_local_confidence(self, dom_type: DOMType, now: Optional[float] = None) -> float:
        cfg = self._config
        points = self.profiles[dom_type].points
        if not points:
            return 0.0
        now = time.time() if now is None else now

        perf_std = calculate_standard_deviation([p.performance for p in points])
        variance_term = 1.0 - min(1.0, perf_std / 0.5)
        data_term = min(1.0, len(points) / max(1, cfg.dom_min_data_points_for_profiling))

        weights = self._weights(points, now)
        total_w = sum(weights)
        agreement = 1.0
        if total_w > 0:
            proportional = sum(w * p.performance for w, p in zip(weights, points)) / total_w - cfg.dom_profiling_performance_target
            slope = calculate_weighted_slope(points, weights)
            if abs(proportional) > 1e-6 and abs(slope) > 1e-6 and (proportional > 0) != (slope > 0):
                agreement = 0.0

        return clamp_unit(0.5 * variance_term + 0.3 * data_term + 0.2 * agreement)

    def advance_round(self) -> int:
        self._round_index += 1
        return self._round_index

    def _nudge(self, position: float) -> float:
        cfg = self._config
        if position <= POSITION_MIN or position >= POSITION_MAX:
            magnitude = cfg.dom_boundary_nudge_factor
        else:
            magnitude = cfg.dom_exploration_nudge_factor

        if position <= POSITION_MIN + DOM_NUDGE_EDGE_MARGIN:
            return magnitude
        if position >= POSITION_MAX - DOM_NUDGE_EDGE_MARGIN:
            return -magnitude
        return magnitude if self._round_index % 2 == 0 else -magnitude

    def apply_modulation(
        self, dom_type: DOMType, current_position: float, desired_position: float, confidence: float
    ) -> float:
        """Move one DOM toward the desired position and return the new position."""
        cfg = self._config
        signal = desired_position - current_position
        easing = signal < 0
        confidence_multiplier = max(cfg.min_confidence_multiplier, clamp_unit(confidence))

        delta = (
            signal
            * cfg.smoothing_factor(dom_type, easing)
            * cfg.rate_multiplier(dom_type, easing)
            * confidence_multiplier
        )
        delta = clamp_signal(delta, cfg.dom_max_signal_per_round)

        if abs(signal) < cfg.dom_convergence_threshold:
            self._converged_rounds[dom_type] += 1
        else:
            self._converged_rounds[dom_type] = 0

        nudged = False
        if self._converged_rounds[dom_type] >= cfg.dom_convergence_duration:
            delta += self._nudge(current_position)
            self._converged_rounds[dom_type] = 0
            nudged = True

        new_position = clamp_unit(current_position + delta)
        if nudged:
            logger.debug(
                {
                    "event": "dom_exploration_nudge",
                    "dom": dom_type.value,
                    "from": round(current_position, 4),
                    "to": round(new_position, 4),
                }
            )
        return new_position
