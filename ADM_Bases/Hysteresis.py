"""
Hysteresis.py - Adaptation Signal Gate
--------------------------------------
Converts a performance score into a signed adaptation signal in [-1, 1] and
a discrete direction, with dead zones and anti-oscillation damping.

Pipeline: 1) Dead zone around the target 2) Damped signal inside the neutral
          band, doubled beyond the outer thresholds 3) Signal dead zone
          4) Direction admission: reversals need the previous direction to be
          stable or enough rounds behind it
"""

import logging
from dataclasses import dataclass
from enum import Enum

from adm_config import ADMConfig, clamp_signal, clamp_unit

logger = logging.getLogger(__name__)


class AdaptationDirection(str, Enum):
    STABLE = "stable"
    INCREASING = "increasing"
    DECREASING = "decreasing"


@dataclass(frozen=True)
class AdaptationThresholds:
    increase_threshold: float
    decrease_threshold: float


def _is_reversal(previous: AdaptationDirection, new: AdaptationDirection) -> bool:
    return {previous, new} == {AdaptationDirection.INCREASING, AdaptationDirection.DECREASING}


def _direction_for(signal: float) -> AdaptationDirection:
    return AdaptationDirection.INCREASING if signal > 0 else AdaptationDirection.DECREASING


class SignalGate:
    """Base gate: owns the persisted direction state and the plain signal rule."""

    __slots__ = ("_config", "last_direction", "stable_count", "_candidate", "_candidate_rounds")

    def __init__(
        self,
        config: ADMConfig,
        last_direction: AdaptationDirection = AdaptationDirection.STABLE,
        stable_count: int = 0,
    ):
        self._config = config
        self.last_direction = AdaptationDirection(last_direction)
        self.stable_count = max(0, int(stable_count))
        self._candidate = None
        self._candidate_rounds = 0

    def base_thresholds(self) -> AdaptationThresholds:
        return AdaptationThresholds(
            increase_threshold=self._config.adaptation_increase_threshold,
            decrease_threshold=self._config.adaptation_decrease_threshold,
        )

    # Effective Thresholds: widen the neutral band when confidence is low
    def effective_thresholds(self, confidence_total: float) -> AdaptationThresholds:
        widening = (1.0 - clamp_unit(confidence_total)) * self._config.confidence_threshold_widening_factor
        base = self.base_thresholds()
        return AdaptationThresholds(
            increase_threshold=base.increase_threshold + widening,
            decrease_threshold=base.decrease_threshold - widening,
        )

    def calculate_signal(
        self, score: float, thresholds: AdaptationThresholds, target: float
    ) -> tuple[float, AdaptationDirection]:
        raw = (score - target) * 2.0
        if abs(raw) < self._config.adaptation_signal_dead_zone:
            return 0.0, AdaptationDirection.STABLE
        return clamp_signal(raw), _direction_for(raw)

    def is_change_allowed(self, direction: AdaptationDirection) -> bool:
        return True

    def admit(self, signal: float, direction: AdaptationDirection) -> tuple[float, AdaptationDirection]:
        """Apply the admission rule and record the round's direction."""
        if not self.is_change_allowed(direction):
            if direction == self._candidate:
                self._candidate_rounds += 1
            else:
                self._candidate = direction
                self._candidate_rounds = 1
            if self._candidate_rounds < self._config.min_stable_rounds_before_direction_change:
                logger.debug(
                    {
                        "event": "direction_change_suppressed",
                        "held": self.last_direction.value,
                        "candidate": direction.value,
                        "candidate_rounds": self._candidate_rounds,
                    }
                )
                return 0.0, AdaptationDirection.STABLE
        self._record(direction)
        return signal, direction

    def _record(self, direction: AdaptationDirection) -> None:
        self._candidate = None
        self._candidate_rounds = 0
        if direction == self.last_direction:
            self.stable_count += 1
        else:
            self.last_direction = direction
            self.stable_count = 1


class HysteresisGate(SignalGate):
    """Dead-zoned, threshold-damped gate that resists direction reversals."""

    __slots__ = ()

    def calculate_adaptation_signal_with_hysteresis(
        self, score: float, thresholds: AdaptationThresholds, target: float
    ) -> tuple[float, AdaptationDirection]:
        cfg = self._config
        distance = abs(score - target)
        if distance < cfg.hysteresis_dead_zone:
            return 0.0, AdaptationDirection.STABLE

        beyond_outer = score > thresholds.increase_threshold or score < thresholds.decrease_threshold
        multiplier = 2.0 if beyond_outer else 1.0
        raw = (score - target) * multiplier

        if abs(raw) < cfg.adaptation_signal_dead_zone:
            return 0.0, AdaptationDirection.STABLE
        return clamp_signal(raw), _direction_for(raw)

    def calculate_signal(
        self, score: float, thresholds: AdaptationThresholds, target: float
    ) -> tuple[float, AdaptationDirection]:
        return self.calculate_adaptation_signal_with_hysteresis(score, thresholds, target)

    def is_change_allowed(self, direction: AdaptationDirection) -> bool:
        if not _is_reversal(self.last_direction, direction):
            return True
        return self.stable_count >= self._config.min_stable_rounds_before_direction_change


def create_signal_gate(
    config: ADMConfig,
    last_direction: AdaptationDirection = AdaptationDirection.STABLE,
    stable_count: int = 0,
) -> SignalGate:
    """Pick the gate strategy once, from the config flag."""
    if config.enable_hysteresis:
        return HysteresisGate(config, last_direction, stable_count)
    return SignalGate(config, last_direction, stable_count)
