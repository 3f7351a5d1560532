"""
Session.py - Session Phase Scaling
----------------------------------
Estimates how many rounds a session will hold and runs the warmup phase:
difficulty starts scaled down and ramps back to full scale over the warmup
rounds, while the controller aims at an easier performance target.
"""

import logging
import math
from typing import Optional

from adm_config import (
    ADMConfig,
    DOMType,
    ID_INTERVAL_HIGH_AROUSAL,
    ID_INTERVAL_LOW_AROUSAL,
    clamp_unit,
)

logger = logging.getLogger(__name__)

# Rounds are estimated at mid difficulty
ESTIMATION_DIFFICULTY = 0.5


def _lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


def estimate_round_duration(arousal: float, config: ADMConfig) -> float:
    """Seconds for one round (response window + inter-trial interval) at this arousal."""
    easy_lo, hard_lo = config.dom_ranges_min_arousal[DOMType.RESPONSE_TIME]
    easy_hi, hard_hi = config.dom_ranges_max_arousal[DOMType.RESPONSE_TIME]
    easiest = _lerp(easy_lo, easy_hi, arousal)
    hardest = _lerp(hard_lo, hard_hi, arousal)
    response_time = hardest + (easiest - hardest) * (1.0 - ESTIMATION_DIFFICULTY)

    low_iti = sum(ID_INTERVAL_LOW_AROUSAL) / 2.0
    high_iti = sum(ID_INTERVAL_HIGH_AROUSAL) / 2.0
    return response_time + _lerp(low_iti, high_iti, arousal)


def estimate_expected_rounds(session_duration: Optional[float], config: ADMConfig, initial_arousal: float) -> int:
    """
    Walk the interactive part of the session, letting arousal decay
    exponentially from its initial level, and count the rounds that fit.
    """
    if not session_duration or session_duration <= 0:
        return 0
    horizon = session_duration * config.interactive_session_proportion
    if horizon <= 0:
        return 0

    initial_arousal = clamp_unit(initial_arousal)
    elapsed = 0.0
    rounds = 0
    while elapsed < horizon:
        progress = elapsed / horizon
        arousal = initial_arousal * math.exp(-config.session_arousal_decay_constant * progress)
        duration = estimate_round_duration(min(initial_arousal, max(0.0, arousal)), config)
        if duration <= 0:
            break
        elapsed += duration
        if elapsed < horizon:
            rounds += 1
    return rounds


class SessionPhaseScaler:

    __slots__ = (
        "_config",
        "session_duration",
        "expected_rounds",
        "warmup_rounds",
        "rounds_completed",
        "_reductions",
    )

    def __init__(self, config: ADMConfig, session_duration: Optional[float] = None, initial_arousal: float = 0.5):
        self._config = config
        self.session_duration = session_duration
        self.rounds_completed = 0
        self._reductions: dict = {}

        if config.enable_session_phases and session_duration:
            self.expected_rounds = estimate_expected_rounds(session_duration, config, initial_arousal)
        else:
            self.expected_rounds = 0

        if config.enable_session_phases and self.expected_rounds > 0:
            self.warmup_rounds = max(1, int(round(self.expected_rounds * config.warmup_phase_proportion)))
        else:
            self.warmup_rounds = 0

        logger.info(
            {
                "event": "session_phases_estimated",
                "session_duration": session_duration,
                "expected_rounds": self.expected_rounds,
                "warmup_rounds": self.warmup_rounds,
            }
        )

    @property
    def is_degenerate(self) -> bool:
        """A session was requested but not a single round fits in it."""
        return bool(self._config.enable_session_phases and self.session_duration and self.expected_rounds == 0)

    @property
    def in_warmup(self) -> bool:
        return self.rounds_completed < self.warmup_rounds

    def performance_target(self, default_target: float) -> float:
        return self._config.warmup_performance_target if self.in_warmup else default_target

    def budget_multiplier(self) -> float:
        return self._config.warmup_adaptation_rate_multiplier if self.in_warmup else 1.0

    # Initial Warmup: scale positions down, never below the floor
    def apply_initial_warmup(self, positions: dict) -> dict:
        if self.warmup_rounds <= 0:
            return dict(positions)
        cfg = self._config
        warmed = {}
        self._reductions = {}
        for dom, position in positions.items():
            scaled = max(position * cfg.warmup_initial_difficulty_multiplier, cfg.warmup_position_floor)
            # positions already below the floor are left alone
            scaled = clamp_unit(min(position, scaled))
            warmed[dom] = scaled
            self._reductions[dom] = position - scaled
        return warmed

    def ramp(self, positions: dict) -> None:
        """Close out one round; during warmup give back a slice of the reduction."""
        if self.in_warmup and self._reductions:
            for dom, reduction in self._reductions.items():
                if dom in positions:
                    positions[dom] = clamp_unit(positions[dom] + reduction / self.warmup_rounds)
        self.rounds_completed += 1
        if self.rounds_completed == self.warmup_rounds:
            logger.info({"event": "warmup_complete", "rounds": self.rounds_completed})
