"""
Central configuration for the adaptive difficulty manager.
Keep all tunable constants here so the controller, the backend and tests
rely on one source. ADMConfig bundles them into a single value object;
derive variants with dataclasses.replace().
"""

from dataclasses import dataclass, field
from enum import Enum


class DOMType(str, Enum):
    TARGET_COUNT = "targetCount"
    RESPONSE_TIME = "responseTime"
    DISCRIMINATORY_LOAD = "discriminatoryLoad"
    MEAN_BALL_SPEED = "meanBallSpeed"
    BALL_SPEED_SD = "ballSpeedSD"


class KPIType(str, Enum):
    TASK_SUCCESS = "taskSuccess"
    TF_TTF_RATIO = "tfTtfRatio"
    REACTION_TIME = "reactionTime"
    RESPONSE_DURATION = "responseDuration"
    TAP_ACCURACY = "tapAccuracy"


ALL_DOMS = tuple(DOMType)
ALL_KPIS = tuple(KPIType)

# Normalized position bounds (0 = easiest, 1 = hardest)
POSITION_MIN = 0.0
POSITION_MAX = 1.0
POSITION_MIDPOINT = 0.5

# Arousal window over which DOM ranges are scaled
AROUSAL_OPERATIONAL_MIN = 0.35
AROUSAL_OPERATIONAL_MAX = 1.0
AROUSAL_SWITCH_THRESHOLD = 0.7

# DOM ranges: (easiest, hardest) at minimum and at maximum operational arousal
DOM_RANGES_MIN_AROUSAL = {
    DOMType.TARGET_COUNT: (5.0, 7.0),
    DOMType.RESPONSE_TIME: (10.0, 5.0),
    DOMType.DISCRIMINATORY_LOAD: (1.0, 0.65),
    DOMType.MEAN_BALL_SPEED: (25.0, 75.0),
    DOMType.BALL_SPEED_SD: (0.0, 25.0),
}
DOM_RANGES_MAX_AROUSAL = {
    DOMType.TARGET_COUNT: (1.0, 1.0),
    DOMType.RESPONSE_TIME: (2.0, 1.0),
    DOMType.DISCRIMINATORY_LOAD: (0.3, 0.075),
    DOMType.MEAN_BALL_SPEED: (700.0, 1000.0),
    DOMType.BALL_SPEED_SD: (75.0, 200.0),
}

# KPI weights (each set sums to 1.0)
KPI_WEIGHTS_LOW_MID_AROUSAL = {
    KPIType.TASK_SUCCESS: 0.6,
    KPIType.TF_TTF_RATIO: 0.225,
    KPIType.REACTION_TIME: 0.025,
    KPIType.RESPONSE_DURATION: 0.05,
    KPIType.TAP_ACCURACY: 0.10,
}
KPI_WEIGHTS_HIGH_AROUSAL = {
    KPIType.TASK_SUCCESS: 0.6,
    KPIType.TF_TTF_RATIO: 0.1,
    KPIType.REACTION_TIME: 0.15,
    KPIType.RESPONSE_DURATION: 0.10,
    KPIType.TAP_ACCURACY: 0.05,
}
KPI_WEIGHT_TRANSITION_START = 0.55
KPI_WEIGHT_TRANSITION_END = 0.85

# KPI normalization bounds
REACTION_TIME_BEST = 0.2
REACTION_TIME_WORST = 1.75
RESPONSE_DURATION_PER_TARGET_BEST = 0.2
RESPONSE_DURATION_PER_TARGET_WORST = 1.0
TAP_ACCURACY_BEST_POINTS = 0.0
TAP_ACCURACY_WORST_POINTS = 225.0

# DOM priorities (1 = lowest, 5 = highest)
DOM_PRIORITIES_LOW_MID_AROUSAL = {
    DOMType.TARGET_COUNT: 5.0,
    DOMType.RESPONSE_TIME: 4.0,
    DOMType.DISCRIMINATORY_LOAD: 3.0,
    DOMType.MEAN_BALL_SPEED: 2.0,
    DOMType.BALL_SPEED_SD: 1.0,
}
DOM_PRIORITIES_HIGH_AROUSAL = {
    DOMType.DISCRIMINATORY_LOAD: 5.0,
    DOMType.MEAN_BALL_SPEED: 4.0,
    DOMType.BALL_SPEED_SD: 3.0,
    DOMType.RESPONSE_TIME: 2.0,
    DOMType.TARGET_COUNT: 1.0,
}
DOM_PRIORITY_TRANSITION_START = 0.55
DOM_PRIORITY_TRANSITION_END = 0.85

# Direction-specific smoothing (easing reacts faster than hardening)
DOM_HARDENING_SMOOTHING = {
    DOMType.DISCRIMINATORY_LOAD: 0.3,
    DOMType.MEAN_BALL_SPEED: 0.2,
    DOMType.BALL_SPEED_SD: 0.1,
    DOMType.RESPONSE_TIME: 0.1,
    DOMType.TARGET_COUNT: 0.3,
}
DOM_EASING_SMOOTHING = {
    DOMType.DISCRIMINATORY_LOAD: 0.5,
    DOMType.MEAN_BALL_SPEED: 0.3,
    DOMType.BALL_SPEED_SD: 0.2,
    DOMType.RESPONSE_TIME: 0.15,
    DOMType.TARGET_COUNT: 0.15,
}
DEFAULT_SMOOTHING = 0.1

# Signal shaping
GLOBAL_PERFORMANCE_TARGET = 0.6
ADAPTATION_SIGNAL_DEAD_ZONE = 0.02
ADAPTATION_INCREASE_THRESHOLD = 0.8
ADAPTATION_DECREASE_THRESHOLD = 0.75
HYSTERESIS_DEAD_ZONE = 0.02
MIN_STABLE_ROUNDS_BEFORE_DIRECTION_CHANGE = 2
MAX_ADAPTATION_SIGNAL = 1.0

# History / trend
PERFORMANCE_HISTORY_WINDOW_SIZE = 20
MINIMUM_HISTORY_FOR_TREND = 3
CURRENT_PERFORMANCE_WEIGHT = 0.85
HISTORY_INFLUENCE_WEIGHT = 0.15
TREND_INFLUENCE_WEIGHT = 0.15
RECENCY_HALF_LIFE_HOURS = 24.0

# Confidence
MIN_CONFIDENCE_MULTIPLIER = 0.2
CONFIDENCE_THRESHOLD_WIDENING_FACTOR = 0.05
CONFIDENCE_HISTORY_BASELINE = 10
CONFIDENCE_DIRECTION_BASELINE = 5

# Session phases
INTERACTIVE_SESSION_PROPORTION = 0.65
SESSION_AROUSAL_DECAY_CONSTANT = 1.5
ID_INTERVAL_LOW_AROUSAL = (30.0, 50.0)
ID_INTERVAL_HIGH_AROUSAL = (10.0, 15.0)
WARMUP_PHASE_PROPORTION = 0.2
WARMUP_INITIAL_DIFFICULTY_MULTIPLIER = 0.9
WARMUP_POSITION_FLOOR = 0.3
WARMUP_PERFORMANCE_TARGET = 0.7
WARMUP_ADAPTATION_RATE_MULTIPLIER = 1.5

# DOM profiling / PD controller
DOM_PROFILE_CAPACITY = 200
DOM_PROFILING_PERFORMANCE_TARGET = 0.6
DOM_SLOPE_DAMPENING_FACTOR = 20.0
DOM_MIN_DATA_POINTS_FOR_PROFILING = 12
DOM_CONVERGENCE_THRESHOLD = 0.015
DOM_CONVERGENCE_DURATION = 3
DOM_EXPLORATION_NUDGE_FACTOR = 0.03
DOM_BOUNDARY_NUDGE_FACTOR = 0.05
DOM_NUDGE_EDGE_MARGIN = 0.2
MINIMUM_DOM_VARIANCE_THRESHOLD = 0.05
DOM_MAX_SIGNAL_PER_ROUND = 0.15
DOM_EASING_RATE_MULTIPLIER = 1.0
DOM_HARDENING_RATE_MULTIPLIER = 0.85
DOM_EASING_RATE_MULTIPLIER_BY_DOM = {
    DOMType.MEAN_BALL_SPEED: 0.8,
    DOMType.BALL_SPEED_SD: 0.8,
    DOMType.DISCRIMINATORY_LOAD: 1.25,
}
DOM_HARDENING_RATE_MULTIPLIER_BY_DOM = {
    DOMType.MEAN_BALL_SPEED: 0.5,
    DOMType.BALL_SPEED_SD: 0.5,
    DOMType.DISCRIMINATORY_LOAD: 1.1,
}

# Persistence
STATE_SCHEMA_VERSION = 2
STATE_DIRECTORY_DEFAULT = "ADMState"
STATE_DIRECTORY_ENV = "ADM_STATE_DIR"


def _copy(mapping: dict):
    return field(default_factory=lambda: dict(mapping))


@dataclass(frozen=True)
class ADMConfig:
    # Feature flags
    use_kpi_weight_interpolation: bool = True
    enable_hysteresis: bool = True
    enable_confidence_scaling: bool = True
    enable_session_phases: bool = True
    enable_dom_specific_profiling: bool = True
    clear_past_session_data: bool = False
    persist_dom_performance_profiles_in_state: bool = True

    # Arousal gating
    arousal_operational_min: float = AROUSAL_OPERATIONAL_MIN
    arousal_operational_max: float = AROUSAL_OPERATIONAL_MAX
    arousal_threshold_for_kpi_and_hierarchy_switch: float = AROUSAL_SWITCH_THRESHOLD
    dom_ranges_min_arousal: dict = _copy(DOM_RANGES_MIN_AROUSAL)
    dom_ranges_max_arousal: dict = _copy(DOM_RANGES_MAX_AROUSAL)

    # Scoring
    kpi_weights_low_mid_arousal: dict = _copy(KPI_WEIGHTS_LOW_MID_AROUSAL)
    kpi_weights_high_arousal: dict = _copy(KPI_WEIGHTS_HIGH_AROUSAL)
    kpi_weight_transition_start: float = KPI_WEIGHT_TRANSITION_START
    kpi_weight_transition_end: float = KPI_WEIGHT_TRANSITION_END
    reaction_time_best: float = REACTION_TIME_BEST
    reaction_time_worst: float = REACTION_TIME_WORST
    response_duration_per_target_best: float = RESPONSE_DURATION_PER_TARGET_BEST
    response_duration_per_target_worst: float = RESPONSE_DURATION_PER_TARGET_WORST
    tap_accuracy_best_points: float = TAP_ACCURACY_BEST_POINTS
    tap_accuracy_worst_points: float = TAP_ACCURACY_WORST_POINTS

    # Allocation
    dom_priorities_low_mid_arousal: dict = _copy(DOM_PRIORITIES_LOW_MID_AROUSAL)
    dom_priorities_high_arousal: dict = _copy(DOM_PRIORITIES_HIGH_AROUSAL)
    dom_priority_transition_start: float = DOM_PRIORITY_TRANSITION_START
    dom_priority_transition_end: float = DOM_PRIORITY_TRANSITION_END
    dom_hardening_smoothing_factors: dict = _copy(DOM_HARDENING_SMOOTHING)
    dom_easing_smoothing_factors: dict = _copy(DOM_EASING_SMOOTHING)

    # Signal shaping
    global_performance_target: float = GLOBAL_PERFORMANCE_TARGET
    adaptation_signal_dead_zone: float = ADAPTATION_SIGNAL_DEAD_ZONE
    adaptation_increase_threshold: float = ADAPTATION_INCREASE_THRESHOLD
    adaptation_decrease_threshold: float = ADAPTATION_DECREASE_THRESHOLD
    hysteresis_dead_zone: float = HYSTERESIS_DEAD_ZONE
    min_stable_rounds_before_direction_change: int = MIN_STABLE_ROUNDS_BEFORE_DIRECTION_CHANGE

    # History / confidence
    performance_history_window_size: int = PERFORMANCE_HISTORY_WINDOW_SIZE
    minimum_history_for_trend: int = MINIMUM_HISTORY_FOR_TREND
    current_performance_weight: float = CURRENT_PERFORMANCE_WEIGHT
    history_influence_weight: float = HISTORY_INFLUENCE_WEIGHT
    trend_influence_weight: float = TREND_INFLUENCE_WEIGHT
    recency_half_life_hours: float = RECENCY_HALF_LIFE_HOURS
    min_confidence_multiplier: float = MIN_CONFIDENCE_MULTIPLIER
    confidence_threshold_widening_factor: float = CONFIDENCE_THRESHOLD_WIDENING_FACTOR

    # Session phases
    interactive_session_proportion: float = INTERACTIVE_SESSION_PROPORTION
    session_arousal_decay_constant: float = SESSION_AROUSAL_DECAY_CONSTANT
    warmup_phase_proportion: float = WARMUP_PHASE_PROPORTION
    warmup_initial_difficulty_multiplier: float = WARMUP_INITIAL_DIFFICULTY_MULTIPLIER
    warmup_position_floor: float = WARMUP_POSITION_FLOOR
    warmup_performance_target: float = WARMUP_PERFORMANCE_TARGET
    warmup_adaptation_rate_multiplier: float = WARMUP_ADAPTATION_RATE_MULTIPLIER

    # Profiling / PD
    dom_profiling_performance_target: float = DOM_PROFILING_PERFORMANCE_TARGET
    dom_slope_dampening_factor: float = DOM_SLOPE_DAMPENING_FACTOR
    dom_min_data_points_for_profiling: int = DOM_MIN_DATA_POINTS_FOR_PROFILING
    dom_convergence_threshold: float = DOM_CONVERGENCE_THRESHOLD
    dom_convergence_duration: int = DOM_CONVERGENCE_DURATION
    dom_exploration_nudge_factor: float = DOM_EXPLORATION_NUDGE_FACTOR
    dom_boundary_nudge_factor: float = DOM_BOUNDARY_NUDGE_FACTOR
    minimum_dom_variance_threshold: float = MINIMUM_DOM_VARIANCE_THRESHOLD
    dom_max_signal_per_round: float = DOM_MAX_SIGNAL_PER_ROUND
    dom_easing_rate_multiplier: float = DOM_EASING_RATE_MULTIPLIER
    dom_hardening_rate_multiplier: float = DOM_HARDENING_RATE_MULTIPLIER
    dom_easing_rate_multiplier_by_dom: dict = _copy(DOM_EASING_RATE_MULTIPLIER_BY_DOM)
    dom_hardening_rate_multiplier_by_dom: dict = _copy(DOM_HARDENING_RATE_MULTIPLIER_BY_DOM)

    # Persistence
    state_directory: str | None = None

    def smoothing_factor(self, dom_type: DOMType, easing: bool) -> float:
        table = self.dom_easing_smoothing_factors if easing else self.dom_hardening_smoothing_factors
        return table.get(dom_type, DEFAULT_SMOOTHING)

    def rate_multiplier(self, dom_type: DOMType, easing: bool) -> float:
        if easing:
            return self.dom_easing_rate_multiplier_by_dom.get(dom_type, self.dom_easing_rate_multiplier)
        return self.dom_hardening_rate_multiplier_by_dom.get(dom_type, self.dom_hardening_rate_multiplier)


def clamp_unit(value: float) -> float:
    """Clamp a value to [0, 1]."""
    if value < POSITION_MIN:
        return POSITION_MIN
    if value > POSITION_MAX:
        return POSITION_MAX
    return value


def coerce_number(value, default: float) -> float:
    """float(value), or default when the value is missing or not numeric."""
    if value is None:
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def clamp_signal(signal: float, bound: float = MAX_ADAPTATION_SIGNAL) -> float:
    """Clamp a signed signal to [-bound, bound]."""
    return max(-bound, min(bound, signal))


def smoothstep(value: float, start: float, end: float) -> float:
    """Hermite 0..1 ramp of value across [start, end]."""
    if end <= start:
        return 0.0 if value < start else 1.0
    t = clamp_unit((value - start) / (end - start))
    return t * t * (3.0 - 2.0 * t)


def normalized_arousal(arousal: float, config: ADMConfig) -> float:
    span = config.arousal_operational_max - config.arousal_operational_min
    if span <= 0:
        return 0.0
    return clamp_unit((arousal - config.arousal_operational_min) / span)


def arousal_gated_range(dom_type: DOMType, arousal: float, config: ADMConfig) -> tuple[float, float]:
    """Return (easiest, hardest) raw values for a DOM at the given arousal."""
    t = normalized_arousal(arousal, config)
    easy_lo, hard_lo = config.dom_ranges_min_arousal[dom_type]
    easy_hi, hard_hi = config.dom_ranges_max_arousal[dom_type]
    easiest = easy_lo + (easy_hi - easy_lo) * t
    hardest = hard_lo + (hard_hi - hard_lo) * t
    return easiest, hardest


def raw_value_from_position(dom_type: DOMType, position: float, arousal: float, config: ADMConfig) -> float:
    """Map a normalized position to the concrete DOM value at this arousal."""
    easiest, hardest = arousal_gated_range(dom_type, arousal, config)
    return easiest + (hardest - easiest) * clamp_unit(position)


def difficulty_from_position(position: float) -> str:
    """Map a normalized position to a difficulty label."""
    if position < 0.33:
        return "Easy"
    if position < 0.66:
        return "Medium"
    return "Hard"
