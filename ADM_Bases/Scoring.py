"""
Scoring.py - Round Performance Scoring
--------------------------------------
Turns the raw metrics of one identification round into normalized KPIs and
a single overall score in [0, 1].

Key Functions:
- normalize_kpis(): raw metrics -> {KPIType: 0..1}
- get_interpolated_kpi_weights(): arousal-blended KPI weights (smoothstep)
- calculate_overall_score(): weighted sum of normalized KPIs
- calculate_adaptive_score(): blends current score with history average/trend
"""

import logging
from dataclasses import dataclass

from adm_config import ADMConfig, KPIType, ALL_KPIS, clamp_unit, smoothstep

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoundMetrics:
    task_success: bool
    tf_ttf_ratio: float
    reaction_time: float
    response_duration: float
    average_tap_accuracy: float
    actual_targets_to_find: int = 1


# Lower-is-better normalization: best -> 1.0, worst -> 0.0
def _normalize_lower_is_better(raw: float, best: float, worst: float) -> float:
    if worst > best:
        return 1.0 - clamp_unit((raw - best) / (worst - best))
    return 1.0 if raw <= best else 0.0


class PerformanceScorer:

    __slots__ = ("_config",)

    def __init__(self, config: ADMConfig):
        self._config = config

    def normalize_kpis(self, metrics: RoundMetrics) -> dict:
        cfg = self._config
        targets = max(1, int(metrics.actual_targets_to_find))
        best_rd = cfg.response_duration_per_target_best * targets
        worst_rd = cfg.response_duration_per_target_worst * targets

        return {
            KPIType.TASK_SUCCESS: 1.0 if metrics.task_success else 0.0,
            KPIType.TF_TTF_RATIO: clamp_unit(float(metrics.tf_ttf_ratio)),
            KPIType.REACTION_TIME: _normalize_lower_is_better(
                metrics.reaction_time, cfg.reaction_time_best, cfg.reaction_time_worst
            ),
            KPIType.RESPONSE_DURATION: _normalize_lower_is_better(
                metrics.response_duration, best_rd, worst_rd
            ),
            KPIType.TAP_ACCURACY: _normalize_lower_is_better(
                metrics.average_tap_accuracy,
                cfg.tap_accuracy_best_points,
                cfg.tap_accuracy_worst_points,
            ),
        }

    def get_interpolated_kpi_weights(self, arousal: float) -> dict:
        """
        Weights for the five KPIs at this arousal. Inside the transition band
        the low/mid and high sets are blended with a smoothstep; outside it
        the nearer set applies unchanged.
        """
        cfg = self._config
        low = cfg.kpi_weights_low_mid_arousal
        high = cfg.kpi_weights_high_arousal

        if not cfg.use_kpi_weight_interpolation:
            chosen = high if arousal >= cfg.arousal_threshold_for_kpi_and_hierarchy_switch else low
            return dict(chosen)

        t = smoothstep(arousal, cfg.kpi_weight_transition_start, cfg.kpi_weight_transition_end)
        return {
            kpi: low.get(kpi, 0.0) + (high.get(kpi, 0.0) - low.get(kpi, 0.0)) * t
            for kpi in ALL_KPIS
        }

    def calculate_overall_score(self, normalized_kpis: dict, arousal: float) -> float:
        weights = self.get_interpolated_kpi_weights(arousal)
        score = sum(normalized_kpis.get(kpi, 0.0) * weights[kpi] for kpi in ALL_KPIS)
        return clamp_unit(score)

    def score_round(self, metrics: RoundMetrics, arousal: float) -> tuple[float, dict]:
        normalized = self.normalize_kpis(metrics)
        score = self.calculate_overall_score(normalized, arousal)
        logger.debug(
            {
                "event": "round_scored",
                "arousal": round(arousal, 3),
                "score": round(score, 4),
                "kpis": {kpi.value: round(v, 3) for kpi, v in normalized.items()},
            }
        )
        return score, normalized

    # Adaptive Score: current performance nudged by history average and trend
    # Falls back to the raw score until enough history exists for a trend.
    def calculate_adaptive_score(
        self, current_score: float, history_size: int, average: float, trend: float
    ) -> float:
        cfg = self._config
        if history_size < cfg.minimum_history_for_trend:
            return current_score
        blended = (
            current_score * cfg.current_performance_weight
            + average * cfg.history_influence_weight
            + trend * cfg.trend_influence_weight
        )
        return clamp_unit(blended)
