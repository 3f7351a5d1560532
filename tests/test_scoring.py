from dataclasses import replace

from adm_config import ADMConfig, KPIType, ALL_KPIS, KPI_WEIGHTS_HIGH_AROUSAL, KPI_WEIGHTS_LOW_MID_AROUSAL
from ADM_Bases.Scoring import PerformanceScorer, RoundMetrics


def make_metrics(**overrides):
	values = dict(
		task_success=True,
		tf_ttf_ratio=1.0,
		reaction_time=0.2,
		response_duration=0.2,
		average_tap_accuracy=0.0,
		actual_targets_to_find=1,
	)
	values.update(overrides)
	return RoundMetrics(**values)


def test_perfect_round_scores_one():
	scorer = PerformanceScorer(ADMConfig())
	score, kpis = scorer.score_round(make_metrics(), arousal=0.5)
	assert abs(score - 1.0) < 1e-9
	assert all(abs(kpis[kpi] - 1.0) < 1e-9 for kpi in ALL_KPIS)


def test_failed_round_scores_zero():
	scorer = PerformanceScorer(ADMConfig())
	metrics = make_metrics(task_success=False, tf_ttf_ratio=0.0, reaction_time=3.0, response_duration=5.0, average_tap_accuracy=500)
	score, _ = scorer.score_round(metrics, arousal=0.5)
	assert score == 0.0


def test_response_duration_bounds_scale_with_targets():
	scorer = PerformanceScorer(ADMConfig())
	one_target = scorer.normalize_kpis(make_metrics(response_duration=0.6, actual_targets_to_find=1))
	three_targets = scorer.normalize_kpis(make_metrics(response_duration=0.6, actual_targets_to_find=3))
	assert abs(one_target[KPIType.RESPONSE_DURATION] - 0.5) < 1e-9
	assert three_targets[KPIType.RESPONSE_DURATION] == 1.0


def test_ratio_is_clamped():
	scorer = PerformanceScorer(ADMConfig())
	kpis = scorer.normalize_kpis(make_metrics(tf_ttf_ratio=1.7))
	assert kpis[KPIType.TF_TTF_RATIO] == 1.0


def test_weights_sum_to_one_across_arousal():
	scorer = PerformanceScorer(ADMConfig())
	for arousal in (0.0, 0.3, 0.55, 0.6, 0.7, 0.8, 0.85, 1.0):
		weights = scorer.get_interpolated_kpi_weights(arousal)
		assert abs(sum(weights.values()) - 1.0) < 1e-9


def test_weights_outside_transition_band_match_tables():
	scorer = PerformanceScorer(ADMConfig())
	low = scorer.get_interpolated_kpi_weights(0.5)
	high = scorer.get_interpolated_kpi_weights(0.9)
	for kpi in ALL_KPIS:
		assert abs(low[kpi] - KPI_WEIGHTS_LOW_MID_AROUSAL[kpi]) < 1e-9
		assert abs(high[kpi] - KPI_WEIGHTS_HIGH_AROUSAL[kpi]) < 1e-9


def test_weights_blend_inside_transition_band():
	scorer = PerformanceScorer(ADMConfig())
	mid = scorer.get_interpolated_kpi_weights(0.7)
	rt_low = KPI_WEIGHTS_LOW_MID_AROUSAL[KPIType.REACTION_TIME]
	rt_high = KPI_WEIGHTS_HIGH_AROUSAL[KPIType.REACTION_TIME]
	assert rt_low < mid[KPIType.REACTION_TIME] < rt_high


def test_hard_switch_when_interpolation_disabled():
	scorer = PerformanceScorer(replace(ADMConfig(), use_kpi_weight_interpolation=False))
	assert scorer.get_interpolated_kpi_weights(0.69) == KPI_WEIGHTS_LOW_MID_AROUSAL
	assert scorer.get_interpolated_kpi_weights(0.7) == KPI_WEIGHTS_HIGH_AROUSAL


def test_adaptive_score_needs_history():
	scorer = PerformanceScorer(ADMConfig())
	assert scorer.calculate_adaptive_score(0.4, history_size=2, average=0.9, trend=0.1) == 0.4
	blended = scorer.calculate_adaptive_score(0.4, history_size=3, average=0.9, trend=0.1)
	assert abs(blended - (0.4 * 0.85 + 0.9 * 0.15 + 0.1 * 0.15)) < 1e-9
