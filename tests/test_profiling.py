from dataclasses import replace

from adm_config import ADMConfig, DOMType
from ADM_Bases.Profiling import (
	DOMPerformanceProfile,
	DOMProfiler,
	PerformanceDataPoint,
	calculate_standard_deviation,
	calculate_weighted_slope,
)

NOW = 1_700_000_000.0
DOM = DOMType.MEAN_BALL_SPEED


def fill_profile(profiler, dom, points):
	profile = profiler.profiles[dom]
	for timestamp, value, performance in points:
		profile.record_performance(timestamp, value, performance)


def trend_points(count, base, step, low=0.2, high=0.8):
	points = []
	for i in range(count):
		progress = i / max(count - 1, 1)
		value = low + (high - low) * progress
		points.append((NOW - (count - i - 1) * 3600, value, base + progress * step))
	return points


def test_profile_capacity_evicts_oldest():
	profile = DOMPerformanceProfile(DOM)
	for i in range(201):
		profile.record_performance(NOW + i, 0.5, 0.5)
	assert len(profile) == 200
	assert profile.points[0].timestamp == NOW + 1


def test_standard_deviation():
	assert calculate_standard_deviation([]) == 0.0
	assert calculate_standard_deviation([5.0]) == 0.0
	assert abs(calculate_standard_deviation([2.0, 2.0, 2.0])) < 1e-9
	assert abs(calculate_standard_deviation([2.0, 4.0, 4.0, 4.0, 5.0, 5.0, 7.0, 9.0]) - 2.0) < 0.01


def test_weighted_slope_sign():
	rising = [PerformanceDataPoint(NOW, 0.3 + i * 0.1, 0.4 + i * 0.1) for i in range(5)]
	falling = [PerformanceDataPoint(NOW, 0.3 + i * 0.1, 0.8 - i * 0.1) for i in range(5)]
	flat = [PerformanceDataPoint(NOW, 0.3 + i * 0.1, 0.6) for i in range(5)]
	weights = [1.0] * 5
	assert calculate_weighted_slope(rising, weights) > 0
	assert calculate_weighted_slope(falling, weights) < 0
	assert abs(calculate_weighted_slope(flat, weights)) < 1e-3


def test_insufficient_data_reports_none():
	profiler = DOMProfiler(ADMConfig())
	fill_profile(profiler, DOM, trend_points(6, 0.5, 0.3))
	assert not profiler.has_sufficient_data(DOM)
	assert profiler.calculate_adaptation_signal(DOM, now=NOW) is None


def test_low_position_spread_gives_neutral_signal():
	profiler = DOMProfiler(replace(ADMConfig(), dom_min_data_points_for_profiling=8))
	points = [(NOW - i * 3600, 0.5 + (i % 2) * 0.001, 0.5 + i * 0.05) for i in range(10)]
	fill_profile(profiler, DOM, points)
	assert profiler.calculate_adaptation_signal(DOM, now=NOW) == 0.0


def test_recent_samples_dominate():
	profiler = DOMProfiler(replace(ADMConfig(), dom_min_data_points_for_profiling=8))
	points = [(NOW - 48 * 3600, 0.3, 0.9)]
	points += [(NOW - i * 600, 0.7, 0.4) for i in range(8)]
	fill_profile(profiler, DOM, points)
	assert profiler.calculate_adaptation_signal(DOM, now=NOW) < 0


def test_improving_performance_hardens_within_cap():
	config = ADMConfig()
	profiler = DOMProfiler(config)
	fill_profile(profiler, DOM, trend_points(config.dom_min_data_points_for_profiling, 0.6, 0.3))
	signal = profiler.calculate_adaptation_signal(DOM, now=NOW)
	assert 0 < signal <= config.dom_max_signal_per_round


def test_local_confidence_components():
	config = replace(ADMConfig(), dom_min_data_points_for_profiling=15)
	profiler = DOMProfiler(config)
	fill_profile(profiler, DOM, [(NOW, 0.2 + i * 0.05, 0.6) for i in range(8)])
	expected = 0.5 * 1.0 + 0.3 * (8 / 15) + 0.2 * 1.0
	assert abs(profiler.calculate_local_confidence(DOM, now=NOW) - expected) < 1e-6


def test_easing_moves_faster_than_hardening():
	profiler = DOMProfiler(ADMConfig())
	eased = profiler.apply_modulation(DOM, 0.5, 0.4, confidence=1.0)
	hardened = profiler.apply_modulation(DOM, 0.5, 0.6, confidence=1.0)
	assert abs(eased - 0.476) < 1e-9
	assert abs(hardened - 0.51) < 1e-9


def test_single_round_change_is_capped():
	profiler = DOMProfiler(ADMConfig())
	new_position = profiler.apply_modulation(DOMType.DISCRIMINATORY_LOAD, 0.5, 0.0, confidence=1.0)
	assert abs(new_position - 0.35) < 1e-9


def test_nudge_after_convergence():
	config = ADMConfig()
	profiler = DOMProfiler(config)
	position = 0.5
	changes = []
	for _ in range(config.dom_convergence_duration):
		new_position = profiler.apply_modulation(DOM, position, position, confidence=1.0)
		changes.append(new_position - position)
		position = new_position
	assert changes[:-1] == [0.0] * (config.dom_convergence_duration - 1)
	assert abs(abs(changes[-1]) - config.dom_exploration_nudge_factor) < 1e-9


def test_nudge_points_away_from_bounds():
	config = ADMConfig()
	for start, expected_sign, magnitude in (
		(0.1, 1, config.dom_exploration_nudge_factor),
		(0.95, -1, config.dom_exploration_nudge_factor),
		(0.0, 1, config.dom_boundary_nudge_factor),
		(1.0, -1, config.dom_boundary_nudge_factor),
	):
		profiler = DOMProfiler(config)
		position = start
		for _ in range(config.dom_convergence_duration):
			position = profiler.apply_modulation(DOM, position, position, confidence=1.0)
		assert abs((position - start) - expected_sign * magnitude) < 1e-9


def test_nudge_alternates_with_round_parity():
	config = ADMConfig()
	profiler = DOMProfiler(config)
	profiler.advance_round()
	position = 0.5
	for _ in range(config.dom_convergence_duration):
		position = profiler.apply_modulation(DOM, position, position, confidence=1.0)
	assert abs(position - (0.5 - config.dom_exploration_nudge_factor)) < 1e-9
