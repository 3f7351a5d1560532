from dataclasses import replace

from adm_config import ADMConfig, DOMType, KPIType
from ADM_Bases.History import (
	NEUTRAL_CONFIDENCE,
	HistoryTracker,
	PerformanceHistoryEntry,
	least_squares_slope,
	recency_weight,
)

NOW = 1_700_000_000.0


def make_entry(score: float, timestamp: float = NOW):
	return PerformanceHistoryEntry(timestamp=timestamp, overall_score=score)


def test_window_evicts_oldest():
	tracker = HistoryTracker(replace(ADMConfig(), performance_history_window_size=5))
	for i in range(8):
		tracker.add_performance_entry(make_entry(i / 10, timestamp=NOW + i))
	assert len(tracker) == 5
	assert tracker.entries[0].timestamp == NOW + 3


def test_empty_history_metrics():
	tracker = HistoryTracker(ADMConfig())
	assert tracker.get_performance_metrics() == (0.5, 0.0, 0.0)


def test_constant_scores_have_no_trend_or_variance():
	tracker = HistoryTracker(ADMConfig())
	for _ in range(6):
		tracker.add_performance_entry(make_entry(0.6))
	average, trend, variance = tracker.get_performance_metrics()
	assert abs(average - 0.6) < 1e-9
	assert abs(trend) < 1e-9
	assert abs(variance) < 1e-9


def test_trend_sign_follows_scores():
	rising = HistoryTracker(ADMConfig())
	falling = HistoryTracker(ADMConfig())
	for i in range(5):
		rising.add_performance_entry(make_entry(0.2 + i * 0.1))
		falling.add_performance_entry(make_entry(0.8 - i * 0.1))
	assert rising.get_performance_metrics()[1] > 0
	assert falling.get_performance_metrics()[1] < 0


def test_least_squares_slope_known_line():
	assert abs(least_squares_slope([0, 1, 2, 3], [1, 3, 5, 7]) - 2.0) < 1e-9
	assert least_squares_slope([1.0], [1.0]) == 0.0


def test_recency_weight_half_life():
	assert recency_weight(NOW, NOW, 24.0) == 1.0
	assert abs(recency_weight(NOW - 24 * 3600, NOW, 24.0) - 0.5) < 1e-9
	assert abs(recency_weight(NOW - 48 * 3600, NOW, 24.0) - 0.25) < 1e-9


def test_load_keeps_most_recent_window():
	config = replace(ADMConfig(), performance_history_window_size=3)
	tracker = HistoryTracker(config, [make_entry(0.5, NOW + i) for i in range(6)])
	assert [e.timestamp for e in tracker.entries] == [NOW + 3, NOW + 4, NOW + 5]


def test_confidence_neutral_without_history():
	tracker = HistoryTracker(ADMConfig())
	assert tracker.calculate_confidence(direction_stable_count=3) == NEUTRAL_CONFIDENCE


def test_confidence_full_for_consistent_history():
	tracker = HistoryTracker(ADMConfig())
	for _ in range(10):
		tracker.add_performance_entry(make_entry(0.6))
	confidence = tracker.calculate_confidence(direction_stable_count=5, now=NOW)
	assert abs(confidence.total - 1.0) < 1e-9


def test_old_entries_count_less_toward_confidence():
	fresh = HistoryTracker(ADMConfig())
	stale = HistoryTracker(ADMConfig())
	for _ in range(5):
		fresh.add_performance_entry(make_entry(0.6, NOW))
		stale.add_performance_entry(make_entry(0.6, NOW - 72 * 3600))
	assert stale.calculate_confidence(0, now=NOW).history < fresh.calculate_confidence(0, now=NOW).history


def test_entry_dict_skips_unknown_keys():
	entry = PerformanceHistoryEntry(
		timestamp=NOW,
		overall_score=0.4,
		normalized_kpis={KPIType.TASK_SUCCESS: 1.0},
		current_dom_values={DOMType.TARGET_COUNT: 3.0},
	)
	data = entry.to_dict()
	data["normalizedKPIs"]["legacyKpi"] = 0.3
	restored = PerformanceHistoryEntry.from_dict(data)
	assert restored.normalized_kpis == {KPIType.TASK_SUCCESS: 1.0}
	assert restored.current_dom_values == {DOMType.TARGET_COUNT: 3.0}
