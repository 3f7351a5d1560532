from dataclasses import replace

from adm_config import ADMConfig
from ADM_Bases.Hysteresis import AdaptationDirection, HysteresisGate, SignalGate, create_signal_gate

TARGET = 0.6


def make_gate(**overrides):
	return HysteresisGate(replace(ADMConfig(), **overrides))


def test_scores_inside_dead_zone_are_stable():
	gate = make_gate()
	thresholds = gate.base_thresholds()
	for score in (0.59, 0.6, 0.61):
		signal, direction = gate.calculate_adaptation_signal_with_hysteresis(score, thresholds, TARGET)
		assert signal == 0.0
		assert direction == AdaptationDirection.STABLE


def test_signal_inside_neutral_band_is_not_doubled():
	gate = make_gate()
	signal, direction = gate.calculate_adaptation_signal_with_hysteresis(0.77, gate.base_thresholds(), TARGET)
	assert abs(signal - 0.17) < 1e-9
	assert direction == AdaptationDirection.INCREASING


def test_signal_beyond_thresholds_is_doubled_and_clamped():
	gate = make_gate()
	thresholds = gate.base_thresholds()
	high, _ = gate.calculate_adaptation_signal_with_hysteresis(0.9, thresholds, TARGET)
	low, low_direction = gate.calculate_adaptation_signal_with_hysteresis(0.2, thresholds, TARGET)
	floor, _ = gate.calculate_adaptation_signal_with_hysteresis(0.0, thresholds, TARGET)
	assert abs(high - 0.6) < 1e-9
	assert abs(low + 0.8) < 1e-9
	assert low_direction == AdaptationDirection.DECREASING
	assert floor == -1.0


def test_reversal_needs_consecutive_rounds():
	gate = make_gate()
	assert gate.admit(0.3, AdaptationDirection.INCREASING) == (0.3, AdaptationDirection.INCREASING)
	assert gate.stable_count == 1

	# first reversal attempt is held back
	assert gate.admit(-0.3, AdaptationDirection.DECREASING) == (0.0, AdaptationDirection.STABLE)
	assert gate.last_direction == AdaptationDirection.INCREASING

	# second consecutive attempt goes through
	assert gate.admit(-0.3, AdaptationDirection.DECREASING) == (-0.3, AdaptationDirection.DECREASING)
	assert gate.last_direction == AdaptationDirection.DECREASING
	assert gate.stable_count == 1


def test_reversal_allowed_after_holding_direction():
	gate = make_gate()
	gate.admit(0.2, AdaptationDirection.INCREASING)
	gate.admit(0.2, AdaptationDirection.INCREASING)
	assert gate.stable_count == 2
	assert gate.is_change_allowed(AdaptationDirection.DECREASING)


def test_change_from_stable_is_always_allowed():
	gate = make_gate()
	gate.admit(0.0, AdaptationDirection.STABLE)
	assert gate.admit(-0.4, AdaptationDirection.DECREASING) == (-0.4, AdaptationDirection.DECREASING)


def test_effective_thresholds_widen_with_low_confidence():
	gate = make_gate()
	wide = gate.effective_thresholds(0.0)
	base = gate.effective_thresholds(1.0)
	assert abs(wide.increase_threshold - 0.85) < 1e-9
	assert abs(wide.decrease_threshold - 0.70) < 1e-9
	assert base == gate.base_thresholds()


def test_plain_gate_when_hysteresis_disabled():
	gate = create_signal_gate(replace(ADMConfig(), enable_hysteresis=False))
	assert type(gate) is SignalGate
	signal, direction = gate.calculate_signal(0.7, gate.base_thresholds(), TARGET)
	assert abs(signal - 0.2) < 1e-9
	gate.admit(signal, direction)
	assert gate.admit(-0.5, AdaptationDirection.DECREASING) == (-0.5, AdaptationDirection.DECREASING)


def test_gate_restores_persisted_direction():
	gate = create_signal_gate(ADMConfig(), AdaptationDirection.DECREASING, 4)
	assert isinstance(gate, HysteresisGate)
	assert gate.last_direction == AdaptationDirection.DECREASING
	assert gate.stable_count == 4
