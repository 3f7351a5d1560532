"""
ADM_Algo.py
-----------
Adaptive Difficulty Manager. Consumes per-round performance metrics plus an
arousal level and moves five difficulty dimensions (DOMs) held as normalized
positions (0 = easiest, 1 = hardest).

Round flow: score -> history -> adaptive score -> gated signal -> per DOM
local PD control, or the priority budget allocator while a DOM lacks samples
-> warmup ramp -> clamped positions.
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

from adm_config import (
    ADMConfig,
    DOMType,
    ALL_DOMS,
    POSITION_MIDPOINT,
    clamp_unit,
    difficulty_from_position,
    raw_value_from_position,
)
from ADM_Bases.History import NEUTRAL_CONFIDENCE, Confidence, HistoryTracker, PerformanceHistoryEntry
from ADM_Bases.Hysteresis import AdaptationDirection, create_signal_gate
from ADM_Bases.Priority import PriorityBudgetAllocator
from ADM_Bases.Profiling import DOMProfiler
from ADM_Bases.Scoring import PerformanceScorer, RoundMetrics
from ADM_Bases.Session import SessionPhaseScaler
from ADM_Persistence import PersistedADMState, PersistenceGateway

logger = logging.getLogger(__name__)

PATH_PD = "pd"
PATH_GLOBAL = "global"


class AdaptiveDifficultyManager:

    __slots__ = (
        "_config",
        "_lock",
        "_executor",
        "_closed",
        "_arousal",
        "_positions",
        "_scorer",
        "_history",
        "_gate",
        "_allocator",
        "_profiler",
        "_session",
        "_gateway",
        "_round_count",
        "user_id",
    )

    def __init__(
        self,
        config: Optional[ADMConfig] = None,
        initial_arousal: float = 0.5,
        session_duration: Optional[float] = None,
        user_id: Optional[str] = None,
        gateway: Optional[PersistenceGateway] = None,
    ):
        self._config = config or ADMConfig()
        self._lock = threading.RLock()
        self._executor: ThreadPoolExecutor | None = None
        self._closed = False
        self._arousal = clamp_unit(float(initial_arousal))
        self._positions = {dom: POSITION_MIDPOINT for dom in ALL_DOMS}
        self._round_count = 0
        self.user_id = user_id

        self._scorer = PerformanceScorer(self._config)
        self._history = HistoryTracker(self._config)
        self._gate = create_signal_gate(self._config)
        self._allocator = PriorityBudgetAllocator(self._config)
        self._profiler = DOMProfiler(self._config)
        self._gateway = gateway or PersistenceGateway(self._config)

        if user_id is not None:
            if self._config.clear_past_session_data:
                self._gateway.clear_state(user_id)
            else:
                self.load_state()

        self._session = SessionPhaseScaler(self._config, session_duration, self._arousal)
        self._positions = self._session.apply_initial_warmup(self._positions)

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def config(self) -> ADMConfig:
        return self._config

    @property
    def arousal_level(self) -> float:
        return self._arousal

    @property
    def normalized_positions(self) -> dict:
        with self._lock:
            return dict(self._positions)

    @property
    def performance_history(self) -> list:
        with self._lock:
            return self._history.entries

    @property
    def dom_performance_profiles(self) -> dict:
        """Snapshot of the per-DOM profiles, keyed by DOMType."""
        with self._lock:
            return self._profiler.snapshot_profiles()

    @property
    def last_adaptation_direction(self) -> AdaptationDirection:
        return self._gate.last_direction

    @property
    def direction_stable_count(self) -> int:
        return self._gate.stable_count

    def _value(self, dom_type: DOMType) -> float:
        with self._lock:
            position = self._positions[dom_type]
        return raw_value_from_position(dom_type, position, self._arousal, self._config)

    def current_dom_values(self) -> dict:
        return {dom: self._value(dom) for dom in ALL_DOMS}

    @property
    def current_target_count(self) -> int:
        return max(1, int(round(self._value(DOMType.TARGET_COUNT))))

    @property
    def current_response_time(self) -> float:
        return self._value(DOMType.RESPONSE_TIME)

    @property
    def current_discriminability_factor(self) -> float:
        return self._value(DOMType.DISCRIMINATORY_LOAD)

    @property
    def current_mean_ball_speed(self) -> float:
        return self._value(DOMType.MEAN_BALL_SPEED)

    @property
    def current_ball_speed_sd(self) -> float:
        return self._value(DOMType.BALL_SPEED_SD)

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------

    def update_arousal_level(self, arousal: float) -> None:
        with self._lock:
            self._arousal = clamp_unit(float(arousal))
        logger.debug({"event": "arousal_updated", "arousal": round(self._arousal, 3)})

    def set_normalized_position(self, dom_type: DOMType, position: float) -> None:
        with self._lock:
            self._positions[DOMType(dom_type)] = clamp_unit(float(position))

    def add_performance_entry(self, entry: PerformanceHistoryEntry) -> None:
        with self._lock:
            self._history.add_performance_entry(entry)

    def record_dom_performance(self, dom_type: DOMType, timestamp: float, position: float, performance: float) -> None:
        with self._lock:
            self._profiler.record(DOMType(dom_type), timestamp, position, performance)

    def get_performance_metrics(self) -> tuple[float, float, float]:
        with self._lock:
            return self._history.get_performance_metrics()

    def calculate_adaptation_confidence(self, now: Optional[float] = None) -> Confidence:
        with self._lock:
            return self._history.calculate_confidence(self._gate.stable_count, now)

    # Global Path: priority-weighted budget over the DOMs lacking local data
    def modulate_dom_targets(self, budget: float, subset: Optional[list] = None) -> float:
        with self._lock:
            return self._allocator.modulate_with_weighted_budget(
                self._positions, budget, self._arousal, invert=budget < 0, subset=subset
            )

    # Local Path: PD control for every DOM with enough samples
    def modulate_doms_with_profiling(self, now: Optional[float] = None) -> list:
        """Return the DOMs that were handled by local PD control this round."""
        handled = []
        with self._lock:
            now = time.time() if now is None else now
            self._profiler.advance_round()
            for dom in ALL_DOMS:
                signal = self._profiler.calculate_adaptation_signal(dom, now)
                if signal is None:
                    continue
                current = self._positions[dom]
                desired = clamp_unit(current + signal)
                confidence = self._profiler.calculate_local_confidence(dom, now)
                self._positions[dom] = self._profiler.apply_modulation(dom, current, desired, confidence)
                handled.append(dom)
        return handled

    @staticmethod
    def _sanitize_metrics(
        task_success: bool,
        tf_ttf_ratio: float,
        reaction_time: float,
        response_duration: float,
        average_tap_accuracy: float,
        actual_targets_to_find_in_round: int,
    ) -> RoundMetrics:
        return RoundMetrics(
            task_success=bool(task_success),
            tf_ttf_ratio=clamp_unit(float(tf_ttf_ratio)),
            reaction_time=max(0.0, float(reaction_time)),
            response_duration=max(0.0, float(response_duration)),
            average_tap_accuracy=max(0.0, float(average_tap_accuracy)),
            actual_targets_to_find=max(1, int(actual_targets_to_find_in_round)),
        )

    def record_identification_performance(
        self,
        task_success: bool,
        tf_ttf_ratio: float,
        reaction_time: float,
        response_duration: float,
        average_tap_accuracy: float,
        actual_targets_to_find_in_round: int = 1,
        now: Optional[float] = None,
    ) -> dict:
        """Process one identification round and return the round result."""
        metrics = self._sanitize_metrics(
            task_success,
            tf_ttf_ratio,
            reaction_time,
            response_duration,
            average_tap_accuracy,
            actual_targets_to_find_in_round,
        )
        with self._lock:
            now = time.time() if now is None else now
            self._round_count += 1
            in_warmup = self._session.in_warmup

            score, normalized = self._scorer.score_round(metrics, self._arousal)
            self._history.add_performance_entry(
                PerformanceHistoryEntry(
                    timestamp=now,
                    overall_score=score,
                    normalized_kpis=normalized,
                    arousal_level=self._arousal,
                    current_dom_values=self.current_dom_values(),
                    session_context="warmup" if in_warmup else "standard",
                )
            )
            average, trend, _variance = self._history.get_performance_metrics()
            adaptive_score = self._scorer.calculate_adaptive_score(score, len(self._history), average, trend)

            for dom in ALL_DOMS:
                self._profiler.record(dom, now, self._positions[dom], adaptive_score)

            if self._session.is_degenerate:
                logger.warning({"event": "adm_degenerate_session", "round": self._round_count})
                result = self._build_round_result(
                    score, adaptive_score, 0.0, AdaptationDirection.STABLE, NEUTRAL_CONFIDENCE,
                    self._config.global_performance_target, in_warmup, {}, 0.0,
                )
            else:
                result = self._adapt(score, adaptive_score, in_warmup, now)

        self._log_round(result)
        return result

    def _adapt(self, score: float, adaptive_score: float, in_warmup: bool, now: float) -> dict:
        cfg = self._config
        target = self._session.performance_target(cfg.global_performance_target)

        if cfg.enable_confidence_scaling:
            confidence = self._history.calculate_confidence(self._gate.stable_count, now)
            thresholds = self._gate.effective_thresholds(confidence.total)
        else:
            confidence = NEUTRAL_CONFIDENCE
            thresholds = self._gate.base_thresholds()

        signal, direction = self._gate.calculate_signal(adaptive_score, thresholds, target)
        signal, direction = self._gate.admit(signal, direction)

        pd_doms = self.modulate_doms_with_profiling(now) if cfg.enable_dom_specific_profiling else []
        global_doms = [dom for dom in ALL_DOMS if dom not in pd_doms]

        budget = signal
        if cfg.enable_confidence_scaling:
            budget *= max(cfg.min_confidence_multiplier, confidence.total)
        budget *= self._session.budget_multiplier()

        remaining = 0.0
        if global_doms:
            remaining = self.modulate_dom_targets(budget, subset=global_doms)

        self._session.ramp(self._positions)
        for dom in ALL_DOMS:
            self._positions[dom] = clamp_unit(self._positions[dom])

        paths = {dom.value: (PATH_PD if dom in pd_doms else PATH_GLOBAL) for dom in ALL_DOMS}
        return self._build_round_result(
            score, adaptive_score, signal, direction, confidence, target, in_warmup, paths, remaining
        )

    def _build_round_result(
        self,
        score: float,
        adaptive_score: float,
        signal: float,
        direction: AdaptationDirection,
        confidence: Confidence,
        target: float,
        in_warmup: bool,
        paths: dict,
        remaining: float,
    ) -> dict:
        positions = dict(self._positions)
        mean_position = sum(positions.values()) / len(positions)
        return {
            "round": self._round_count,
            "score": round(score, 4),
            "adaptive_score": round(adaptive_score, 4),
            "target_performance": target,
            "signal": round(signal, 4),
            "direction": AdaptationDirection(direction).value,
            "confidence": round(confidence.total, 4),
            "warmup": in_warmup,
            "adapted": bool(paths),
            "paths": paths,
            "remaining_budget": round(remaining, 4),
            "positions": {dom.value: round(pos, 4) for dom, pos in positions.items()},
            "dom_values": {dom.value: round(val, 4) for dom, val in self.current_dom_values().items()},
            "difficulty_label": difficulty_from_position(mean_position),
        }

    def _log_round(self, result: dict) -> None:
        logger.info(
            {
                "event": "adm_round",
                "user_id": self.user_id,
                "round": result["round"],
                "score": result["score"],
                "adaptive_score": result["adaptive_score"],
                "signal": result["signal"],
                "direction": result["direction"],
                "confidence": result["confidence"],
                "warmup": result["warmup"],
                "paths": result["paths"],
            }
        )

    # ------------------------------------------------------------------
    # Async / lifecycle
    # ------------------------------------------------------------------

    def _submit(self, fn: Callable, *args, **kwargs) -> Future:
        with self._lock:
            if self._closed:
                raise RuntimeError("AdaptiveDifficultyManager has been shut down")
            if self._executor is None:
                self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="adm")
            return self._executor.submit(fn, *args, **kwargs)

    def record_identification_performance_async(
        self,
        task_success: bool,
        tf_ttf_ratio: float,
        reaction_time: float,
        response_duration: float,
        average_tap_accuracy: float,
        actual_targets_to_find_in_round: int = 1,
        callback: Optional[Callable[[dict], None]] = None,
    ) -> Future:
        """Queue a round; rounds run one at a time in submission order."""

        def _run() -> dict:
            result = self.record_identification_performance(
                task_success,
                tf_ttf_ratio,
                reaction_time,
                response_duration,
                average_tap_accuracy,
                actual_targets_to_find_in_round,
            )
            if callback is not None:
                callback(result)
            return result

        return self._submit(_run)

    def shutdown(self) -> None:
        """Finish queued rounds and writes, then stop the worker."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            executor = self._executor
            self._executor = None
        if executor is not None:
            executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def build_state(self) -> PersistedADMState:
        with self._lock:
            profiles = None
            if self._config.persist_dom_performance_profiles_in_state:
                profiles = self._profiler.snapshot_profiles()
            return PersistedADMState(
                performance_history=self._history.entries,
                last_adaptation_direction=self._gate.last_direction,
                direction_stable_count=self._gate.stable_count,
                normalized_positions=dict(self._positions),
                dom_performance_profiles=profiles,
            )

    def save_state(self) -> bool:
        if self.user_id is None:
            return False
        with self._lock:
            state = self.build_state()
            return self._gateway.save_state(state, self.user_id)

    def save_state_async(self) -> Future:
        return self._submit(self.save_state)

    def load_state(self) -> bool:
        if self.user_id is None:
            return False
        state = self._gateway.load_state(self.user_id)
        if state is None:
            return False
        with self._lock:
            self._history.load(state.performance_history)
            self._gate = create_signal_gate(
                self._config, state.last_adaptation_direction, state.direction_stable_count
            )
            for dom, position in state.normalized_positions.items():
                self._positions[dom] = clamp_unit(position)
            if state.dom_performance_profiles is not None:
                self._profiler.profiles.update(state.dom_performance_profiles)
        return True
