"""
Priority.py - Priority-Weighted Budget Allocation
-------------------------------------------------
Spreads a signed adaptation budget across DOMs according to an
arousal-dependent priority ordering.

Hardening (budget > 0): single pass, weighted by priority.
Easing (budget < 0):    pass 1 eases only DOMs above the midpoint without
                        pushing them below it, pass 2 spends what is left on
                        every DOM of the subset. Both passes use inverted
                        priority when invert is set.
"""

import logging
from typing import Iterable, Optional

from adm_config import ADMConfig, DOMType, ALL_DOMS, POSITION_MIDPOINT, clamp_unit, smoothstep

logger = logging.getLogger(__name__)

BUDGET_EPSILON = 1e-4


class PriorityBudgetAllocator:

    __slots__ = ("_config", "_priority_min", "_priority_max")

    def __init__(self, config: ADMConfig):
        self._config = config
        values = list(config.dom_priorities_low_mid_arousal.values()) + list(
            config.dom_priorities_high_arousal.values()
        )
        self._priority_min = min(values) if values else 1.0
        self._priority_max = max(values) if values else 1.0

    def calculate_interpolated_dom_priority(self, dom_type: DOMType, arousal: float, invert: bool = False) -> float:
        cfg = self._config
        low = cfg.dom_priorities_low_mid_arousal.get(dom_type, self._priority_min)
        high = cfg.dom_priorities_high_arousal.get(dom_type, self._priority_min)
        t = smoothstep(arousal, cfg.dom_priority_transition_start, cfg.dom_priority_transition_end)
        priority = low + (high - low) * t
        if invert:
            priority = (self._priority_max + self._priority_min) - priority
        return priority

    def priority_weights(self, arousal: float, invert: bool, subset: Optional[Iterable[DOMType]] = None) -> dict:
        """Normalized weights over the subset (sum 1.0), recomputed on every call."""
        doms = list(ALL_DOMS if subset is None else subset)
        raw = {dom: max(0.0, self.calculate_interpolated_dom_priority(dom, arousal, invert)) for dom in doms}
        total = sum(raw.values())
        if total <= 0:
            if not doms:
                return {}
            return {dom: 1.0 / len(doms) for dom in doms}
        return {dom: value / total for dom, value in raw.items()}

    def distribute_adaptation_budget(
        self,
        total_budget: float,
        arousal: float,
        invert: bool = False,
        subset: Optional[Iterable[DOMType]] = None,
    ) -> dict:
        weights = self.priority_weights(arousal, invert, subset)
        return {dom: total_budget * weight for dom, weight in weights.items()}

    # Spend Share: move one DOM by share x smoothing, optionally not below a floor
    def _spend(self, positions: dict, dom: DOMType, share: float, easing: bool, floor: float = 0.0) -> float:
        factor = self._config.smoothing_factor(dom, easing)
        if factor <= 0:
            return 0.0
        current = positions.get(dom, POSITION_MIDPOINT)
        target = current + share * factor
        if easing:
            target = max(target, floor)
        new_position = clamp_unit(target)
        positions[dom] = new_position
        return (new_position - current) / factor

    def modulate_with_weighted_budget(
        self,
        positions: dict,
        total_budget: float,
        arousal: float,
        invert: bool = False,
        subset: Optional[Iterable[DOMType]] = None,
    ) -> float:
        """
        Apply the budget to positions in place and return what could not be
        spent (DOMs saturated at a bound).
        """
        doms = list(ALL_DOMS if subset is None else subset)
        if not doms or abs(total_budget) < BUDGET_EPSILON:
            return total_budget

        remaining = total_budget
        if total_budget > 0:
            shares = self.distribute_adaptation_budget(total_budget, arousal, invert, doms)
            for dom, share in shares.items():
                remaining -= self._spend(positions, dom, share, easing=False)
        else:
            above_midpoint = [dom for dom in doms if positions.get(dom, POSITION_MIDPOINT) > POSITION_MIDPOINT]
            if above_midpoint:
                shares = self.distribute_adaptation_budget(remaining, arousal, invert, above_midpoint)
                for dom, share in shares.items():
                    remaining -= self._spend(positions, dom, share, easing=True, floor=POSITION_MIDPOINT)

            if abs(remaining) >= BUDGET_EPSILON:
                shares = self.distribute_adaptation_budget(remaining, arousal, invert, doms)
                for dom, share in shares.items():
                    remaining -= self._spend(positions, dom, share, easing=True)

        if abs(remaining) >= BUDGET_EPSILON:
            logger.debug({"event": "budget_unspent", "total": round(total_budget, 4), "remaining": round(remaining, 4)})
        return remaining
