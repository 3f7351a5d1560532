"""
ADM_Persistence.py
------------------
Per-user snapshots of the adaptive difficulty manager, stored as one JSON
file per user. Older snapshots (no version, no DOM profiles) still load; the
missing parts come back empty.
"""

import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Optional

from adm_config import (
    ADMConfig,
    DOMType,
    STATE_DIRECTORY_DEFAULT,
    STATE_DIRECTORY_ENV,
    STATE_SCHEMA_VERSION,
    clamp_unit,
    coerce_number,
)
from ADM_Bases.History import PerformanceHistoryEntry
from ADM_Bases.Hysteresis import AdaptationDirection
from ADM_Bases.Profiling import DOMPerformanceProfile, empty_profiles

logger = logging.getLogger(__name__)

STATE_FILE_PREFIX = "adm_state_"
STATE_FILE_SUFFIX = ".json"


@dataclass
class PersistedADMState:
    performance_history: list = field(default_factory=list)
    last_adaptation_direction: AdaptationDirection = AdaptationDirection.STABLE
    direction_stable_count: int = 0
    normalized_positions: dict = field(default_factory=dict)
    dom_performance_profiles: Optional[dict] = None
    version: int = STATE_SCHEMA_VERSION

    def to_dict(self) -> dict:
        data = {
            "version": self.version,
            "performanceHistory": [entry.to_dict() for entry in self.performance_history],
            "lastAdaptationDirection": AdaptationDirection(self.last_adaptation_direction).value,
            "directionStableCount": self.direction_stable_count,
            "normalizedPositions": {dom.value: pos for dom, pos in self.normalized_positions.items()},
        }
        if self.dom_performance_profiles is not None:
            data["domPerformanceProfiles"] = [
                profile.to_dict() for profile in self.dom_performance_profiles.values()
            ]
        return data

    @classmethod
    def from_dict(cls, data: dict, window_size: Optional[int] = None) -> "PersistedADMState":
        if not isinstance(data, dict):
            raise ValueError("state blob must be a JSON object")

        history = [PerformanceHistoryEntry.from_dict(item) for item in data.get("performanceHistory") or []]
        if window_size is not None and len(history) > window_size:
            history = history[-window_size:]

        try:
            direction = AdaptationDirection(data.get("lastAdaptationDirection", "stable"))
        except ValueError:
            direction = AdaptationDirection.STABLE

        positions = {}
        for key, value in (data.get("normalizedPositions") or {}).items():
            try:
                positions[DOMType(key)] = clamp_unit(float(value))
            except (TypeError, ValueError):
                continue

        # Pre-profiling snapshots: every DOM starts with an empty profile
        profiles = empty_profiles()
        for item in data.get("domPerformanceProfiles") or []:
            try:
                dom = DOMType(item.get("domType"))
            except ValueError:
                continue
            profiles[dom] = DOMPerformanceProfile.from_dict(dom, item)

        return cls(
            performance_history=history,
            last_adaptation_direction=direction,
            direction_stable_count=max(0, int(coerce_number(data.get("directionStableCount"), 0))),
            normalized_positions=positions,
            dom_performance_profiles=profiles,
            version=int(coerce_number(data.get("version"), 1)),
        )


def _safe_user_id(user_id: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", str(user_id))


class PersistenceGateway:

    __slots__ = ("_config", "directory")

    def __init__(self, config: Optional[ADMConfig] = None, directory: Optional[str] = None):
        self._config = config or ADMConfig()
        self.directory = (
            directory
            or self._config.state_directory
            or os.environ.get(STATE_DIRECTORY_ENV)
            or STATE_DIRECTORY_DEFAULT
        )

    def state_path(self, user_id: str) -> str:
        return os.path.join(self.directory, f"{STATE_FILE_PREFIX}{_safe_user_id(user_id)}{STATE_FILE_SUFFIX}")

    def save_state(self, state: PersistedADMState, user_id: str) -> bool:
        path = self.state_path(user_id)
        try:
            os.makedirs(self.directory, exist_ok=True)
            tmp_path = path + ".tmp"
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(state.to_dict(), handle, indent=2)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            logger.warning({"event": "adm_state_save_failed", "user_id": user_id, "error": str(exc)})
            return False
        logger.info(
            {
                "event": "adm_state_saved",
                "user_id": user_id,
                "history": len(state.performance_history),
                "direction": AdaptationDirection(state.last_adaptation_direction).value,
            }
        )
        return True

    def load_state(self, user_id: str) -> Optional[PersistedADMState]:
        """Load a user's snapshot; None for a fresh user or an unreadable file."""
        path = self.state_path(user_id)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as handle:
                data = json.load(handle)
            state = PersistedADMState.from_dict(data, self._config.performance_history_window_size)
        except (OSError, ValueError, TypeError, AttributeError) as exc:
            logger.warning({"event": "adm_state_load_failed", "user_id": user_id, "error": str(exc)})
            return None
        logger.info(
            {
                "event": "adm_state_loaded",
                "user_id": user_id,
                "version": state.version,
                "history": len(state.performance_history),
            }
        )
        return state

    def clear_state(self, user_id: str) -> bool:
        path = self.state_path(user_id)
        try:
            if os.path.exists(path):
                os.remove(path)
        except OSError as exc:
            logger.warning({"event": "adm_state_clear_failed", "user_id": user_id, "error": str(exc)})
            return False
        return True

    def list_saved_states(self) -> list:
        try:
            names = os.listdir(self.directory)
        except OSError:
            return []
        return sorted(
            name[len(STATE_FILE_PREFIX) : -len(STATE_FILE_SUFFIX)]
            for name in names
            if name.startswith(STATE_FILE_PREFIX) and name.endswith(STATE_FILE_SUFFIX)
        )
