"""
Session_Based.py
----------------
High-level entrypoint used by the backend and the CLI script. Keeps one
AdaptiveDifficultyManager per user for the life of a session and turns each
identification round into a combined result for API consumers.
"""

import logging
import threading

from adm_config import ADMConfig, difficulty_from_position
from ADM_Algo import AdaptiveDifficultyManager
from ADM_Persistence import PersistenceGateway

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
_managers: dict = {}


def get_manager(
    user_id: str,
    arousal: float = 0.5,
    session_duration: float = None,
    config: ADMConfig = None,
    gateway: PersistenceGateway = None,
) -> AdaptiveDifficultyManager:
    """Return the user's live manager, creating it (with saved state) on first use."""
    with _registry_lock:
        manager = _managers.get(user_id)
        if manager is None:
            manager = AdaptiveDifficultyManager(
                config=config,
                initial_arousal=arousal,
                session_duration=session_duration,
                user_id=user_id,
                gateway=gateway,
            )
            _managers[user_id] = manager
        return manager


def active_users() -> list:
    with _registry_lock:
        return sorted(_managers)


def run_round_adjustment(
    user_id: str = None,
    task_success: bool = False,
    tf_ttf_ratio: float = 0.0,
    reaction_time: float = 1.0,
    response_duration: float = 1.0,
    average_tap_accuracy: float = 0.0,
    actual_targets_to_find: int = 1,
    arousal: float = None,
    session_duration: float = None,
    auto_save: bool = False,
    config: ADMConfig = None,
    gateway: PersistenceGateway = None,
) -> dict:

    # Input validation / defaults.
    if user_id is None:
        user_id = "unknown_user"
    if arousal is not None:
        arousal = max(0.0, min(1.0, float(arousal)))
    if actual_targets_to_find < 1:
        actual_targets_to_find = 1
    if session_duration is not None and session_duration < 0:
        session_duration = None

    manager = get_manager(
        user_id,
        arousal=0.5 if arousal is None else arousal,
        session_duration=session_duration,
        config=config,
        gateway=gateway,
    )
    if arousal is not None:
        manager.update_arousal_level(arousal)

    round_result = manager.record_identification_performance(
        task_success=task_success,
        tf_ttf_ratio=tf_ttf_ratio,
        reaction_time=reaction_time,
        response_duration=response_duration,
        average_tap_accuracy=average_tap_accuracy,
        actual_targets_to_find_in_round=actual_targets_to_find,
    )

    saved = manager.save_state() if auto_save else False

    positions = manager.normalized_positions
    mean_position = sum(positions.values()) / len(positions)

    # Build combined result for API consumers.
    return {
        "user_id": user_id,
        "Round_Result": round_result,
        "Summary": {
            "Performance_Score": round_result["score"],
            "Adaptation_Direction": round_result["direction"],
            "Target_Count": manager.current_target_count,
            "Response_Time": round(manager.current_response_time, 3),
            "Discriminability_Factor": round(manager.current_discriminability_factor, 3),
            "Mean_Ball_Speed": round(manager.current_mean_ball_speed, 3),
            "Ball_Speed_SD": round(manager.current_ball_speed_sd, 3),
            "Next_Round_Difficulty": difficulty_from_position(mean_position),
            "Warmup": round_result["warmup"],
            "State_Saved": saved,
        },
    }


def end_session(user_id: str) -> bool:
    """Persist the user's state and retire the manager. False if none is live."""
    with _registry_lock:
        manager = _managers.pop(user_id, None)
    if manager is None:
        return False
    manager.shutdown()
    saved = manager.save_state()
    logger.info({"event": "adm_session_ended", "user_id": user_id, "saved": saved})
    return True
