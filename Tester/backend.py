"""
Flask Backend API for Adaptive Difficulty Testing
Provides REST endpoints to drive the adaptive difficulty manager from the front-end.
"""

from flask import Flask, request, jsonify
from flask_cors import CORS
import sys
import os

# Add parent directory to path to import algorithms
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from ADM_Persistence import PersistenceGateway
from Session_Based import active_users, end_session, get_manager, run_round_adjustment

app = Flask(__name__)
CORS(app)  # Enable CORS for front-end requests


def _require_user_id(data: dict) -> str:
    user_id = data.get('user_id')
    if not user_id:
        raise ValueError("'user_id' is required")
    return str(user_id)


def _round_kwargs(data: dict) -> dict:
    """Pull the per-round metrics out of a request payload."""
    return {
        "task_success": bool(data.get('task_success', False)),
        "tf_ttf_ratio": float(data.get('tf_ttf_ratio', 0.0)),
        "reaction_time": float(data.get('reaction_time', 1.0)),
        "response_duration": float(data.get('response_duration', 1.0)),
        "average_tap_accuracy": float(data.get('average_tap_accuracy', 0.0)),
    }


@app.route('/api/health', methods=['GET'])
def health():
    """Health check endpoint"""
    return jsonify({"status": "ok", "message": "Adaptive difficulty API is running"})


@app.route('/api/adm/round', methods=['POST'])
def adm_round():
    """
    Record one identification round for a user's live manager.

    Expected JSON payload:
    {
        "user_id": str,
        "task_success": bool,
        "tf_ttf_ratio": float,
        "reaction_time": float,
        "response_duration": float,
        "average_tap_accuracy": float,
        "actual_targets_to_find": int (optional),
        "arousal": float (optional)
    }
    """
    try:
        data = request.json
        user_id = _require_user_id(data)
        metrics = _round_kwargs(data)
        targets = int(data.get('actual_targets_to_find', 1))
        arousal = data.get('arousal')

        manager = get_manager(user_id)
        if arousal is not None:
            manager.update_arousal_level(float(arousal))

        result = manager.record_identification_performance(
            actual_targets_to_find_in_round=targets, **metrics
        )

        return jsonify({
            "success": True,
            "result": result
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


@app.route('/api/adm/arousal', methods=['POST'])
def adm_arousal():
    """
    Push a new arousal level.

    Expected JSON payload:
    {
        "user_id": str,
        "arousal": float
    }
    """
    try:
        data = request.json
        user_id = _require_user_id(data)
        if 'arousal' not in data:
            raise ValueError("'arousal' is required")

        manager = get_manager(user_id)
        manager.update_arousal_level(float(data['arousal']))

        return jsonify({
            "success": True,
            "result": {
                "user_id": user_id,
                "arousal": manager.arousal_level,
                "dom_values": {dom.value: value for dom, value in manager.current_dom_values().items()},
            }
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


@app.route('/api/adm/state/<user_id>', methods=['GET'])
def adm_state(user_id):
    """Live state when the user has an active manager, else the saved snapshot."""
    try:
        if user_id in active_users():
            state = get_manager(user_id).build_state()
            source = "live"
        else:
            state = PersistenceGateway().load_state(user_id)
            source = "saved"

        if state is None:
            return jsonify({
                "success": False,
                "error": f"No state for user: {user_id}"
            }), 404

        return jsonify({
            "success": True,
            "source": source,
            "result": state.to_dict()
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


@app.route('/api/adm/save', methods=['POST'])
def adm_save():
    """
    Persist a live manager's state.

    Expected JSON payload:
    {
        "user_id": str
    }
    """
    try:
        data = request.json
        user_id = _require_user_id(data)
        if user_id not in active_users():
            raise ValueError(f"No active session for user: {user_id}")

        saved = get_manager(user_id).save_state()
        return jsonify({
            "success": saved,
            "result": {"user_id": user_id, "saved": saved}
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


@app.route('/api/adm/clear', methods=['POST'])
def adm_clear():
    """
    Drop a user's live manager and delete the saved snapshot.

    Expected JSON payload:
    {
        "user_id": str
    }
    """
    try:
        data = request.json
        user_id = _require_user_id(data)

        if user_id in active_users():
            end_session(user_id)
        cleared = PersistenceGateway().clear_state(user_id)

        return jsonify({
            "success": cleared,
            "result": {"user_id": user_id, "cleared": cleared}
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


@app.route('/api/session/round', methods=['POST'])
def session_round():
    """
    Run a round through the session entrypoint.

    Expected JSON payload:
    {
        "user_id": str,
        "task_success": bool,
        "tf_ttf_ratio": float,
        "reaction_time": float,
        "response_duration": float,
        "average_tap_accuracy": float,
        "actual_targets_to_find": int (optional),
        "arousal": float (optional),
        "session_duration": float (optional, seconds),
        "auto_save": bool (optional)
    }
    """
    try:
        data = request.json
        user_id = _require_user_id(data)
        session_duration = data.get('session_duration')
        arousal = data.get('arousal')

        result = run_round_adjustment(
            user_id=user_id,
            actual_targets_to_find=int(data.get('actual_targets_to_find', 1)),
            arousal=None if arousal is None else float(arousal),
            session_duration=None if session_duration is None else float(session_duration),
            auto_save=bool(data.get('auto_save', False)),
            **_round_kwargs(data)
        )

        return jsonify({
            "success": True,
            "result": result
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


@app.route('/api/session/end', methods=['POST'])
def session_end():
    """
    Save and retire a user's live manager.

    Expected JSON payload:
    {
        "user_id": str
    }
    """
    try:
        data = request.json
        user_id = _require_user_id(data)
        ended = end_session(user_id)

        return jsonify({
            "success": True,
            "result": {"user_id": user_id, "ended": ended}
        })

    except Exception as e:
        return jsonify({
            "success": False,
            "error": str(e)
        }), 400


if __name__ == '__main__':
    print("Starting Adaptive Difficulty API on http://localhost:5000")
    print("API Endpoints:")
    print("  GET  /api/health")
    print("  POST /api/adm/round")
    print("  POST /api/adm/arousal")
    print("  GET  /api/adm/state/<user_id>")
    print("  POST /api/adm/save")
    print("  POST /api/adm/clear")
    print("  POST /api/session/round")
    print("  POST /api/session/end")
    app.run(debug=True, port=5000)
