#!/usr/bin/env python3
"""
Standalone script to run one adaptive difficulty round
Can be called directly from Node.js using child_process
"""
import sys
import json
import os
import logging

# Add parent directory to path to import algorithms
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from Session_Based import end_session, run_round_adjustment

def main():
    """Main entry point for a round adjustment"""
    # Configure logging to stderr so stdout stays clean JSON for Node
    logging.basicConfig(stream=sys.stderr, level=logging.INFO)
    try:
        # Read input from stdin (JSON)
        input_data = json.loads(sys.stdin.read())
        logging.info({"event": "round_adjust_input", "payload": input_data})

        # Extract parameters
        user_id = input_data.get('user_id', 'unknown_user')
        task_success = bool(input_data.get('task_success', False))
        tf_ttf_ratio = float(input_data.get('tf_ttf_ratio', 0.0))
        reaction_time = float(input_data.get('reaction_time', 1.0))
        response_duration = float(input_data.get('response_duration', 1.0))
        average_tap_accuracy = float(input_data.get('average_tap_accuracy', 0.0))
        actual_targets_to_find = int(input_data.get('actual_targets_to_find', 1))
        arousal = input_data.get('arousal')
        session_duration = input_data.get('session_duration')

        # Each invocation is its own process: load, run one round, save
        result = run_round_adjustment(
            user_id=user_id,
            task_success=task_success,
            tf_ttf_ratio=tf_ttf_ratio,
            reaction_time=reaction_time,
            response_duration=response_duration,
            average_tap_accuracy=average_tap_accuracy,
            actual_targets_to_find=actual_targets_to_find,
            arousal=None if arousal is None else float(arousal),
            session_duration=None if session_duration is None else float(session_duration),
            auto_save=False,
        )
        end_session(user_id)

        # Output result as JSON to stdout
        output = {
            "success": True,
            "result": result
        }
        summary = result.get("Summary") or {}
        logging.info({
            "event": "round_adjust_output",
            "user_id": user_id,
            "direction": summary.get("Adaptation_Direction"),
            "difficulty": summary.get("Next_Round_Difficulty"),
            "score": summary.get("Performance_Score"),
        })
        print(json.dumps(output))

    except Exception as e:
        # Output error as JSON
        error_output = {
            "success": False,
            "error": str(e)
        }
        logging.exception({"event": "round_adjust_error", "error": str(e)})
        print(json.dumps(error_output))
        sys.exit(1)

if __name__ == '__main__':
    main()
