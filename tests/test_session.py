from ADM_Persistence import PersistenceGateway
from Session_Based import active_users, end_session, run_round_adjustment


def test_run_round_adjustment_basic_shape(tmp_path):
	gateway = PersistenceGateway(directory=str(tmp_path))
	result = run_round_adjustment(
		user_id="session_u1",
		task_success=True,
		tf_ttf_ratio=0.8,
		reaction_time=0.5,
		response_duration=0.6,
		average_tap_accuracy=40,
		actual_targets_to_find=2,
		arousal=0.6,
		auto_save=True,
		gateway=gateway,
	)
	assert result["user_id"] == "session_u1"
	assert "Round_Result" in result
	summary = result.get("Summary")
	assert isinstance(summary, dict)
	assert "Target_Count" in summary
	assert "Next_Round_Difficulty" in summary
	assert summary["State_Saved"] is True
	assert "session_u1" in active_users()

	assert end_session("session_u1")
	assert not end_session("session_u1")
	assert gateway.load_state("session_u1") is not None


def test_manager_is_reused_across_rounds(tmp_path):
	gateway = PersistenceGateway(directory=str(tmp_path))
	first = run_round_adjustment(user_id="session_u2", gateway=gateway)
	second = run_round_adjustment(user_id="session_u2", gateway=gateway)
	assert second["Round_Result"]["round"] == first["Round_Result"]["round"] + 1
	end_session("session_u2")
