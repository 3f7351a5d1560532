import pytest

from adm_config import STATE_DIRECTORY_ENV
from Tester.backend import app


@pytest.fixture
def client(tmp_path, monkeypatch):
	monkeypatch.setenv(STATE_DIRECTORY_ENV, str(tmp_path))
	app.config["TESTING"] = True
	with app.test_client() as test_client:
		yield test_client


def round_payload(user_id, **overrides):
	payload = {
		"user_id": user_id,
		"task_success": True,
		"tf_ttf_ratio": 0.7,
		"reaction_time": 0.6,
		"response_duration": 0.8,
		"average_tap_accuracy": 50,
	}
	payload.update(overrides)
	return payload


def test_health(client):
	response = client.get("/api/health")
	assert response.status_code == 200
	assert response.get_json()["status"] == "ok"


def test_round_requires_user_id(client):
	response = client.post("/api/adm/round", json={"task_success": True})
	assert response.status_code == 400
	assert response.get_json()["success"] is False


def test_round_rejects_bad_numbers(client):
	response = client.post("/api/adm/round", json=round_payload("backend_bad", reaction_time="fast"))
	assert response.status_code == 400


def test_round_and_arousal(client):
	response = client.post("/api/adm/round", json=round_payload("backend_u1", arousal=0.8))
	body = response.get_json()
	assert response.status_code == 200
	assert body["success"] is True
	assert set(body["result"]["paths"].values()) == {"global"}

	response = client.post("/api/adm/arousal", json={"user_id": "backend_u1", "arousal": 0.4})
	assert response.get_json()["result"]["arousal"] == 0.4
	client.post("/api/session/end", json={"user_id": "backend_u1"})


def test_session_save_state_and_clear(client):
	response = client.post("/api/session/round", json=round_payload("backend_u2", session_duration=600))
	assert response.status_code == 200
	assert "Summary" in response.get_json()["result"]

	assert client.post("/api/adm/save", json={"user_id": "backend_u2"}).get_json()["success"] is True

	live = client.get("/api/adm/state/backend_u2").get_json()
	assert live["source"] == "live"
	assert len(live["result"]["performanceHistory"]) == 1

	client.post("/api/session/end", json={"user_id": "backend_u2"})
	saved = client.get("/api/adm/state/backend_u2").get_json()
	assert saved["source"] == "saved"

	assert client.post("/api/adm/clear", json={"user_id": "backend_u2"}).get_json()["success"] is True
	assert client.get("/api/adm/state/backend_u2").status_code == 404


def test_save_without_session_is_rejected(client):
	response = client.post("/api/adm/save", json={"user_id": "backend_nobody"})
	assert response.status_code == 400
