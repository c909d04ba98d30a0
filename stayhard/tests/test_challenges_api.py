from fastapi.testclient import TestClient

from stayhard.main import app

client = TestClient(app)


def headers(user_id="api-user"):
    return {"X-User-Id": user_id}


def test_first_request_starts_default_challenge():
    resp = client.get("/v1/challenges/current", headers=headers())
    assert resp.status_code == 200
    body = resp.json()
    challenge = body["data"]
    assert challenge["level"] == "Soft"
    assert challenge["duration_days"] == 21
    assert challenge["status"] == "active"
    assert challenge["stats"]["total_days_elapsed"] == 1
    assert challenge["days_remaining"] == 21
    assert body["request_id"] == resp.headers.get("x-request-id")


def test_start_returns_existing_active_challenge():
    current = client.get("/v1/challenges/current", headers=headers()).json()["data"]
    resp = client.post("/v1/challenges/start", headers=headers(), json={"duration_days": 75, "level": "Hard"})
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["created"] is False
    assert data["challenge"]["challenge_id"] == current["challenge_id"]


def test_start_custom_challenge(no_auto_start):
    resp = client.post(
        "/v1/challenges/start",
        headers=headers(),
        json={"duration_days": 45, "level": "Custom", "custom_tasks": ["Run", {"text": "Journal"}]},
    )
    assert resp.status_code == 201
    data = resp.json()["data"]
    assert data["created"] is True
    assert [t["text"] for t in data["challenge"]["task_template"]] == ["Run", "Journal"]


def test_start_rejects_unsupported_duration(no_auto_start):
    resp = client.post("/v1/challenges/start", headers=headers(), json={"duration_days": 30})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "validation_error"


def test_start_rejects_unknown_level(no_auto_start):
    resp = client.post("/v1/challenges/start", headers=headers(), json={"level": "Extreme"})
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "invalid_level"


def test_no_current_challenge_is_not_found(no_auto_start):
    resp = client.get("/v1/challenges/current", headers=headers())
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_update_days_and_difficulty():
    challenge_id = client.get("/v1/challenges/current", headers=headers()).json()["data"]["challenge_id"]

    days = client.patch(f"/v1/challenges/{challenge_id}/days", headers=headers(), json={"duration_days": 60})
    assert days.status_code == 200
    assert days.json()["data"]["duration_days"] == 60

    hard = client.patch(f"/v1/challenges/{challenge_id}/difficulty", headers=headers(), json={"level": "Hard"})
    assert hard.status_code == 200
    data = hard.json()["data"]
    assert data["challenge"]["level"] == "Hard"
    assert data["deleted_progress"] == 1

    progress = client.get("/v1/progress", headers=headers(), params={"challenge_id": challenge_id}).json()["data"]
    assert len(progress["progress"]["tasks"]) == 6


def test_difficulty_to_custom_requires_tasks():
    challenge_id = client.get("/v1/challenges/current", headers=headers()).json()["data"]["challenge_id"]
    resp = client.patch(f"/v1/challenges/{challenge_id}/difficulty", headers=headers(), json={"level": "Custom"})
    assert resp.status_code == 400


def test_abandon_then_reset_is_invalid_state():
    challenge_id = client.get("/v1/challenges/current", headers=headers()).json()["data"]["challenge_id"]

    abandoned = client.post(f"/v1/challenges/{challenge_id}/abandon", headers=headers())
    assert abandoned.status_code == 200
    assert abandoned.json()["data"]["status"] == "abandoned"

    reset = client.post(f"/v1/challenges/{challenge_id}/reset", headers=headers())
    assert reset.status_code == 409
    assert reset.json()["error"]["code"] == "invalid_state"

    me = client.get("/v1/users/me", headers=headers()).json()["data"]
    assert me["current_challenge_id"] is None


def test_reset_restores_defaults():
    challenge_id = client.get("/v1/challenges/current", headers=headers()).json()["data"]["challenge_id"]
    client.patch(f"/v1/challenges/{challenge_id}/difficulty", headers=headers(), json={"level": "Hard"})

    resp = client.post(f"/v1/challenges/{challenge_id}/reset", headers=headers())
    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["challenge"]["level"] == "Soft"
    assert data["challenge"]["duration_days"] == 21
    assert data["deleted_progress"] == 1


def test_challenge_of_another_user_is_forbidden():
    challenge_id = client.get("/v1/challenges/current", headers=headers("owner")).json()["data"]["challenge_id"]
    resp = client.get(f"/v1/challenges/{challenge_id}", headers=headers("someone-else"))
    assert resp.status_code == 403
    assert resp.json()["error"]["code"] == "forbidden"
