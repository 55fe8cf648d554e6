"""
Workflow API tests: step catalog, start, save/complete steps, navigation.
"""

import pytest

from app.services.jwt_service import generate_access_token


def _jwt_headers(user_id: int) -> dict:
    return {
        "Authorization": f"Bearer {generate_access_token(user_id)}",
        "Content-Type": "application/json",
    }


def _put_step(client, headers, pid, step_id, **body):
    return client.put(f"/api/v1/projects/{pid}/workflow/steps/{step_id}", headers=headers, json=body)


def test_step_catalog_is_public(client):
    res = client.get("/api/v1/workflow/steps")
    assert res.status_code == 200
    body = res.get_json()
    assert body["total"] == 9
    assert [s["id"] for s in body["steps"]] == list(range(1, 10))
    assert body["steps"][0]["title"] == "Describe Your Idea"
    assert {"id": "appIdea", "label": "Describe your app idea", "required": True} in body["steps"][0]["fields"]


def test_start_workflow(client, auth_headers, project):
    res = client.post(f"/api/v1/projects/{project.id}/workflow", headers=auth_headers)
    assert res.status_code == 201
    body = res.get_json()
    assert body["current_step"] == 1
    assert body["is_completed"] is False
    assert body["responses"] == []

    again = client.post(f"/api/v1/projects/{project.id}/workflow", headers=auth_headers)
    assert again.status_code == 409

    flows = client.get(f"/api/v1/projects/{project.id}/data-flows", headers=auth_headers)
    assert flows.get_json()["total"] == 7


def test_get_workflow_before_start_is_404(client, auth_headers, project):
    res = client.get(f"/api/v1/projects/{project.id}/workflow", headers=auth_headers)
    assert res.status_code == 404


def test_save_step_creates_workflow_lazily(client, auth_headers, project):
    res = _put_step(client, auth_headers, project.id, 1, responses={"appIdea": "Habit tracker"})
    assert res.status_code == 200
    body = res.get_json()
    assert body["response"]["responses"] == {"appIdea": "Habit tracker"}
    assert body["response"]["completed"] is False
    assert body["workflow"]["current_step"] == 1
    assert "responses" not in body["workflow"]


def test_complete_step_advances_and_propagates(client, auth_headers, workflow, project):
    res = _put_step(
        client, auth_headers, project.id, 1,
        responses={"appName": "Habits", "appIdea": "Habit tracker"}, completed=True,
    )
    assert res.status_code == 200
    assert res.get_json()["workflow"]["current_step"] == 2

    step2 = client.get(f"/api/v1/projects/{project.id}/workflow/steps/2", headers=auth_headers).get_json()
    assert step2["response"]["responses"] == {"projectName": "Habits", "initialIdea": "Habit tracker"}
    assert step2["response"]["completed"] is False
    assert step2["status"] == "current"


def test_full_walkthrough_completes_workflow(client, auth_headers, workflow, project):
    for step_id in range(1, 10):
        res = _put_step(client, auth_headers, project.id, step_id, responses={"n": step_id}, completed=True)
        assert res.status_code == 200
    wf = res.get_json()["workflow"]
    assert wf["current_step"] == 9
    assert wf["is_completed"] is True
    assert wf["completed_at"] is not None

    progress = client.get(f"/api/v1/projects/{project.id}/progress", headers=auth_headers).get_json()
    assert progress["percent_complete"] == 100
    assert progress["estimated_minutes_remaining"] is None


@pytest.mark.parametrize("step_id", ["0", "10", "abc", "-1"])
def test_invalid_step_in_path(client, auth_headers, project, step_id):
    assert client.get(
        f"/api/v1/projects/{project.id}/workflow/steps/{step_id}", headers=auth_headers,
    ).status_code == 400
    assert _put_step(client, auth_headers, project.id, step_id, responses={}).status_code == 400


@pytest.mark.parametrize("body", [
    {"responses": "text"},
    {"responses": {}, "completed": "true"},
    {"ai_suggestions": 12},
])
def test_save_step_rejects_bad_body(client, auth_headers, project, body):
    res = _put_step(client, auth_headers, project.id, 1, **body)
    assert res.status_code == 400


def test_non_json_body_rejected(client, auth_headers, project):
    headers = {"Authorization": auth_headers["Authorization"], "Content-Type": "text/plain"}
    res = client.put(
        f"/api/v1/projects/{project.id}/workflow/steps/1", headers=headers, data="responses=1",
    )
    assert res.status_code == 415


def test_get_step_without_workflow(client, auth_headers, project):
    res = client.get(f"/api/v1/projects/{project.id}/workflow/steps/3", headers=auth_headers)
    assert res.status_code == 200
    body = res.get_json()
    assert body["step"]["id"] == 3
    assert body["response"] is None
    assert "status" not in body


def test_navigation(client, auth_headers, workflow, project):
    _put_step(client, auth_headers, project.id, 1, responses={"a": 1}, completed=True)

    res = client.get(f"/api/v1/projects/{project.id}/workflow/navigation", headers=auth_headers)
    assert res.status_code == 200
    nav = res.get_json()
    assert nav["current_step"] == 2
    assert nav["step_id"] == 2
    assert nav["can_go_next"] is False
    assert nav["steps"][0]["status"] == "completed"

    res = client.get(f"/api/v1/projects/{project.id}/workflow/navigation?step_id=1", headers=auth_headers)
    assert res.get_json()["can_go_next"] is True

    res = client.get(f"/api/v1/projects/{project.id}/workflow/navigation?step_id=12", headers=auth_headers)
    assert res.status_code == 400


def test_workflow_routes_are_owner_only(client, workflow, project, other_user):
    headers = _jwt_headers(other_user.id)
    base = f"/api/v1/projects/{project.id}/workflow"
    assert client.get(base, headers=headers).status_code == 404
    assert client.post(base, headers=headers).status_code == 404
    assert client.get(f"{base}/navigation", headers=headers).status_code == 404
    assert client.get(f"{base}/steps/1", headers=headers).status_code == 404
    assert _put_step(client, headers, project.id, 1, responses={"x": 1}).status_code == 404


def test_workflow_requires_token(client, project):
    res = client.get(f"/api/v1/projects/{project.id}/workflow")
    assert res.status_code == 401
    assert res.get_json()["code"] == "ERR_UNAUTHORIZED"
