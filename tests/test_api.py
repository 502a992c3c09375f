"""
HTTP surface tests: routing, auth and the error-to-status mapping.
"""
from typing import Any, Dict

from fastapi.testclient import TestClient


def _register(client: TestClient, email: str = "owner@example.com") -> Dict[str, Any]:
    response = client.post(
        "/auth/register",
        json={"full_name": "Owner", "email": email, "password": "StrongPass123"},
    )
    assert response.status_code == 201, response.text
    return response.json()


def _bearer(payload: Dict[str, Any]) -> Dict[str, str]:
    return {"Authorization": f"Bearer {payload['access_token']}"}


def test_health(client: TestClient) -> None:
    assert client.get("/health").json()["status"] == "ok"


def test_register_login_and_me(client: TestClient) -> None:
    registered = _register(client)

    login = client.post("/auth/login", json={"email": "owner@example.com", "password": "StrongPass123"})
    assert login.status_code == 200, login.text
    assert login.json()["token_type"] == "bearer"

    me = client.get("/auth/me", headers=_bearer(registered))
    assert me.status_code == 200
    assert me.json()["email"] == "owner@example.com"

    assert client.post("/auth/login", json={"email": "owner@example.com", "password": "wrong"}).status_code == 401


def test_requests_without_token_are_rejected(client: TestClient) -> None:
    assert client.get("/workspaces/").status_code == 401


def test_body_validation_uses_error_taxonomy(client: TestClient) -> None:
    headers = _bearer(_register(client))

    response = client.post("/workspaces/", json={}, headers=headers)

    assert response.status_code == 400
    assert response.json()["detail"]["kind"] == "validation_error"


def test_project_workflow(client: TestClient) -> None:
    headers = _bearer(_register(client))

    workspace = client.post("/workspaces/", json={"name": "Acme"}, headers=headers)
    assert workspace.status_code == 201, workspace.text
    workspace_id = workspace.json()["id"]
    assert workspace.json()["slug"] == "acme"

    listing = client.get("/workspaces/", headers=headers).json()
    assert listing["total"] == 1
    assert listing["items"][0]["role"] == "workspace_admin"

    project = client.post(
        "/projects/", json={"workspace_id": workspace_id, "name": "Apollo"}, headers=headers
    )
    assert project.status_code == 201, project.text
    project_id = project.json()["id"]

    task = client.post(
        "/tasks/", json={"project_id": project_id, "title": "Launch", "estimated_hours": 10}, headers=headers
    )
    assert task.status_code == 201, task.text
    task_id = task.json()["id"]

    progress = client.put(f"/progress/tasks/{task_id}", json={"progress": 40}, headers=headers)
    assert progress.status_code == 200, progress.text
    assert progress.json()["remaining_hours"] == 6.0

    project_view = client.get(f"/progress/projects/{project_id}", headers=headers)
    assert project_view.status_code == 200
    assert project_view.json()["project"]["progress"] == 40

    bulk = client.put(
        "/progress/tasks/bulk",
        json={"updates": [{"task_id": task_id, "status": "done"}, {"task_id": 999, "progress": 10}]},
        headers=headers,
    )
    assert bulk.status_code == 200, bulk.text
    assert [item["success"] for item in bulk.json()] == [True, False]

    dashboard = client.get(f"/dashboard/workspaces/{workspace_id}", headers=headers)
    assert dashboard.status_code == 200
    assert dashboard.json()["stats"]["completed_tasks"] == 1


def test_timer_endpoints(client: TestClient) -> None:
    headers = _bearer(_register(client))
    workspace_id = client.post("/workspaces/", json={"name": "Timers"}, headers=headers).json()["id"]
    project_id = client.post(
        "/projects/", json={"workspace_id": workspace_id, "name": "Clock"}, headers=headers
    ).json()["id"]
    task_id = client.post("/tasks/", json={"project_id": project_id, "title": "Tick"}, headers=headers).json()["id"]

    assert client.get("/time-tracking/timer/running", headers=headers).json() is None

    started = client.post("/time-tracking/timer/start", json={"task_id": task_id}, headers=headers)
    assert started.status_code == 201, started.text
    entry_id = started.json()["id"]

    again = client.post("/time-tracking/timer/start", json={"task_id": task_id}, headers=headers)
    assert again.status_code == 409
    assert again.json()["detail"]["kind"] == "timer_already_running"
    assert again.json()["detail"]["running_entry"]["id"] == entry_id

    running = client.get("/time-tracking/timer/running", headers=headers).json()
    assert running["entry"]["id"] == entry_id

    stopped = client.post(f"/time-tracking/timer/{entry_id}/stop", headers=headers)
    assert stopped.status_code == 200, stopped.text
    assert stopped.json()["is_running"] is False


def test_manual_entries_and_approval_route(client: TestClient) -> None:
    headers = _bearer(_register(client))
    workspace_id = client.post("/workspaces/", json={"name": "Hours"}, headers=headers).json()["id"]
    project_id = client.post(
        "/projects/", json={"workspace_id": workspace_id, "name": "Ledger"}, headers=headers
    ).json()["id"]
    task_id = client.post("/tasks/", json={"project_id": project_id, "title": "Count"}, headers=headers).json()["id"]

    future = client.post(
        "/time-tracking/entries",
        json={"task_id": task_id, "hours": 1, "date": "2999-01-01"},
        headers=headers,
    )
    assert future.status_code == 400
    assert future.json()["detail"]["kind"] == "future_date"

    logged = client.post(
        "/time-tracking/entries",
        json={"task_id": task_id, "hours": 2, "date": "2024-01-15", "billable": True},
        headers=headers,
    )
    assert logged.status_code == 201, logged.text
    entry_id = logged.json()["id"]

    approved = client.put(
        "/time-tracking/entries/approve", json={"entry_ids": [entry_id], "approved": True}, headers=headers
    )
    assert approved.status_code == 200, approved.text
    assert approved.json()[0]["success"] is True

    locked = client.put(f"/time-tracking/entries/{entry_id}", json={"hours": 3}, headers=headers)
    assert locked.status_code == 409
    assert locked.json()["detail"]["kind"] == "not_editable"

    entries = client.get("/time-tracking/entries", headers=headers).json()
    assert entries["pagination"]["total"] == 1
    assert entries["summary"]["billable_hours"] == 2


def test_outsider_gets_access_denied(client: TestClient) -> None:
    owner = _bearer(_register(client, "first@example.com"))
    outsider = _bearer(_register(client, "second@example.com"))
    workspace_id = client.post("/workspaces/", json={"name": "Private"}, headers=owner).json()["id"]

    response = client.get(f"/workspaces/{workspace_id}", headers=outsider)

    assert response.status_code == 403
    assert response.json()["detail"]["kind"] == "access_denied"


def test_invite_and_join_over_http(client: TestClient) -> None:
    owner = _bearer(_register(client, "boss@example.com"))
    joiner = _bearer(_register(client, "new@example.com"))
    workspace_id = client.post("/workspaces/", json={"name": "Team"}, headers=owner).json()["id"]

    invite = client.post(f"/workspaces/{workspace_id}/invites", json={"role": "team_member"}, headers=owner)
    assert invite.status_code == 201, invite.text
    assert invite.json()["invite_link"].endswith(invite.json()["invite_token"])

    joined = client.post("/workspaces/join", json={"token": invite.json()["invite_token"]}, headers=joiner)
    assert joined.status_code == 200, joined.text
    assert joined.json()["status"] == "active"

    members = client.get(f"/workspaces/{workspace_id}/members", headers=owner).json()
    assert len(members) == 2


def test_dashboard_analytics_endpoint(client: TestClient) -> None:
    headers = _bearer(_register(client))
    client.post("/workspaces/", json={"name": "Stats"}, headers=headers)

    trends = client.get("/dashboard/analytics", params={"timeframe": "7d", "type": "trends"}, headers=headers)
    assert trends.status_code == 200, trends.text
    assert trends.json()["type"] == "trends"
    assert trends.json()["trends"] == {"tasks": [], "projects": []}

    bad = client.get("/dashboard/analytics", params={"timeframe": "2w"}, headers=headers)
    assert bad.status_code == 400
    assert bad.json()["detail"]["kind"] == "validation_error"


def test_paginated_listings(client: TestClient) -> None:
    headers = _bearer(_register(client))
    workspace_id = client.post("/workspaces/", json={"name": "Lists"}, headers=headers).json()["id"]
    project_id = client.post(
        "/projects/", json={"workspace_id": workspace_id, "name": "Atlas"}, headers=headers
    ).json()["id"]
    for title in ("Alpha bug", "Beta feature"):
        client.post("/tasks/", json={"project_id": project_id, "title": title}, headers=headers)

    projects = client.get("/projects/", params={"workspace_id": workspace_id}, headers=headers)
    assert projects.status_code == 200, projects.text
    assert projects.json()["total"] == 1

    tasks = client.get(
        "/tasks/", params={"project_id": project_id, "search": "bug", "limit": 1}, headers=headers
    )
    assert tasks.status_code == 200, tasks.text
    assert [t["title"] for t in tasks.json()["items"]] == ["Alpha bug"]

    mine = client.get("/tasks/my", params={"reported_by_me": True}, headers=headers)
    assert mine.status_code == 200, mine.text
    assert mine.json()["total"] == 2
