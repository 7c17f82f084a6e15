# tests/test_api.py

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from taskdesk.admin.admin_service import grant_role
from taskdesk.api.app import create_app
from taskdesk.data.models import Role

from .conftest import PASSWORD


@pytest.fixture()
def api(state) -> TestClient:
    return TestClient(create_app(state))


def _signup(api: TestClient, email: str, full_name: str | None = None) -> dict:
    body = {"email": email, "password": PASSWORD}
    if full_name:
        body["full_name"] = full_name
    r = api.post("/auth/signup", json=body)
    assert r.status_code == 200, r.text
    return r.json()["data"]


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def test_health(api) -> None:
    r = api.get("/health")
    assert r.json() == {"data": {"status": "ok"}, "error": None}


def test_two_users_and_an_admin(api, database) -> None:
    # A registers and manages a task
    a = _signup(api, "a@example.com", "Alice")
    assert a["user"]["role"] == "user"
    assert a["user"]["full_name"] == "Alice"
    a_headers = _auth(a["session"]["access_token"])

    r = api.post("/tasks", json={"title": "Write report", "priority": "high"}, headers=a_headers)
    assert r.status_code == 201
    task = r.json()["data"]
    assert (task["status"], task["priority"]) == ("pending", "high")

    r = api.put(f"/tasks/{task['id']}", json={"status": "completed"}, headers=a_headers)
    assert r.json()["data"]["status"] == "completed"
    assert r.json()["data"]["title"] == "Write report"

    r = api.get("/tasks", headers=a_headers)
    assert [t["id"] for t in r.json()["data"]] == [task["id"]]

    # B sees none of it and cannot touch it
    b = _signup(api, "b@example.com")
    b_headers = _auth(b["session"]["access_token"])
    assert api.get("/tasks", headers=b_headers).json()["data"] == []

    r = api.put(f"/tasks/{task['id']}", json={"title": "mine now"}, headers=b_headers)
    assert r.status_code == 403
    missing = api.put("/tasks/does-not-exist", json={"title": "x"}, headers=b_headers)
    assert r.json() == missing.json()

    r = api.delete(f"/tasks/{task['id']}", headers=b_headers)
    assert r.status_code == 403

    # B tries to promote A and is denied
    roles = api.get("/user_roles", headers=b_headers).json()["data"]
    assert [x["user_id"] for x in roles] == [b["user"]["id"]]
    a_assignment = api.get("/user_roles", headers=a_headers).json()["data"][0]
    r = api.put(f"/user_roles/{a_assignment['id']}", json={"role": "admin"}, headers=b_headers)
    assert r.status_code == 403

    # bootstrap an admin, who promotes A
    admin = _signup(api, "root@example.com")
    grant_role(database, admin["user"]["id"], Role.ADMIN)
    admin_headers = _auth(admin["session"]["access_token"])
    r = api.put(f"/user_roles/{a_assignment['id']}", json={"role": "admin"}, headers=admin_headers)
    assert r.status_code == 200
    assert r.json()["data"]["role"] == "admin"

    # A now reads every profile, but still only their own tasks
    me = api.get("/auth/session", headers=a_headers).json()["data"]
    assert me["role"] == "admin"
    profiles = api.get("/profiles", headers=a_headers).json()["data"]
    assert {p["email"] for p in profiles} == {"a@example.com", "b@example.com", "root@example.com"}
    assert api.get("/tasks", headers=admin_headers).json()["data"] == []


def test_validation_errors_use_envelope(api, database) -> None:
    a = _signup(api, "a@example.com")
    headers = _auth(a["session"]["access_token"])

    r = api.post("/tasks", json={"title": "x" * 201}, headers=headers)
    assert r.status_code == 400
    assert r.json()["data"] is None
    assert r.json()["error"]["field"] == "title"
    assert r.json()["error"]["message"] == "Title too long"

    r = api.post("/tasks", json={"title": "   "}, headers=headers)
    assert r.json()["error"]["message"] == "Title is required"
    assert database.count_rows("tasks") == 0

    r = api.post("/auth/signup", json={"email": "b@example.com"})
    assert r.status_code == 400
    assert r.json()["error"]["field"] == "password"


def test_missing_or_bad_token_is_401(api) -> None:
    r = api.get("/tasks")
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "session_missing"

    r = api.get("/tasks", headers=_auth("bogus"))
    assert r.status_code == 401


def test_auth_flow(api) -> None:
    _signup(api, "a@example.com")

    r = api.post("/auth/signup", json={"email": "a@example.com", "password": PASSWORD})
    assert r.status_code == 422
    assert r.json()["error"]["code"] == "user_already_exists"

    r = api.post("/auth/signin", json={"email": "a@example.com", "password": "nope-nope"})
    assert r.status_code == 401

    session = api.post("/auth/signin", json={"email": "a@example.com", "password": PASSWORD}).json()["data"]
    refreshed = api.post("/auth/refresh", json={"refresh_token": session["refresh_token"]}).json()["data"]
    assert refreshed["access_token"] != session["access_token"]

    headers = _auth(refreshed["access_token"])
    assert api.get("/auth/session", headers=headers).json()["data"]["email"] == "a@example.com"

    assert api.post("/auth/signout", headers=headers).status_code == 200
    assert api.get("/auth/session", headers=headers).json()["data"] is None
    assert api.get("/auth/session").json()["data"] is None


def test_profile_update_own_only(api) -> None:
    a = _signup(api, "a@example.com")
    b = _signup(api, "b@example.com")
    a_headers = _auth(a["session"]["access_token"])

    r = api.put(f"/profiles/{a['user']['id']}", json={"full_name": "Alice A."}, headers=a_headers)
    assert r.json()["data"]["full_name"] == "Alice A."

    r = api.put(f"/profiles/{b['user']['id']}", json={"full_name": "Hacked"}, headers=a_headers)
    assert r.status_code == 403


def test_task_crud_single_item_routes(api) -> None:
    a = _signup(api, "a@example.com")
    headers = _auth(a["session"]["access_token"])
    task = api.post("/tasks", json={"title": "t", "due_date": "2026-02-01"}, headers=headers).json()["data"]
    assert task["due_date"] == "2026-02-01T00:00:00.000Z"

    assert api.get(f"/tasks/{task['id']}", headers=headers).json()["data"]["id"] == task["id"]
    r = api.delete(f"/tasks/{task['id']}", headers=headers)
    assert r.json()["data"] == {"id": task["id"]}
    assert api.get(f"/tasks/{task['id']}", headers=headers).status_code == 403
