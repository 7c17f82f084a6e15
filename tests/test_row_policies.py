# tests/test_row_policies.py

from __future__ import annotations

import pytest

from taskdesk.data.client import DataClient
from taskdesk.data.policies import AuthContext, Command, check_clause, using_clause
from taskdesk.errors import AuthorizationError, NOT_FOUND_MESSAGE, ValidationError


def _task(client: DataClient, owner: str, title: str = "t") -> dict:
    return client.insert(
        "tasks",
        {"user_id": owner, "title": title, "status": "pending", "priority": "medium"},
    )


def test_clauses_default_deny_and_service_bypass() -> None:
    user = AuthContext.for_user("u1")
    # no insert policy exists on profiles
    assert using_clause("profiles", Command.INSERT, user) == "0"
    assert check_clause("profiles", Command.INSERT, user) == "0"
    assert using_clause("tasks", Command.SELECT, AuthContext.service_role()) == "1"
    # update check falls back to the using predicate
    assert "auth_uid()" in check_clause("tasks", Command.UPDATE, user)


def test_select_returns_only_own_tasks(make_user, client_for) -> None:
    a = make_user("a@example.com").user
    b = make_user("b@example.com").user
    _task(client_for(a.id), a.id, "mine")
    _task(client_for(b.id), b.id, "theirs")

    rows = client_for(a.id).select("tasks")
    assert [r["title"] for r in rows] == ["mine"]


def test_anonymous_sees_nothing(make_user, client_for, database) -> None:
    a = make_user("a@example.com").user
    _task(client_for(a.id), a.id)

    anon = DataClient(database, AuthContext.anonymous())
    assert anon.select("tasks") == []
    assert anon.select("profiles") == []
    assert anon.select("user_roles") == []


def test_insert_for_another_owner_is_forbidden(make_user, client_for, database) -> None:
    a = make_user("a@example.com").user
    b = make_user("b@example.com").user

    with pytest.raises(AuthorizationError) as ei:
        _task(client_for(a.id), b.id)
    assert ei.value.code == "forbidden"
    assert database.count_rows("tasks") == 0


def test_cross_user_update_and_delete_look_like_not_found(make_user, client_for) -> None:
    a = make_user("a@example.com").user
    b = make_user("b@example.com").user
    task = _task(client_for(a.id), a.id)
    intruder = client_for(b.id)

    with pytest.raises(AuthorizationError) as denied_update:
        intruder.update("tasks", task["id"], {"title": "hijacked"})
    with pytest.raises(AuthorizationError) as missing_update:
        intruder.update("tasks", "no-such-id", {"title": "x"})
    assert denied_update.value.to_dict() == missing_update.value.to_dict()
    assert denied_update.value.message == NOT_FOUND_MESSAGE

    with pytest.raises(AuthorizationError) as denied_delete:
        intruder.delete("tasks", task["id"])
    assert denied_delete.value.code == "not_found"

    # untouched
    assert client_for(a.id).get("tasks", task["id"])["title"] == "t"


def test_owner_cannot_hand_task_to_someone_else(make_user, client_for) -> None:
    a = make_user("a@example.com").user
    b = make_user("b@example.com").user
    owner = client_for(a.id)
    task = _task(owner, a.id)

    with pytest.raises(AuthorizationError) as ei:
        owner.update("tasks", task["id"], {"user_id": b.id})
    assert ei.value.code == "forbidden"
    assert owner.get("tasks", task["id"])["user_id"] == a.id


def test_unknown_column_is_rejected(make_user, client_for) -> None:
    a = make_user("a@example.com").user
    with pytest.raises(ValidationError) as ei:
        client_for(a.id).select("tasks", filters={"secret": 1})
    assert ei.value.field == "secret"


def test_admin_sees_all_profiles_and_roles_but_not_tasks(make_user, client_for) -> None:
    admin = make_user("admin@example.com", admin=True).user
    a = make_user("a@example.com").user
    _task(client_for(a.id), a.id)

    c = client_for(admin.id)
    assert len(c.select("profiles")) == 2
    assert len(c.select("user_roles")) == 2
    assert c.select("tasks") == []

    plain = client_for(a.id)
    assert [p["id"] for p in plain.select("profiles")] == [a.id]
    assert [r["user_id"] for r in plain.select("user_roles")] == [a.id]


def test_non_admin_cannot_promote_self(make_user, client_for, database) -> None:
    a = make_user("a@example.com").user
    c = client_for(a.id)
    (assignment,) = c.select("user_roles")

    with pytest.raises(AuthorizationError):
        c.update("user_roles", assignment["id"], {"role": "admin"})
    assert DataClient(database, AuthContext.service_role()).get("user_roles", assignment["id"])["role"] == "user"


def test_admin_can_demote_self_once(make_user, client_for) -> None:
    admin = make_user("admin@example.com", admin=True).user
    c = client_for(admin.id)
    (own,) = c.select("user_roles", filters={"user_id": admin.id})

    # The check reads the committed role, so the demotion itself is allowed.
    updated = c.update("user_roles", own["id"], {"role": "user"})
    assert updated["role"] == "user"

    with pytest.raises(AuthorizationError):
        c.update("user_roles", own["id"], {"role": "admin"})


def test_role_constraint_violation_is_storage_error(make_user, client_for) -> None:
    from taskdesk.errors import StorageError

    admin = make_user("admin@example.com", admin=True).user
    c = client_for(admin.id)
    (own,) = c.select("user_roles", filters={"user_id": admin.id})
    with pytest.raises(StorageError) as ei:
        c.update("user_roles", own["id"], {"role": "superuser"})
    assert ei.value.code == "constraint_violation"
