"""Tests for GET /calendar/tasks."""

from __future__ import annotations

from datetime import datetime, timezone

from conftest import add_member, auth_headers, make_profile, make_workspace
from tarely.services import task_service


def _due(day: int) -> datetime:
    return datetime(2026, 3, day, 10, 0, tzinfo=timezone.utc)


def _range(client, headers, start="2026-03-01T00:00:00Z", end="2026-03-31T23:59:59Z"):
    return client.get("/calendar/tasks", params={"start": start, "end": end}, headers=headers)


def test_tasks_in_range_across_workspaces(client, db_session, workspace, owner, headers):
    second = make_workspace(db_session, owner, name="Casa")
    task_service.create_task(db_session, workspace, owner.id, {"title": "Late", "due_date": _due(20)})
    task_service.create_task(db_session, second, owner.id, {"title": "Early", "due_date": _due(2)})
    task_service.create_task(db_session, workspace, owner.id, {"title": "April", "due_date": datetime(2026, 4, 2, tzinfo=timezone.utc)})
    task_service.create_task(db_session, workspace, owner.id, {"title": "Undated"})

    resp = _range(client, headers)

    assert resp.status_code == 200
    body = resp.json()
    assert [t["title"] for t in body] == ["Early", "Late"]
    assert body[0]["workspaceName"] == "Casa"
    assert body[0]["workspaceColor"] == second.color


def test_includes_shared_workspaces_only_when_accepted(client, db_session, owner):
    other = make_profile(db_session, "Other")
    shared = make_workspace(db_session, other, name="Shared")
    pending = make_workspace(db_session, other, name="Pending")
    add_member(db_session, shared, owner)
    add_member(db_session, pending, owner, status="pending")
    task_service.create_task(db_session, shared, other.id, {"title": "Visible", "due_date": _due(5)})
    task_service.create_task(db_session, pending, other.id, {"title": "Hidden", "due_date": _due(6)})

    resp = _range(client, auth_headers(owner))

    assert [t["title"] for t in resp.json()] == ["Visible"]


def test_recurring_task_matches_on_next_due(client, db_session, workspace, owner, headers):
    task = task_service.create_task(
        db_session, workspace, owner.id, {"title": "Weekly", "recurrence": {"frequency": "weekly"}}
    )
    task.next_due_at = _due(10)
    db_session.commit()

    resp = _range(client, headers)

    assert [t["title"] for t in resp.json()] == ["Weekly"]


def test_inverted_range_is_rejected(client, headers):
    resp = _range(client, headers, start="2026-03-31T00:00:00Z", end="2026-03-01T00:00:00Z")
    assert resp.status_code == 400


def test_range_params_are_required(client, headers):
    assert client.get("/calendar/tasks", headers=headers).status_code == 422


def test_no_workspaces_returns_empty(client, db_session):
    loner = make_profile(db_session, "Loner")
    assert _range(client, auth_headers(loner)).json() == []
