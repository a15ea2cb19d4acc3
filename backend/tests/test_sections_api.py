"""Tests for the /sections endpoints."""

from __future__ import annotations

from conftest import add_member, auth_headers, make_profile, make_workspace
from tarely.models.section import COMPLETED_SECTION, PENDING_SECTION, Section
from tarely.models.task import Task
from tarely.services import section_service, task_service


def _system(db_session, workspace, name):
    return task_service.system_section(db_session, workspace.id, name)


def test_list_sections_in_order(client, workspace, headers):
    resp = client.get("/sections", params={"workspaceId": workspace.id}, headers=headers)

    assert resp.status_code == 200
    assert [s["name"] for s in resp.json()] == [PENDING_SECTION, COMPLETED_SECTION]


def test_create_section_appends(client, workspace, headers):
    resp = client.post(
        "/sections",
        json={"workspaceId": workspace.id, "name": "Backlog", "color": "#abcdef"},
        headers=headers,
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["order"] == 2
    assert body["isSystem"] is False
    assert body["icon"] == "folder"


def test_member_cannot_create_section(client, db_session, workspace):
    member = make_profile(db_session, "Member")
    add_member(db_session, workspace, member)

    resp = client.post(
        "/sections",
        json={"workspaceId": workspace.id, "name": "Mine"},
        headers=auth_headers(member),
    )

    assert resp.status_code == 403


def test_member_can_read_sections(client, db_session, workspace):
    member = make_profile(db_session, "Member")
    add_member(db_session, workspace, member)

    resp = client.get("/sections", params={"workspaceId": workspace.id}, headers=auth_headers(member))

    assert resp.status_code == 200


def test_system_section_cannot_be_deleted(client, db_session, workspace, headers):
    pending = _system(db_session, workspace, PENDING_SECTION)

    resp = client.delete(f"/sections/{pending.id}", headers=headers)

    assert resp.status_code == 400
    assert db_session.get(Section, pending.id) is not None


def test_deleting_section_moves_tasks_to_first_system_section(
    client, db_session, workspace, owner, headers
):
    backlog = section_service.create_section(db_session, workspace, "Backlog")
    task = task_service.create_task(
        db_session, workspace, owner.id, {"title": "Stuck", "section_id": backlog.id}
    )

    resp = client.delete(f"/sections/{backlog.id}", headers=headers)

    assert resp.status_code == 200
    db_session.expire_all()
    assert db_session.get(Task, task.id).section_id == _system(db_session, workspace, PENDING_SECTION).id


def test_reorder_rejects_duplicate_orders(client, db_session, workspace, headers):
    sections = section_service.list_sections(db_session, workspace.id)

    resp = client.post(
        "/sections/reorder",
        json={
            "workspaceId": workspace.id,
            "sections": [{"id": s.id, "order": 1} for s in sections],
        },
        headers=headers,
    )

    assert resp.status_code == 400


def test_reorder_rejects_foreign_section(client, db_session, workspace, owner, headers):
    other = make_profile(db_session, "Other")
    foreign = section_service.list_sections(db_session, make_workspace(db_session, other).id)[0]

    resp = client.post(
        "/sections/reorder",
        json={"workspaceId": workspace.id, "sections": [{"id": foreign.id, "order": 7}]},
        headers=headers,
    )

    assert resp.status_code == 400


def test_reorder_swaps_sections(client, db_session, workspace, headers):
    pending, done = section_service.list_sections(db_session, workspace.id)

    resp = client.post(
        "/sections/reorder",
        json={
            "workspaceId": workspace.id,
            "sections": [{"id": pending.id, "order": 1}, {"id": done.id, "order": 0}],
        },
        headers=headers,
    )

    assert resp.status_code == 200
    assert [s["id"] for s in resp.json()] == [done.id, pending.id]


def test_rename_section(client, db_session, workspace, headers):
    backlog = section_service.create_section(db_session, workspace, "Backlog")

    resp = client.patch(f"/sections/{backlog.id}", json={"name": "Icebox"}, headers=headers)

    assert resp.status_code == 200
    assert resp.json()["name"] == "Icebox"
