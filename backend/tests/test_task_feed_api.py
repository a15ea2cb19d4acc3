"""Tests for task tags, assignees, comments, attachments and activity."""

from __future__ import annotations

import pytest

from conftest import add_member, auth_headers, make_profile, make_workspace
from tarely.models.task import TaskAttachment
from tarely.services import storage as storage_module
from tarely.services import tag_service, task_service
from tarely.services.storage import TASK_ATTACHMENTS


@pytest.fixture()
def task(db_session, workspace, owner):
    return task_service.create_task(db_session, workspace, owner.id, {"title": "Review PR"})


# ---------------------------------------------------------------------------
# Tags
# ---------------------------------------------------------------------------


def test_assign_and_remove_tag(client, db_session, workspace, task, headers):
    tag = tag_service.create_tag(db_session, workspace, "backend")
    url = f"/tasks/{task.id}/tags"

    assert client.post(url, json={"tagId": tag.id}, headers=headers).status_code == 201
    assert [t["name"] for t in client.get(url, headers=headers).json()] == ["backend"]

    assert client.delete(url, params={"tagId": tag.id}, headers=headers).status_code == 200
    assert client.get(url, headers=headers).json() == []


def test_assign_tag_twice_conflicts(client, db_session, workspace, task, headers):
    tag = tag_service.create_tag(db_session, workspace, "backend")
    url = f"/tasks/{task.id}/tags"

    client.post(url, json={"tagId": tag.id}, headers=headers)
    resp = client.post(url, json={"tagId": tag.id}, headers=headers)

    assert resp.status_code == 409


def test_tag_from_other_workspace_is_rejected(client, db_session, task, headers):
    other = make_workspace(db_session, make_profile(db_session, "Other"))
    foreign = tag_service.create_tag(db_session, other, "foreign")

    resp = client.post(f"/tasks/{task.id}/tags", json={"tagId": foreign.id}, headers=headers)

    assert resp.status_code == 404


def test_removing_unassigned_tag_is_404(client, db_session, workspace, task, headers):
    tag = tag_service.create_tag(db_session, workspace, "backend")
    resp = client.delete(f"/tasks/{task.id}/tags", params={"tagId": tag.id}, headers=headers)
    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Assignees
# ---------------------------------------------------------------------------


def test_assign_accepted_member(client, db_session, workspace, task, headers):
    member = make_profile(db_session, "Member")
    add_member(db_session, workspace, member)
    url = f"/tasks/{task.id}/assignees"

    resp = client.post(url, json={"userId": member.id}, headers=headers)

    assert resp.status_code == 201
    listing = client.get(url, headers=headers).json()
    assert [(a["userId"], a["name"]) for a in listing] == [(member.id, "Member")]


def test_cannot_assign_pending_member(client, db_session, workspace, task, headers):
    pending = make_profile(db_session, "Pending")
    add_member(db_session, workspace, pending, status="pending")

    resp = client.post(f"/tasks/{task.id}/assignees", json={"userId": pending.id}, headers=headers)

    assert resp.status_code == 400


def test_double_assignment_is_rejected(client, db_session, workspace, owner, task, headers):
    url = f"/tasks/{task.id}/assignees"
    client.post(url, json={"userId": owner.id}, headers=headers)

    resp = client.post(url, json={"userId": owner.id}, headers=headers)

    assert resp.status_code == 400


def test_unassign(client, db_session, owner, task, headers):
    url = f"/tasks/{task.id}/assignees"
    client.post(url, json={"userId": owner.id}, headers=headers)

    assert client.delete(url, params={"userId": owner.id}, headers=headers).status_code == 200
    assert client.delete(url, params={"userId": owner.id}, headers=headers).status_code == 404


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------


def test_comment_lifecycle(client, task, headers):
    url = f"/tasks/{task.id}/comments"

    created = client.post(url, json={"content": "  LGTM  "}, headers=headers)
    assert created.status_code == 201
    comment = created.json()
    assert comment["content"] == "LGTM"
    assert comment["authorName"] == "Owner"

    edited = client.patch(url, json={"commentId": comment["id"], "content": "LGTM!"}, headers=headers)
    assert edited.json()["content"] == "LGTM!"

    assert client.delete(url, params={"commentId": comment["id"]}, headers=headers).status_code == 200
    assert client.get(url, headers=headers).json() == []


def test_empty_comment_rejected(client, task, headers):
    resp = client.post(f"/tasks/{task.id}/comments", json={"content": "   "}, headers=headers)
    assert resp.status_code == 400


def test_cannot_edit_someone_elses_comment(client, db_session, workspace, task, headers):
    member = make_profile(db_session, "Member")
    add_member(db_session, workspace, member)
    url = f"/tasks/{task.id}/comments"
    comment = client.post(url, json={"content": "mine"}, headers=headers).json()

    resp = client.patch(
        url, json={"commentId": comment["id"], "content": "hacked"}, headers=auth_headers(member)
    )

    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Attachments
# ---------------------------------------------------------------------------


def test_upload_list_and_delete_attachment(client, db_session, owner, task, headers):
    url = f"/tasks/{task.id}/attachments"

    resp = client.post(
        url, files={"file": ("brief v1.pdf", b"%PDF-1.4 data", "application/pdf")}, headers=headers
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["fileName"] == "brief v1.pdf"
    assert body["fileType"] == "document"
    assert body["fileSize"] == len(b"%PDF-1.4 data")
    assert body["storagePath"].startswith(f"{owner.id}/{task.id}/")
    assert body["storagePath"].endswith("_brief_v1.pdf")
    assert body["url"].startswith(f"/storage/{TASK_ATTACHMENTS}/")
    assert storage_module.storage.exists(TASK_ATTACHMENTS, body["storagePath"])

    listing = client.get(url, headers=headers).json()
    assert [a["id"] for a in listing] == [body["id"]]

    resp = client.delete(url, params={"attachmentId": body["id"]}, headers=headers)
    assert resp.status_code == 200
    assert db_session.get(TaskAttachment, body["id"]) is None
    assert not storage_module.storage.exists(TASK_ATTACHMENTS, body["storagePath"])


def test_oversized_attachment_rejected(client, task, headers, monkeypatch):
    monkeypatch.setattr("tarely.services.task_feed_service.MAX_ATTACHMENT_BYTES", 4)

    resp = client.post(
        f"/tasks/{task.id}/attachments",
        files={"file": ("big.bin", b"12345", "application/octet-stream")},
        headers=headers,
    )

    assert resp.status_code == 400


def test_only_uploader_can_delete_attachment(client, db_session, workspace, task, headers):
    member = make_profile(db_session, "Member")
    add_member(db_session, workspace, member)
    url = f"/tasks/{task.id}/attachments"
    body = client.post(url, files={"file": ("a.png", b"png", "image/png")}, headers=headers).json()

    resp = client.delete(url, params={"attachmentId": body["id"]}, headers=auth_headers(member))

    assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Activity
# ---------------------------------------------------------------------------


def test_activity_feed_records_actions(client, owner, task, headers):
    client.post(f"/tasks/{task.id}/comments", json={"content": "note"}, headers=headers)
    client.patch(f"/tasks/{task.id}", json={"completed": True}, headers=headers)

    resp = client.get(f"/tasks/{task.id}/activity", headers=headers)

    assert resp.status_code == 200
    rows = resp.json()
    assert {r["action"] for r in rows} == {"created", "comment_added", "completed"}
    comment_row = next(r for r in rows if r["action"] == "comment_added")
    assert comment_row["metadata"]["preview"] == "note"
    assert comment_row["userName"] == "Owner"
