"""Tests for note folders and note templates."""

from __future__ import annotations

from conftest import auth_headers, make_profile, make_workspace
from tarely.models.note import Note, NoteFolder, NoteTemplate
from tarely.services import note_library, note_service


def _folder(db_session, workspace, owner, name, parent=None):
    return note_library.create_folder(
        db_session, workspace, owner.id, {"name": name, "parent_folder_id": parent.id if parent else None}
    )


# ---------------------------------------------------------------------------
# Folders
# ---------------------------------------------------------------------------


def test_create_and_list_folders(client, workspace, headers):
    resp = client.post(
        "/notes/folders", json={"workspaceId": workspace.id, "name": "Ideas"}, headers=headers
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["icon"] == "Folder"
    assert body["color"] == "#6366f1"
    assert body["parentFolderId"] is None

    listing = client.get("/notes/folders", params={"workspaceId": workspace.id}, headers=headers)
    assert [f["name"] for f in listing.json()] == ["Ideas"]


def test_folder_requires_name(client, workspace, headers):
    resp = client.post("/notes/folders", json={"workspaceId": workspace.id, "name": "  "}, headers=headers)
    assert resp.status_code == 400


def test_parent_from_other_workspace_is_rejected(client, db_session, workspace, headers):
    other_owner = make_profile(db_session, "Other")
    other = make_workspace(db_session, other_owner)
    foreign = _folder(db_session, other, other_owner, "Theirs")

    resp = client.post(
        "/notes/folders",
        json={"workspaceId": workspace.id, "name": "Mine", "parentFolderId": foreign.id},
        headers=headers,
    )

    assert resp.status_code == 400


def test_folder_cannot_move_into_its_descendant(client, db_session, workspace, owner, headers):
    top = _folder(db_session, workspace, owner, "Top")
    middle = _folder(db_session, workspace, owner, "Middle", parent=top)
    leaf = _folder(db_session, workspace, owner, "Leaf", parent=middle)

    assert client.patch(
        f"/notes/folders/{top.id}", json={"parentFolderId": leaf.id}, headers=headers
    ).status_code == 400
    assert client.patch(
        f"/notes/folders/{top.id}", json={"parentFolderId": top.id}, headers=headers
    ).status_code == 400


def test_folder_can_be_reparented(client, db_session, workspace, owner, headers):
    a = _folder(db_session, workspace, owner, "A")
    b = _folder(db_session, workspace, owner, "B")

    resp = client.patch(f"/notes/folders/{b.id}", json={"parentFolderId": a.id}, headers=headers)

    assert resp.status_code == 200
    assert resp.json()["parentFolderId"] == a.id


def test_deleting_folder_moves_notes_and_children_to_root(client, db_session, workspace, owner, headers):
    folder = _folder(db_session, workspace, owner, "Old")
    child = _folder(db_session, workspace, owner, "Child", parent=folder)
    note = note_service.create_note(db_session, workspace, owner.id, {"title": "Keep me", "folder_id": folder.id})

    resp = client.delete(f"/notes/folders/{folder.id}", headers=headers)

    assert resp.status_code == 200
    db_session.expire_all()
    assert db_session.get(NoteFolder, folder.id) is None
    assert db_session.get(Note, note.id).folder_id is None
    assert db_session.get(NoteFolder, child.id).parent_folder_id is None


def test_outsider_cannot_touch_folder(client, db_session, workspace, owner):
    folder = _folder(db_session, workspace, owner, "Private")
    outsider = make_profile(db_session, "Outsider")

    resp = client.delete(f"/notes/folders/{folder.id}", headers=auth_headers(outsider))

    assert resp.status_code == 403


def test_move_note_into_foreign_folder_is_rejected(client, db_session, workspace, owner, headers):
    other_owner = make_profile(db_session, "Other")
    foreign = _folder(db_session, make_workspace(db_session, other_owner), other_owner, "Theirs")
    note = note_service.create_note(db_session, workspace, owner.id, {"title": "Mine"})

    resp = client.post(f"/notes/{note.id}/move", json={"folderId": foreign.id}, headers=headers)

    assert resp.status_code == 400


def test_move_note_to_root(client, db_session, workspace, owner, headers):
    folder = _folder(db_session, workspace, owner, "Box")
    note = note_service.create_note(db_session, workspace, owner.id, {"title": "Boxed", "folder_id": folder.id})

    resp = client.post(f"/notes/{note.id}/move", json={"folderId": None}, headers=headers)

    assert resp.status_code == 200
    assert resp.json()["folderId"] is None


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


DOC = {"type": "doc", "content": [{"type": "paragraph", "content": [{"type": "text", "text": "Agenda"}]}]}


def _global_template(db_session) -> NoteTemplate:
    template = NoteTemplate(name="Meeting", description="", category="work", icon="🗓", content_json=DOC, is_global=True)
    db_session.add(template)
    db_session.commit()
    return template


def test_list_templates_shows_global_and_own_only(client, db_session, owner, headers):
    _global_template(db_session)
    note_library.create_template(db_session, owner.id, {"name": "Mine"})
    note_library.create_template(db_session, make_profile(db_session, "Other").id, {"name": "Theirs"})

    resp = client.get("/notes/templates", headers=headers)

    assert [(t["name"], t["isGlobal"]) for t in resp.json()] == [("Meeting", True), ("Mine", False)]


def test_create_template(client, headers, owner):
    resp = client.post(
        "/notes/templates", json={"name": "Weekly", "contentJson": DOC}, headers=headers
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["userId"] == owner.id
    assert body["category"] == "general"
    assert body["icon"] == "📋"


def test_global_template_cannot_be_deleted(client, db_session, headers):
    template = _global_template(db_session)

    resp = client.delete("/notes/templates", params={"id": template.id}, headers=headers)

    assert resp.status_code == 403
    assert db_session.get(NoteTemplate, template.id) is not None


def test_other_users_template_is_not_found(client, db_session, headers):
    theirs = note_library.create_template(db_session, make_profile(db_session, "Other").id, {"name": "Theirs"})

    resp = client.delete("/notes/templates", params={"id": theirs.id}, headers=headers)

    assert resp.status_code == 404


def test_apply_template_creates_note(client, db_session, workspace, headers):
    template = _global_template(db_session)

    resp = client.post(
        f"/notes/templates/{template.id}/apply", json={"workspaceId": workspace.id}, headers=headers
    )

    assert resp.status_code == 201
    body = resp.json()
    assert body["title"] == "Meeting"
    assert body["icon"] == "🗓"
    assert body["contentText"] == "Agenda"


def test_create_note_from_template(client, db_session, workspace, headers):
    template = _global_template(db_session)

    resp = client.post(
        "/notes", json={"workspaceId": workspace.id, "title": "Standup", "templateId": template.id}, headers=headers
    )

    assert resp.status_code == 201
    assert resp.json()["contentText"] == "Agenda"


def test_save_note_as_template_is_independent_copy(client, db_session, workspace, owner, headers):
    note = note_service.create_note(db_session, workspace, owner.id, {"title": "Retro", "content_json": DOC})

    resp = client.post(f"/notes/{note.id}/save-as-template", json={"category": "team"}, headers=headers)

    assert resp.status_code == 201
    body = resp.json()
    assert body["name"] == "Retro"
    assert body["category"] == "team"
    assert body["contentJson"] == DOC

    note_service.update_note(db_session, note, {"content_json": None})
    db_session.expire_all()
    assert db_session.get(NoteTemplate, body["id"]).content_json == DOC
