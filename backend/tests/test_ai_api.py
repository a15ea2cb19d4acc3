"""Tests for /ai/generate-tasks and /ai/generate-prompt with the provider mocked."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

from tarely.models.task import Task, TaskTag
from tarely.services import tag_service, task_service

TEXT = "Mañana tengo que llamar al banco y preparar la demo del viernes"


def _reply(*texts: str) -> MagicMock:
    responses = []
    for text in texts:
        response = MagicMock()
        response.content = [MagicMock(text=text)]
        responses.append(response)
    client = MagicMock()
    client.messages.create.side_effect = responses
    return client


def _post(client, headers, workspace, text=TEXT):
    return client.post(
        "/ai/generate-tasks", json={"workspaceId": workspace.id, "text": text}, headers=headers
    )


def test_generate_tasks_persists_drafts(client, db_session, workspace, headers):
    payload = {
        "tasks": [
            {"title": "Llamar al banco", "importance": 6, "dueDate": "2026-01-25T23:59:00Z"},
            {"title": "Preparar demo", "description": "Slides", "importance": 8},
        ]
    }
    fake = _reply(json.dumps(payload))

    with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=fake):
        resp = _post(client, headers, workspace)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["count"] == 2
    assert [t["title"] for t in body["tasks"]] == ["Llamar al banco", "Preparar demo"]
    assert all(t["source"] == "ai" for t in body["tasks"])
    assert body["tasks"][0]["dueDate"].startswith("2026-01-25T23:59")
    assert db_session.query(Task).filter(Task.workspace_id == workspace.id).count() == 2


def test_generate_tasks_strips_markdown_fences(client, workspace, headers):
    fenced = "```json\n" + json.dumps({"tasks": [{"title": "Uno", "importance": 3}]}) + "\n```"
    fake = _reply(fenced)

    with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=fake):
        resp = _post(client, headers, workspace)

    assert resp.json()["count"] == 1


def test_generate_tasks_retries_once_on_bad_output(client, workspace, headers):
    fake = _reply("not json", json.dumps({"tasks": [{"title": "Dos", "importance": 4}]}))

    with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=fake):
        resp = _post(client, headers, workspace)

    assert resp.status_code == 200
    assert fake.messages.create.call_count == 2


def test_generate_tasks_gives_up_after_two_failures(client, db_session, workspace, headers):
    fake = _reply("nope", json.dumps({"tasks": [{"title": "x", "importance": 42}]}))

    with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=fake):
        resp = _post(client, headers, workspace)

    assert resp.status_code == 500
    assert resp.json() == {"error": "Error al procesar respuesta de IA"}
    assert db_session.query(Task).filter(Task.workspace_id == workspace.id).count() == 0


def test_generate_tasks_attaches_only_known_tags(client, db_session, workspace, headers):
    tag = tag_service.create_tag(db_session, workspace, "finanzas")
    payload = {"tasks": [{"title": "Banco", "importance": 5, "tagIds": [tag.id, tag.id, "invented"]}]}
    fake = _reply(json.dumps(payload))

    with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=fake):
        resp = _post(client, headers, workspace)

    task_id = resp.json()["tasks"][0]["id"]
    rows = db_session.query(TaskTag).filter(TaskTag.task_id == task_id).all()
    assert [r.tag_id for r in rows] == [tag.id]
    prompt = fake.messages.create.call_args.kwargs["messages"][0]["content"]
    assert f"- {tag.id}: finanzas" in prompt


def test_generate_tasks_drops_unparseable_due_date(client, workspace, headers):
    payload = {"tasks": [{"title": "Algo", "importance": 5, "dueDate": "next friday"}]}
    fake = _reply(json.dumps(payload))

    with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=fake):
        resp = _post(client, headers, workspace)

    assert resp.json()["tasks"][0]["dueDate"] is None


def test_generate_tasks_with_recurrence(client, workspace, headers):
    payload = {
        "tasks": [
            {"title": "Revisar correo", "importance": 3,
             "recurrence": {"frequency": "weekly", "daysOfWeek": [1]}},
        ]
    }
    fake = _reply(json.dumps(payload))

    with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=fake):
        resp = _post(client, headers, workspace)

    task = resp.json()["tasks"][0]
    assert task["recurrence"]["frequency"] == "weekly"
    assert task["nextDueAt"] is not None


def test_generate_tasks_rejects_short_text(client, workspace, headers):
    assert _post(client, headers, workspace, text="corto").status_code == 422


def test_generate_prompt(client, db_session, workspace, owner, headers):
    task = task_service.create_task(db_session, workspace, owner.id, {"title": "Añadir login"})
    fake = _reply("  Implementa el login con OAuth.  ")

    with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=fake):
        resp = client.post("/ai/generate-prompt", json={"taskId": task.id}, headers=headers)

    assert resp.status_code == 200
    assert resp.json() == {"prompt": "Implementa el login con OAuth."}
