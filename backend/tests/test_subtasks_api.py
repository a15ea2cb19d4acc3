"""Tests for /tasks/{id}/subtasks, including AI decomposition."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from tarely.models.task import Subtask
from tarely.services import task_service


def _ai_reply(text: str) -> MagicMock:
    response = MagicMock()
    response.content = [MagicMock(text=text)]
    response.usage.input_tokens = 10
    response.usage.output_tokens = 5
    client = MagicMock()
    client.messages.create.return_value = response
    return client


@pytest.fixture()
def task(db_session, workspace, owner):
    return task_service.create_task(
        db_session, workspace, owner.id, {"title": "Launch landing page", "description": "Marketing site"}
    )


def _url(task):
    return f"/tasks/{task.id}/subtasks"


def test_create_subtasks_append_in_order(client, task, headers):
    first = client.post(_url(task), json={"title": "Design"}, headers=headers)
    second = client.post(_url(task), json={"title": "Build"}, headers=headers)

    assert first.status_code == 201
    assert first.json()["order"] == 0
    assert second.json()["order"] == 1

    listing = client.get(_url(task), headers=headers).json()
    assert [s["title"] for s in listing] == ["Design", "Build"]


def test_create_subtask_requires_title(client, task, headers):
    resp = client.post(_url(task), json={}, headers=headers)
    assert resp.status_code == 400


def test_update_subtask(client, db_session, task, headers):
    sub = client.post(_url(task), json={"title": "Design"}, headers=headers).json()

    resp = client.patch(
        _url(task), json={"subtaskId": sub["id"], "completed": True}, headers=headers
    )

    assert resp.status_code == 200
    assert resp.json()["completed"] is True
    assert resp.json()["title"] == "Design"


def test_update_subtask_of_other_task_is_404(client, db_session, workspace, owner, task, headers):
    other = task_service.create_task(db_session, workspace, owner.id, {"title": "Other"})
    sub = client.post(_url(other), json={"title": "Hidden"}, headers=headers).json()

    resp = client.patch(_url(task), json={"subtaskId": sub["id"], "completed": True}, headers=headers)

    assert resp.status_code == 404


def test_delete_subtask(client, db_session, task, headers):
    sub = client.post(_url(task), json={"title": "Design"}, headers=headers).json()

    resp = client.delete(_url(task), params={"subtaskId": sub["id"]}, headers=headers)

    assert resp.status_code == 200
    assert db_session.get(Subtask, sub["id"]) is None


def test_generate_subtasks_appends_ai_steps(client, task, headers):
    client.post(_url(task), json={"title": "Existing"}, headers=headers)
    fake = _ai_reply(json.dumps({"subtasks": ["Wireframe", "  ", "Copy", "Deploy"]}))

    with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=fake):
        resp = client.post(_url(task), json={"generate": True}, headers=headers)

    assert resp.status_code == 201
    body = resp.json()
    assert body["generated"] is True
    assert [(s["title"], s["order"]) for s in body["subtasks"]] == [
        ("Wireframe", 1), ("Copy", 2), ("Deploy", 3),
    ]
    prompt = fake.messages.create.call_args.kwargs["messages"][0]["content"]
    assert "TAREA: Launch landing page" in prompt


def test_generate_subtasks_caps_at_five(client, task, headers):
    fake = _ai_reply(json.dumps({"subtasks": [f"Paso {i}" for i in range(8)]}))

    with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=fake):
        resp = client.post(_url(task), json={"generate": True}, headers=headers)

    assert len(resp.json()["subtasks"]) == 5


def test_generate_subtasks_non_json_writes_nothing(client, db_session, task, headers):
    fake = _ai_reply("Claro, aquí tienes algunos pasos")

    with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=fake):
        resp = client.post(_url(task), json={"generate": True}, headers=headers)

    assert resp.status_code == 500
    assert resp.json() == {"error": "Error al procesar respuesta de IA"}
    assert db_session.query(Subtask).filter(Subtask.task_id == task.id).count() == 0


@pytest.mark.parametrize("reply", [{"steps": ["a"]}, {"subtasks": ["  ", ""]}])
def test_generate_subtasks_without_titles_is_parse_error(client, db_session, task, headers, reply):
    fake = _ai_reply(json.dumps(reply))

    with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=fake):
        resp = client.post(_url(task), json={"generate": True}, headers=headers)

    assert resp.status_code == 500
    assert resp.json() == {"error": "Error al procesar respuesta de IA"}
    assert db_session.query(Subtask).filter(Subtask.task_id == task.id).count() == 0
