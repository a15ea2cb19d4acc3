"""Unit tests for the LLM boundary: parsing, prompts and note actions."""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import anthropic
import httpx
import pytest

from tarely.errors import UpstreamError, ValidationError
from tarely.services import ai_bridge

WORKSPACE = SimpleNamespace(id="ws-1", name="Tarely", description=None, instructions="FastAPI + React")


class TestParseJson:
    def test_plain(self):
        assert ai_bridge.parse_json('{"a": 1}') == {"a": 1}

    def test_strips_fences(self):
        assert ai_bridge.parse_json('```json\n{"a": 1}\n```') == {"a": 1}

    def test_invalid_raises_value_error(self):
        with pytest.raises(ValueError, match="Failed to parse AI response"):
            ai_bridge.parse_json("sure, here you go")


class TestPrompts:
    def test_tasks_prompt_carries_context(self):
        tag = SimpleNamespace(id="tag-1", name="backend")
        now = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)

        prompt = ai_bridge.build_tasks_prompt(WORKSPACE, "hacer cosas", [tag], now=now)

        assert prompt.startswith("FECHA ACTUAL: 2026-01-05 (Lunes)")
        assert "- Nombre: Tarely" in prompt
        assert "- Descripción: Sin descripción" in prompt
        assert "- Instrucciones del proyecto: FastAPI + React" in prompt
        assert "- tag-1: backend" in prompt
        assert prompt.endswith("<user_text>hacer cosas</user_text>")

    def test_tasks_prompt_uses_madrid_date(self):
        late = datetime(2026, 1, 5, 23, 30, tzinfo=timezone.utc)
        prompt = ai_bridge.build_tasks_prompt(WORKSPACE, "x", [], now=late)
        assert "FECHA ACTUAL: 2026-01-06 (Martes)" in prompt
        assert "- (ninguna)" in prompt

    def test_note_prompt_truncates_content(self):
        prompt = ai_bridge.build_note_action_prompt("ask", "x" * 20000, query="¿Qué?")
        assert prompt.count("x") == 12000
        assert "PREGUNTA: ¿Qué?" in prompt

    def test_note_prompt_with_section(self):
        prompt = ai_bridge.build_note_action_prompt("rewrite", "body", section="Intro")
        assert "SECCIÓN A MODIFICAR: Intro" in prompt


class TestProviderCall:
    def test_provider_error_is_upstream(self):
        client = MagicMock()
        client.messages.create.side_effect = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )

        with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=client):
            with pytest.raises(UpstreamError):
                ai_bridge.generate_ide_prompt(SimpleNamespace(title="t", description=""), WORKSPACE)

    def test_empty_content_is_upstream(self):
        client = MagicMock()
        client.messages.create.return_value.content = []

        with patch("tarely.services.ai_bridge.anthropic.Anthropic", return_value=client):
            with pytest.raises(UpstreamError):
                ai_bridge.generate_ide_prompt(SimpleNamespace(title="t", description=""), WORKSPACE)


class TestRunNoteAction:
    def test_unknown_action(self):
        with pytest.raises(ValidationError):
            ai_bridge.run_note_action("dance", "body")

    def test_ask_returns_answer(self):
        with patch("tarely.services.ai_bridge._complete", return_value="  **Sí**  ") as complete:
            result = ai_bridge.run_note_action("ask", "body", query="¿Está?")

        assert result == {"type": "answer", "result": "**Sí**", "action": "ask"}
        assert complete.call_args.kwargs["temperature"] == 0.3

    def test_document_reply_is_modification(self):
        reply = 'Listo: {"type": "doc", "content": [{"type": "paragraph"}]}'
        with patch("tarely.services.ai_bridge._complete", return_value=reply):
            result = ai_bridge.run_note_action("format", "body")

        assert result["type"] == "modification"
        assert result["preview"] is True
        assert result["result"] == {"type": "doc", "content": [{"type": "paragraph"}]}

    def test_plain_text_reply_is_wrapped(self):
        with patch("tarely.services.ai_bridge._complete", return_value="Just words"):
            result = ai_bridge.run_note_action("improve", "body")

        assert result["type"] == "text"
        assert result["result"]["content"][0]["content"][0]["text"] == "Just words"

    def test_non_document_json_is_wrapped(self):
        with patch("tarely.services.ai_bridge._complete", return_value='{"foo": 1}'):
            result = ai_bridge.run_note_action("expand", "body")

        assert result["type"] == "text"
