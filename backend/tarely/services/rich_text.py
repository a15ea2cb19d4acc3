"""Helpers for the rich-text document format stored in ``notes.content_json``.

Documents are ProseMirror/TipTap-shaped trees: ``{"type": "doc", "content": [...]}``
where leaf nodes are ``{"type": "text", "text": "..."}``.
"""
from __future__ import annotations

from typing import Any

_BLOCK_TYPES = {
    "paragraph", "heading", "blockquote", "codeBlock", "listItem", "taskItem",
    "bulletList", "orderedList", "taskList", "horizontalRule",
}


def extract_text(node: Any) -> str:
    """Flatten a document into plain text, one line per block."""
    lines: list[str] = []
    _collect(node, lines, [])
    return "\n".join(line for line in lines if line.strip()).strip()


def _collect(node: Any, lines: list[str], buffer: list[str]) -> None:
    if not isinstance(node, dict):
        return
    node_type = node.get("type")
    if node_type == "text":
        buffer.append(node.get("text", ""))
        return
    if node_type == "hardBreak":
        buffer.append("\n")
        return

    own_buffer: list[str] = [] if node_type in _BLOCK_TYPES else buffer
    for child in node.get("content") or []:
        _collect(child, lines, own_buffer)
    if node_type in _BLOCK_TYPES and own_buffer:
        lines.append("".join(own_buffer))


def word_count(text: str) -> int:
    return len(text.split())


def paragraph_doc(text: str) -> dict:
    """Wrap plain text into a single-paragraph document."""
    content = [{"type": "text", "text": text}] if text else []
    return {"type": "doc", "content": [{"type": "paragraph", "content": content}]}


def is_document(value: Any) -> bool:
    return (
        isinstance(value, dict)
        and value.get("type") == "doc"
        and isinstance(value.get("content"), list)
    )
