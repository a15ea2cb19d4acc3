"""Stateless boundary to the LLM provider.

Owns prompt construction and output validation. Nothing here touches the
database: callers decide what to persist once a response has validated.
"""
from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from typing import Any
from zoneinfo import ZoneInfo

import anthropic
from pydantic import Field, ValidationError as PydanticValidationError

from tarely.config import settings
from tarely.errors import UpstreamError, ValidationError
from tarely.schemas.common import CamelModel
from tarely.schemas.tasks import RecurrenceSchema
from tarely.services import rich_text

logger = logging.getLogger(__name__)

_MAX_ATTEMPTS = 2
_TIMEZONE = ZoneInfo("Europe/Madrid")
_NOTE_CONTENT_LIMIT = 12000
_WEEKDAYS = ["Lunes", "Martes", "Miércoles", "Jueves", "Viernes", "Sábado", "Domingo"]

PARSE_ERROR = "Error al procesar respuesta de IA"


# ── Output schemas ────────────────────────────────────────────────────────────


class AITaskDraft(CamelModel):
    title: str = Field(..., min_length=1)
    description: str | None = None
    importance: int = Field(..., ge=1, le=10)
    due_date: str | None = None  # ISO-8601; parsed by the caller
    tag_ids: list[str] = []
    recurrence: RecurrenceSchema | None = None


class AITaskResponse(CamelModel):
    tasks: list[AITaskDraft] = Field(..., min_length=1, max_length=20)


class AISubtaskResponse(CamelModel):
    subtasks: list[str] = Field(..., min_length=1)


# ── Provider call ─────────────────────────────────────────────────────────────


def _complete(system: str, prompt: str, *, max_tokens: int | None = None, temperature: float = 0) -> str:
    client = anthropic.Anthropic(api_key=settings.ANTHROPIC_API_KEY)
    try:
        response = client.messages.create(
            model=settings.AI_MODEL,
            max_tokens=max_tokens or settings.AI_MAX_TOKENS,
            temperature=temperature,
            system=system,
            messages=[{"role": "user", "content": prompt}],
        )
    except anthropic.APIError as exc:
        logger.error("ai_bridge: provider error: %s", exc)
        raise UpstreamError("Error al comunicarse con la IA") from exc

    if not response.content:
        raise UpstreamError("La IA no devolvió contenido")
    text = response.content[0].text
    logger.debug(
        "ai_bridge: model=%s usage=%s/%s",
        settings.AI_MODEL, response.usage.input_tokens, response.usage.output_tokens,
    )
    return text


def parse_json(raw_text: str) -> Any:
    """Strip accidental markdown fences and parse JSON. Raises ValueError."""
    cleaned = re.sub(r"```(?:json)?\s*|\s*```", "", raw_text).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Failed to parse AI response as JSON: {exc}\nRaw: {raw_text!r}") from exc


# ── Task generation ───────────────────────────────────────────────────────────

_TASKS_SYSTEM = """\
Eres un asistente que extrae y estructura tareas a partir de lo que describe el usuario.

REGLAS:
1. NUNCA desgloses una tarea en subtareas. 1 problema = 1 tarea.
2. Solo crea varias tareas si el usuario menciona EXPLÍCITAMENTE varias cosas distintas.
3. NO añadas tareas extra ("documentar", "hacer pruebas") salvo que el usuario lo pida.
4. Puedes reformular el título para que sea claro, manteniendo la esencia.
5. La descripción es opcional: solo si aporta contexto útil.

FECHAS:
- Convierte plazos ("mañana", "el viernes", "antes del 15") a ISO 8601 (YYYY-MM-DDTHH:mm:ssZ).
- Sin hora explícita usa las 23:59:00 del día indicado.
- Si no hay fecha, omite dueDate.

IMPORTANCIA (usa todo el rango 1-10):
- 1-2 opcional, 3-4 normal, 5-6 importante, 7-8 urgente o bloqueante, 9-10 solo emergencias.

ETIQUETAS:
- Si alguna etiqueta del workspace encaja claramente, añade sus ids en tagIds. Usa solo ids de la lista.

RECURRENCIA:
- Solo si el usuario pide algo repetitivo ("cada lunes", "todos los meses").
- Formato: {"frequency": "daily|weekly|monthly|yearly", "interval": 1, "daysOfWeek": [1], \
"dayOfMonth": 15, "monthOfYear": 3}. daysOfWeek usa 0=domingo..6=sábado.

FORMATO DE RESPUESTA (JSON estricto, sin markdown):
{"tasks": [{"title": "...", "description": "...", "importance": 4, \
"dueDate": "2026-01-25T23:59:00Z", "tagIds": [], "recurrence": null}]}"""


def _today_line(now: datetime | None = None) -> str:
    now = (now or datetime.now(_TIMEZONE)).astimezone(_TIMEZONE)
    return f"FECHA ACTUAL: {now.date().isoformat()} ({_WEEKDAYS[now.weekday()]})"


def build_tasks_prompt(workspace, text: str, tags: list, now: datetime | None = None) -> str:
    lines = [
        _today_line(now),
        "ZONA HORARIA: Europe/Madrid (España)",
        "",
        "CONTEXTO DEL PROYECTO:",
        f"- Nombre: {workspace.name}",
        f"- Descripción: {workspace.description or 'Sin descripción'}",
        f"- Instrucciones del proyecto: {workspace.instructions or 'Sin instrucciones adicionales'}",
        "",
        "ETIQUETAS DISPONIBLES:",
    ]
    if tags:
        lines.extend(f"- {tag.id}: {tag.name}" for tag in tags)
    else:
        lines.append("- (ninguna)")
    lines.extend(["", "TEXTO DEL USUARIO:", f"<user_text>{text}</user_text>"])
    return "\n".join(lines)


def generate_tasks(workspace, text: str, tags: list) -> list[AITaskDraft]:
    """Turn free text into validated task drafts. Retries once on malformed output."""
    prompt = build_tasks_prompt(workspace, text, tags)
    last_error: Exception | None = None

    for attempt in range(1, _MAX_ATTEMPTS + 1):
        raw_text = _complete(_TASKS_SYSTEM, prompt)
        try:
            return AITaskResponse.model_validate(parse_json(raw_text)).tasks
        except (ValueError, PydanticValidationError) as exc:
            last_error = exc
            logger.warning(
                "ai_bridge: task parse failed on attempt %d for workspace %s: %s",
                attempt, workspace.id, exc,
            )

    logger.error("ai_bridge: giving up on task generation: %s", last_error)
    raise UpstreamError(PARSE_ERROR) from last_error


# ── Subtask generation ────────────────────────────────────────────────────────

_SUBTASKS_SYSTEM = """\
Eres un asistente que descompone tareas en pasos concretos.
Devuelve entre 2 y 5 subtareas cortas, en infinitivo o imperativo, ordenadas.
FORMATO (JSON estricto, sin markdown): {"subtasks": ["Paso 1", "Paso 2"]}"""


def build_subtasks_prompt(workspace, task) -> str:
    lines = [
        "CONTEXTO DEL PROYECTO:",
        f"- Nombre: {workspace.name}",
        f"- Descripción: {workspace.description or 'Sin descripción'}",
        f"- Instrucciones: {workspace.instructions or 'Sin instrucciones'}",
        "",
        f"TAREA: {task.title}",
    ]
    if task.description:
        lines.append(f"DETALLE: {task.description}")
    return "\n".join(lines)


def generate_subtasks(workspace, task) -> list[str]:
    raw_text = _complete(_SUBTASKS_SYSTEM, build_subtasks_prompt(workspace, task), max_tokens=512)
    try:
        data = parse_json(raw_text)
    except ValueError as exc:
        logger.warning("ai_bridge: subtask output for task %s is not JSON: %s", task.id, exc)
        raise UpstreamError(PARSE_ERROR) from exc
    try:
        titles = AISubtaskResponse.model_validate(data).subtasks
    except PydanticValidationError as exc:
        logger.warning("ai_bridge: subtask output for task %s failed validation: %s", task.id, exc)
        raise UpstreamError(PARSE_ERROR) from exc
    titles = [t.strip() for t in titles if t and t.strip()]
    if not titles:
        raise UpstreamError(PARSE_ERROR)
    return titles


# ── IDE prompt ────────────────────────────────────────────────────────────────


def generate_ide_prompt(task, workspace) -> str:
    lines = ["Genera un prompt CORTO y DIRECTO para un asistente de código (Copilot, Cursor, etc).", ""]
    if workspace.instructions:
        lines.extend(["CONTEXTO DEL PROYECTO:", workspace.instructions, ""])
    lines.append(f"TAREA: {task.title}")
    if task.description:
        lines.append(f"DETALLE: {task.description}")
    lines.extend([
        "",
        "REGLAS:",
        "- Máximo 3-5 líneas",
        "- Ve directo al grano: qué hacer y dónde",
        "- Si hay información del proyecto, menciona el stack o la convención relevante en 1 línea",
        "- Devuelve SOLO el prompt, sin explicaciones",
    ])
    text = _complete("Eres un experto en redactar prompts para asistentes de código.", "\n".join(lines), max_tokens=400)
    return text.strip()


# ── Note actions ──────────────────────────────────────────────────────────────

_DOC_FORMAT = (
    "Devuelve SOLO un documento JSON TipTap válido: "
    '{"type": "doc", "content": [...]} con nodos heading, paragraph, bulletList, '
    "orderedList, taskList/taskItem, codeBlock y marcas bold/italic. Sin markdown ni texto extra."
)

NOTE_ACTION_PROMPTS: dict[str, str] = {
    "summarize": "Eres un asistente experto en resumir contenido. Resume la nota de forma concisa "
                 "pero completa, con un encabezado 'Resumen'. " + _DOC_FORMAT,
    "improve": "Eres un editor profesional. Mejora la redacción de la nota: más clara, profesional "
               "y bien estructurada, con títulos, listas y negritas donde ayuden. " + _DOC_FORMAT,
    "expand": "Eres un escritor experto. Expande el contenido con más detalle, ejemplos y "
              "explicaciones, añadiendo títulos y subtítulos. " + _DOC_FORMAT,
    "checklist": "Convierte el contenido en una checklist organizada y accionable usando taskList "
                 "y taskItem con checked=false. " + _DOC_FORMAT,
    "extract_tasks": "Eres un asistente experto en identificar tareas. Extrae todas las tareas "
                     "accionables bajo un encabezado 'Tareas detectadas' como taskItem. " + _DOC_FORMAT,
    "translate": "Eres un traductor profesional. Si el texto está en español tradúcelo a inglés y "
                 "si está en inglés a español, manteniendo la estructura. " + _DOC_FORMAT,
    "format": "Eres un experto en formato de documentos. Mejora la estructura con títulos (nivel 1-3), "
              "listas, negritas para conceptos clave y bloques de código. " + _DOC_FORMAT,
    "rewrite": "Eres un escritor profesional. Reescribe la sección indicada mejorando claridad y "
               "estilo sin cambiar el significado. Devuelve solo la sección. " + _DOC_FORMAT,
    "add_section": "Eres un asistente de escritura. Crea una nueva sección relevante según el "
                   "contenido y la solicitud del usuario. Devuelve solo la sección nueva. " + _DOC_FORMAT,
    "remove_section": "Identifica y elimina la sección solicitada. Devuelve el contenido completo "
                      "sin esa sección. " + _DOC_FORMAT,
    "ask": "Eres un asistente experto en análisis de contenido. Responde a la pregunta del usuario "
           "basándote únicamente en la nota. Si la información no está, dilo claramente. "
           "Responde en markdown.",
}


def build_note_action_prompt(
    action: str, content: str, query: str | None = None, section: str | None = None
) -> str:
    lines = ["CONTENIDO DE LA NOTA:", f"<note>{content[:_NOTE_CONTENT_LIMIT]}</note>"]
    if section:
        lines.extend(["", f"SECCIÓN A MODIFICAR: {section}"])
    if query:
        label = "PREGUNTA" if action == "ask" else "SOLICITUD DEL USUARIO"
        lines.extend(["", f"{label}: {query}"])
    return "\n".join(lines)


def _first_json_object(text: str) -> Any:
    match = re.search(r"\{[\s\S]*\}", text)
    if match is None:
        raise ValueError("No JSON object in response")
    return json.loads(match.group(0))


def run_note_action(
    action: str,
    content: str,
    query: str | None = None,
    section: str | None = None,
) -> dict[str, Any]:
    """Run one of the note actions. Never writes: the caller previews the result."""
    if action not in NOTE_ACTION_PROMPTS:
        raise ValidationError(f"Acción desconocida: {action}")
    if action == "ask" and not (query or "").strip():
        raise ValidationError("Se requiere una pregunta para esta acción")

    raw_text = _complete(
        NOTE_ACTION_PROMPTS[action],
        build_note_action_prompt(action, content or "", query, section),
        temperature=0.3,
    )

    if action == "ask":
        return {"type": "answer", "result": raw_text.strip(), "action": action}

    try:
        document = _first_json_object(raw_text)
    except (ValueError, json.JSONDecodeError) as exc:
        logger.info("ai_bridge: %s returned plain text: %s", action, exc)
        document = None
    if rich_text.is_document(document):
        return {"type": "modification", "result": document, "action": action, "preview": True}

    return {"type": "text", "result": rich_text.paragraph_doc(raw_text.strip()), "action": action}
