"""Copy-ready markdown prompt for AI coding assistants, rendered without an LLM."""
from __future__ import annotations

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

from tarely.services.recurrence import ensure_utc

_TIMEZONE = ZoneInfo("Europe/Madrid")
_MONTHS = [
    "enero", "febrero", "marzo", "abril", "mayo", "junio",
    "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
]


def format_date(value: datetime) -> str:
    local = ensure_utc(value).astimezone(_TIMEZONE)
    return f"{local.day} de {_MONTHS[local.month - 1]} de {local.year}, {local:%H:%M}"


def importance_label(importance: int) -> str:
    if importance >= 9:
        return "CRÍTICA"
    if importance >= 7:
        return "ALTA"
    if importance >= 5:
        return "MEDIA"
    if importance >= 3:
        return "BAJA"
    return "MUY BAJA"


def task_prompt(task, workspace, now: datetime | None = None) -> str:
    now = now or datetime.now(timezone.utc)
    details = [f"**Título:** {task.title}"]
    if task.description:
        details.append(f"**Descripción:** {task.description}")
    details.extend([
        f"**Prioridad:** {importance_label(task.importance)} ({task.importance}/10)",
        f"**Creada:** {format_date(task.created_at)}",
        f"**Origen:** {'Generada por IA' if task.source == 'ai' else 'Manual'}",
    ])

    return f"""# 🎯 TAREA A IMPLEMENTAR

## Contexto del Proyecto
**Workspace:** {workspace.name}
**Descripción:** {workspace.description}

### Instrucciones del Proyecto
{workspace.instructions or "_Sin instrucciones específicas_"}

---

## Detalles de la Tarea

{chr(10).join(details)}

---

## Output Esperado

Por favor, proporciona:

### 1. Análisis Inicial
- Comprensión de los requisitos
- Identificación de dependencias
- Posibles retos técnicos

### 2. Plan de Implementación
- Desglose en pasos secuenciales
- Estimación de complejidad por paso

### 3. Checklist de Verificación
- [ ] Paso 1 completado
- [ ] Paso 2 completado
- [ ] (continúa según necesidad)

### 4. Si involucra código:
- Proporciona el código en formato **patch/diff** cuando sea posible
- Incluye **tests unitarios** para las funcionalidades nuevas
- Documenta cualquier cambio en APIs o interfaces

### 5. Notas Adicionales
- Mejoras sugeridas
- Posibles optimizaciones futuras
- Consideraciones de mantenibilidad

---

_Prompt generado por Tarely el {format_date(now)}_"""
