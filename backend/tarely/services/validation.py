"""Server-side field rules. Clients pre-validate, but nothing here trusts them."""
from __future__ import annotations

import re

from tarely.errors import ValidationError

_HEX_COLOR = re.compile(r"^#[0-9A-Fa-f]{6}$")


def require_text(value: str | None, field: str, *, max_length: int, min_length: int = 1) -> str:
    text = (value or "").strip()
    if len(text) < min_length:
        raise ValidationError(f"El campo {field} es obligatorio")
    if len(text) > max_length:
        raise ValidationError(f"El campo {field} no puede superar {max_length} caracteres")
    return text


def optional_text(value: str | None, field: str, *, max_length: int) -> str:
    text = value or ""
    if len(text) > max_length:
        raise ValidationError(f"El campo {field} no puede superar {max_length} caracteres")
    return text


def color(value: str | None, default: str) -> str:
    if value is None:
        return default
    if not _HEX_COLOR.match(value):
        raise ValidationError("Color inválido, usa el formato #RRGGBB")
    return value


def importance(value) -> int:
    """Importance must be an integer in [1, 10]; 7.0 is accepted, 7.5 is not."""
    if isinstance(value, bool) or value is None:
        raise ValidationError("La importancia debe ser un número entero entre 1 y 10")
    if isinstance(value, float):
        if not value.is_integer():
            raise ValidationError("La importancia debe ser un número entero entre 1 y 10")
        value = int(value)
    if not isinstance(value, int) or not 1 <= value <= 10:
        raise ValidationError("La importancia debe ser un número entero entre 1 y 10")
    return value
