"""Domain exceptions raised by the service layer.

Each exception carries the HTTP status it maps to and a short, user-facing
message. ``tarely.main`` registers a single handler that renders them as
``{"error": message}``.
"""


class TarelyError(Exception):
    status_code = 500
    default_message = "Error interno del servidor"

    def __init__(self, message: str | None = None, *, status_code: int | None = None) -> None:
        self.message = message or self.default_message
        if status_code is not None:
            self.status_code = status_code
        super().__init__(self.message)


class UnauthorizedError(TarelyError):
    status_code = 401
    default_message = "No autorizado"


class ForbiddenError(TarelyError):
    status_code = 403
    default_message = "No tienes permiso para realizar esta acción"


class NotFoundError(TarelyError):
    status_code = 404
    default_message = "No encontrado"


class ValidationError(TarelyError):
    status_code = 400
    default_message = "Datos inválidos"


class InvalidOperationError(TarelyError):
    status_code = 400
    default_message = "Operación no permitida"


class ConflictError(TarelyError):
    status_code = 409
    default_message = "El recurso ya existe"


class UpstreamError(TarelyError):
    """An external provider (AI, email, storage) failed. Details stay in the log."""

    status_code = 500
    default_message = "Error al procesar respuesta de IA"
