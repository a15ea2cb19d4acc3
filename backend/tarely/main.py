import logging
import os

os.environ.setdefault("OAUTHLIB_INSECURE_TRANSPORT", "1")

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from tarely.api.admin import router as admin_router
from tarely.api.ai import router as ai_router
from tarely.api.calendar import router as calendar_router
from tarely.api.folders import router as folders_router
from tarely.api.google_calendar import router as google_calendar_router
from tarely.api.invitations import router as invitations_router
from tarely.api.notes import router as notes_router
from tarely.api.profile import router as profile_router
from tarely.api.sections import router as sections_router
from tarely.api.storage import router as storage_router
from tarely.api.tags import router as tags_router
from tarely.api.tasks import router as tasks_router
from tarely.api.templates import router as templates_router
from tarely.api.users import router as users_router
from tarely.api.workspaces import router as workspaces_router
from tarely.config import settings
from tarely.errors import TarelyError
from tarely.services.calendar_connector import CalendarAPIError, CalendarAuthError

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Tarely API", version="0.1.0")

app.include_router(profile_router)
app.include_router(users_router)
app.include_router(workspaces_router)
app.include_router(invitations_router)
app.include_router(sections_router)
app.include_router(tasks_router)
# Folder and template routes must be matched before /notes/{note_id}.
app.include_router(folders_router)
app.include_router(templates_router)
app.include_router(notes_router)
app.include_router(tags_router)
app.include_router(ai_router)
app.include_router(calendar_router)
app.include_router(google_calendar_router)
app.include_router(admin_router)
app.include_router(storage_router)


@app.exception_handler(TarelyError)
def handle_domain_error(request: Request, exc: TarelyError):
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(CalendarAuthError)
def handle_calendar_auth_error(request: Request, exc: CalendarAuthError):
    logger.warning("%s %s: Google credentials rejected: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=401,
        content={"error": "La conexión con Google Calendar ha caducado. Vuelve a conectarla."},
    )


@app.exception_handler(CalendarAPIError)
def handle_calendar_api_error(request: Request, exc: CalendarAPIError):
    logger.error(
        "%s %s: Google Calendar returned %s: %s",
        request.method, request.url.path, exc.status_code, exc.message,
    )
    return JSONResponse(status_code=502, content={"error": "Error al comunicarse con Google Calendar"})


@app.get("/health")
def health():
    return {"status": "ok"}
