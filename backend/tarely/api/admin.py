from fastapi import APIRouter, Depends
from sqlalchemy import func
from sqlalchemy.orm import Session

from tarely.api.deps import require_admin
from tarely.database import get_db
from tarely.models.note import Note
from tarely.models.profile import Profile
from tarely.models.task import Task
from tarely.models.workspace import Workspace
from tarely.schemas.profile import AdminStatsSchema

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/stats", response_model=AdminStatsSchema)
def stats(_: Profile = Depends(require_admin), db: Session = Depends(get_db)):
    def count(query) -> int:
        return query.scalar() or 0

    return AdminStatsSchema(
        users=count(db.query(func.count(Profile.id))),
        workspaces=count(db.query(func.count(Workspace.id))),
        tasks=count(db.query(func.count(Task.id))),
        completed_tasks=count(db.query(func.count(Task.id)).filter(Task.completed.is_(True))),
        ai_tasks=count(db.query(func.count(Task.id)).filter(Task.source == "ai")),
        notes=count(db.query(func.count(Note.id))),
    )
