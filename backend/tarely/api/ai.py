import logging

from dateutil import parser as date_parser
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from tarely.api.deps import get_current_user
from tarely.database import get_db
from tarely.models.profile import Profile
from tarely.models.task import TaskTag
from tarely.schemas.ai import (
    GeneratePromptResponseSchema,
    GeneratePromptSchema,
    GenerateTasksResponseSchema,
    GenerateTasksSchema,
)
from tarely.schemas.tasks import TaskSchema
from tarely.services import access, ai_bridge, tag_service, task_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


def _parse_due_date(value: str | None):
    if not value:
        return None
    try:
        return date_parser.isoparse(value)
    except ValueError:
        logger.info("generate_tasks: dropping unparseable due date %r", value)
        return None


@router.post("/generate-tasks", response_model=GenerateTasksResponseSchema)
def generate_tasks(
    body: GenerateTasksSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Turn free text into tasks. Suggested tags are attached by position."""
    workspace = access.require_access(db, body.workspace_id, user.id)
    tags = tag_service.list_tags(db, workspace.id)
    drafts = ai_bridge.generate_tasks(workspace, body.text, tags)

    tasks = task_service.create_many_tasks(
        db,
        workspace,
        user.id,
        [
            {
                "title": draft.title,
                "description": draft.description or "",
                "importance": draft.importance,
                "due_date": _parse_due_date(draft.due_date),
                "source": "ai",
                "recurrence": draft.recurrence.model_dump() if draft.recurrence else None,
            }
            for draft in drafts
        ],
        commit=False,
    )

    known = {tag.id for tag in tags}
    for task, draft in zip(tasks, drafts):
        for tag_id in dict.fromkeys(draft.tag_ids):
            if tag_id in known:
                db.add(TaskTag(task_id=task.id, tag_id=tag_id))
    db.commit()
    for task in tasks:
        db.refresh(task)

    logger.info("generate_tasks: %d tasks for workspace %s", len(tasks), workspace.id)
    return GenerateTasksResponseSchema(
        tasks=[TaskSchema.model_validate(t) for t in tasks],
        count=len(tasks),
    )


@router.post("/generate-prompt", response_model=GeneratePromptResponseSchema)
def generate_prompt(
    body: GeneratePromptSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, body.task_id, user.id)
    workspace = access.get_workspace(db, task.workspace_id)
    return GeneratePromptResponseSchema(prompt=ai_bridge.generate_ide_prompt(task, workspace))
