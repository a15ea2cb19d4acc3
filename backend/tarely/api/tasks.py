from fastapi import APIRouter, Depends, File, Query, UploadFile
from sqlalchemy.orm import Session

from tarely.api.deps import get_current_user
from tarely.database import get_db
from tarely.models.profile import Profile
from tarely.schemas.common import SuccessSchema
from tarely.schemas.tags import TagSchema
from tarely.schemas.tasks import (
    ActivitySchema,
    AssigneeCreateSchema,
    AssigneeSchema,
    AttachmentSchema,
    CommentCreateSchema,
    CommentSchema,
    CommentUpdateSchema,
    SubtaskCreateSchema,
    SubtaskGenerateResponseSchema,
    SubtaskSchema,
    SubtaskUpdateSchema,
    TagAssignSchema,
    TaskBulkCreateSchema,
    TaskCreateRequestSchema,
    TaskDetailSchema,
    TaskListResponseSchema,
    TaskPromptSchema,
    TaskSchema,
    TaskUpdateSchema,
)
from tarely.services import access, prompts, subtask_service, task_feed_service, task_service

router = APIRouter(prefix="/tasks", tags=["tasks"])


def _draft(body) -> dict:
    data = body.model_dump(exclude={"workspace_id"})
    data["recurrence"] = body.recurrence.model_dump() if body.recurrence else None
    return data


@router.get("", response_model=TaskListResponseSchema)
def list_tasks(
    workspace_id: str = Query(..., alias="workspaceId"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """List a workspace's tasks, newest first."""
    access.require_access(db, workspace_id, user.id)
    tasks = task_service.list_tasks(db, workspace_id)
    return TaskListResponseSchema(
        tasks=[TaskSchema.model_validate(t) for t in tasks],
        total=len(tasks),
    )


@router.post("", response_model=TaskSchema, status_code=201)
def create_task(
    body: TaskCreateRequestSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_access(db, body.workspace_id, user.id)
    return task_service.create_task(db, workspace, user.id, _draft(body))


@router.post("/bulk", response_model=list[TaskSchema], status_code=201)
def create_many_tasks(
    body: TaskBulkCreateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    workspace = access.require_access(db, body.workspace_id, user.id)
    return task_service.create_many_tasks(
        db, workspace, user.id, [_draft(draft) for draft in body.tasks]
    )


@router.get("/{task_id}", response_model=TaskDetailSchema)
def get_task(
    task_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return access.require_task(db, task_id, user.id)


@router.patch("/{task_id}", response_model=TaskSchema)
def update_task(
    task_id: str,
    body: TaskUpdateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    changes = body.model_dump(exclude_unset=True)
    if "recurrence" in changes:
        changes["recurrence"] = body.recurrence.model_dump() if body.recurrence else None
    return task_service.update_task(db, task, user.id, changes)


@router.delete("/{task_id}", response_model=SuccessSchema)
def delete_task(
    task_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    task_service.delete_task(db, task)
    return SuccessSchema()


@router.get("/{task_id}/prompt", response_model=TaskPromptSchema)
def task_prompt(
    task_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Markdown prompt for pasting into an AI coding assistant."""
    task = access.require_task(db, task_id, user.id)
    workspace = access.get_workspace(db, task.workspace_id)
    return TaskPromptSchema(prompt=prompts.task_prompt(task, workspace))


# ── Subtasks ──────────────────────────────────────────────────────────────────


@router.get("/{task_id}/subtasks", response_model=list[SubtaskSchema])
def list_subtasks(
    task_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    return subtask_service.list_subtasks(db, task)


@router.post(
    "/{task_id}/subtasks",
    response_model=SubtaskSchema | SubtaskGenerateResponseSchema,
    status_code=201,
)
def create_subtask(
    task_id: str,
    body: SubtaskCreateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """``{title}`` appends one subtask; ``{generate: true}`` asks the AI for several."""
    task = access.require_task(db, task_id, user.id)
    if body.generate:
        workspace = access.get_workspace(db, task.workspace_id)
        created = subtask_service.generate_subtasks(db, task, workspace)
        return SubtaskGenerateResponseSchema(
            subtasks=[SubtaskSchema.model_validate(s) for s in created]
        )
    return SubtaskSchema.model_validate(subtask_service.create_subtask(db, task, body.title))


@router.patch("/{task_id}/subtasks", response_model=SubtaskSchema)
def update_subtask(
    task_id: str,
    body: SubtaskUpdateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    changes = body.model_dump(exclude_unset=True, exclude={"subtask_id"})
    return subtask_service.update_subtask(db, task, body.subtask_id, changes)


@router.delete("/{task_id}/subtasks", response_model=SuccessSchema)
def delete_subtask(
    task_id: str,
    subtask_id: str = Query(..., alias="subtaskId"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    subtask_service.delete_subtask(db, task, subtask_id)
    return SuccessSchema()


# ── Tags ──────────────────────────────────────────────────────────────────────


@router.get("/{task_id}/tags", response_model=list[TagSchema])
def list_task_tags(
    task_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    return task_service.list_task_tags(db, task)


@router.post("/{task_id}/tags", response_model=TagSchema, status_code=201)
def assign_tag(
    task_id: str,
    body: TagAssignSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    return task_service.assign_tag(db, task, body.tag_id)


@router.delete("/{task_id}/tags", response_model=SuccessSchema)
def remove_tag(
    task_id: str,
    tag_id: str = Query(..., alias="tagId"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    task_service.remove_tag(db, task, tag_id)
    return SuccessSchema()


# ── Assignees ─────────────────────────────────────────────────────────────────


def _assignee_schema(assignee, profile) -> AssigneeSchema:
    schema = AssigneeSchema.model_validate(assignee)
    if profile is None:
        return schema
    return schema.model_copy(
        update={"name": profile.name, "email": profile.email, "avatar": profile.avatar}
    )


@router.get("/{task_id}/assignees", response_model=list[AssigneeSchema])
def list_assignees(
    task_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    return [_assignee_schema(a, p) for a, p in task_service.list_assignees(db, task)]


@router.post("/{task_id}/assignees", response_model=AssigneeSchema, status_code=201)
def assign_user(
    task_id: str,
    body: AssigneeCreateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    assignee = task_service.assign_user(db, task, body.user_id, user.id)
    return AssigneeSchema.model_validate(assignee)


@router.delete("/{task_id}/assignees", response_model=SuccessSchema)
def unassign_user(
    task_id: str,
    user_id: str = Query(..., alias="userId"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    task_service.unassign_user(db, task, user_id, user.id)
    return SuccessSchema()


# ── Comments ──────────────────────────────────────────────────────────────────


@router.get("/{task_id}/comments", response_model=list[CommentSchema])
def list_comments(
    task_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    return [
        CommentSchema.model_validate(comment).model_copy(
            update={
                "author_name": author.name if author else None,
                "author_avatar": author.avatar if author else None,
            }
        )
        for comment, author in task_feed_service.list_comments(db, task)
    ]


@router.post("/{task_id}/comments", response_model=CommentSchema, status_code=201)
def add_comment(
    task_id: str,
    body: CommentCreateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    comment = task_feed_service.add_comment(db, task, user.id, body.content)
    return CommentSchema.model_validate(comment).model_copy(
        update={"author_name": user.name, "author_avatar": user.avatar}
    )


@router.patch("/{task_id}/comments", response_model=CommentSchema)
def edit_comment(
    task_id: str,
    body: CommentUpdateSchema,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    return task_feed_service.edit_comment(db, task, body.comment_id, user.id, body.content)


@router.delete("/{task_id}/comments", response_model=SuccessSchema)
def delete_comment(
    task_id: str,
    comment_id: str = Query(..., alias="commentId"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    task_feed_service.delete_comment(db, task, comment_id, user.id)
    return SuccessSchema()


# ── Attachments ───────────────────────────────────────────────────────────────


@router.get("/{task_id}/attachments", response_model=list[AttachmentSchema])
def list_attachments(
    task_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    return [
        AttachmentSchema.model_validate(attachment).model_copy(update={"url": url})
        for attachment, url in task_feed_service.list_attachments(db, task)
    ]


@router.post("/{task_id}/attachments", response_model=AttachmentSchema, status_code=201)
def add_attachment(
    task_id: str,
    file: UploadFile = File(...),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    attachment, url = task_feed_service.add_attachment(
        db,
        task,
        user.id,
        file_name=file.filename or "archivo",
        mime_type=file.content_type or "",
        data=file.file.read(),
    )
    return AttachmentSchema.model_validate(attachment).model_copy(update={"url": url})


@router.delete("/{task_id}/attachments", response_model=SuccessSchema)
def delete_attachment(
    task_id: str,
    attachment_id: str = Query(..., alias="attachmentId"),
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    task_feed_service.delete_attachment(db, task, attachment_id, user.id)
    return SuccessSchema()


# ── Activity ──────────────────────────────────────────────────────────────────


@router.get("/{task_id}/activity", response_model=list[ActivitySchema])
def list_activity(
    task_id: str,
    user: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    task = access.require_task(db, task_id, user.id)
    return [
        ActivitySchema.model_validate(activity).model_copy(
            update={"user_name": actor.name if actor else None}
        )
        for activity, actor in task_feed_service.list_activity(db, task)
    ]
