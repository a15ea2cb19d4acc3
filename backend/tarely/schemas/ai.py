from pydantic import Field

from tarely.schemas.common import CamelModel
from tarely.schemas.tasks import TaskSchema


class GenerateTasksSchema(CamelModel):
    workspace_id: str
    text: str = Field(..., min_length=10, max_length=10000)


class GenerateTasksResponseSchema(CamelModel):
    success: bool = True
    tasks: list[TaskSchema]
    count: int


class GeneratePromptSchema(CamelModel):
    task_id: str


class GeneratePromptResponseSchema(CamelModel):
    prompt: str
