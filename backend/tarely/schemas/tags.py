from datetime import datetime

from tarely.schemas.common import CamelModel


class TagSchema(CamelModel):
    id: str
    workspace_id: str
    name: str
    color: str
    created_at: datetime


class TagCreateSchema(CamelModel):
    workspace_id: str
    name: str
    color: str | None = None


class TagUpdateSchema(CamelModel):
    name: str | None = None
    color: str | None = None
