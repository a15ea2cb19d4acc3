from datetime import datetime

from tarely.schemas.common import CamelModel


class SectionSchema(CamelModel):
    id: str
    workspace_id: str
    name: str
    icon: str
    color: str
    order: int
    is_system: bool
    created_at: datetime


class SectionCreateSchema(CamelModel):
    workspace_id: str
    name: str
    icon: str | None = None
    color: str | None = None


class SectionUpdateSchema(CamelModel):
    name: str | None = None
    icon: str | None = None
    color: str | None = None
    order: int | None = None


class SectionOrderItem(CamelModel):
    id: str
    order: int


class SectionReorderSchema(CamelModel):
    workspace_id: str
    sections: list[SectionOrderItem]
