from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


WorkItemPriority = Literal["critical", "high", "medium", "low"]
StatusCategory = Literal["backlog", "in_progress", "completed", "cancelled"]
SortField = Literal["subject", "priority", "due_date", "status_id", "assigned_to", "created_at", "updated_at"]
SortOrder = Literal["asc", "desc"]


class WorkItemCreate(BaseModel):
    work_item_type_id: UUID
    organization_id: UUID
    subject: str = Field(min_length=1, max_length=500)
    description: str | None = None
    priority: WorkItemPriority = "medium"
    assigned_to: UUID | None = None
    due_date: datetime | None = None
    parent_work_item_id: UUID | None = None
    custom_fields: dict[UUID, Any] | None = None


class WorkItemUpdate(BaseModel):
    subject: str | None = Field(default=None, min_length=1, max_length=500)
    description: str | None = None
    status_id: UUID | None = None
    priority: WorkItemPriority | None = None
    assigned_to: UUID | None = None
    due_date: datetime | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    custom_fields: dict[UUID, Any] | None = None


class WorkItemQuery(BaseModel):
    work_item_type_id: UUID | None = None
    organization_id: UUID | None = None
    status_id: UUID | None = None
    status_category: StatusCategory | None = None
    priority: WorkItemPriority | None = None
    assigned_to: UUID | None = None
    created_by: UUID | None = None
    search: str | None = Field(default=None, max_length=500)
    created_after: datetime | None = None
    created_before: datetime | None = None
    root_only: bool = False
    limit: int | None = Field(default=None, ge=1)
    offset: int = Field(default=0, ge=0)
    sort_by: SortField = "created_at"
    sort_order: SortOrder = "desc"


class WorkItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    work_item_type_id: UUID
    work_item_type_name: str
    organization_id: UUID
    organization_name: str
    subject: str
    description: str | None
    status_id: UUID
    status_name: str
    status_category: str
    priority: str
    assigned_to: UUID | None
    assigned_to_name: str | None
    due_date: datetime | None
    started_at: datetime | None
    completed_at: datetime | None
    parent_work_item_id: UUID | None
    root_work_item_id: UUID | None
    depth: int
    path: str | None
    created_by: UUID
    created_by_name: str
    created_at: datetime
    updated_at: datetime
    custom_fields: dict[str, Any] = Field(default_factory=dict)


class WorkItemPage(BaseModel):
    items: list[WorkItemRead]
    total: int
    limit: int
    offset: int
