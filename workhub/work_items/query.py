from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any

from sqlalchemy import Select, or_, select
from sqlalchemy.orm import aliased
from sqlalchemy.sql.elements import ColumnElement

from workhub.models.directory import Organization, User
from workhub.platform.security.scope import AccessScope
from workhub.work_items.models import WorkItem, WorkItemStatus, WorkItemType
from workhub.work_items.repository import WorkItemRepository
from workhub.work_items.schemas import WorkItemQuery, WorkItemRead


_repository = WorkItemRepository()

Assignee = aliased(User, name="assignee")
Creator = aliased(User, name="creator")

SORT_COLUMNS: dict[str, Any] = {
    "subject": WorkItem.subject,
    "priority": WorkItem.priority,
    "due_date": WorkItem.due_date,
    "status_id": WorkItem.status_id,
    "assigned_to": WorkItem.assigned_to,
    "created_at": WorkItem.created_at,
    "updated_at": WorkItem.updated_at,
}


def build_work_item_conditions(
    scope: AccessScope,
    user_id: uuid.UUID,
    filters: WorkItemQuery | None = None,
) -> list[ColumnElement[bool]]:
    """Predicates shared by every work item read.

    Soft-deleted rows are always excluded and the scope restriction is always
    present; filters are only ever ANDed on top, so they narrow but never widen.
    """

    conditions: list[ColumnElement[bool]] = [WorkItem.deleted_at.is_(None)]

    scope_condition = _repository.scope_condition(scope, user_id)
    if scope_condition is not None:
        conditions.append(scope_condition)

    if filters is None:
        return conditions

    if filters.work_item_type_id is not None:
        conditions.append(WorkItem.work_item_type_id == filters.work_item_type_id)
    if filters.organization_id is not None:
        conditions.append(WorkItem.organization_id == filters.organization_id)
    if filters.status_id is not None:
        conditions.append(WorkItem.status_id == filters.status_id)
    if filters.status_category is not None:
        category_status_ids = select(WorkItemStatus.id).where(WorkItemStatus.status_category == filters.status_category)
        conditions.append(WorkItem.status_id.in_(category_status_ids))
    if filters.priority is not None:
        conditions.append(WorkItem.priority == filters.priority)
    if filters.assigned_to is not None:
        conditions.append(WorkItem.assigned_to == filters.assigned_to)
    if filters.created_by is not None:
        conditions.append(WorkItem.created_by == filters.created_by)
    if filters.search:
        pattern = f"%{filters.search.strip()}%"
        conditions.append(or_(WorkItem.subject.ilike(pattern), WorkItem.description.ilike(pattern)))
    if filters.created_after is not None:
        conditions.append(WorkItem.created_at >= filters.created_after)
    if filters.created_before is not None:
        conditions.append(WorkItem.created_at <= filters.created_before)
    if filters.root_only:
        conditions.append(WorkItem.parent_work_item_id.is_(None))

    return conditions


def work_item_select() -> Select[Any]:
    return (
        select(
            WorkItem.id,
            WorkItem.work_item_type_id,
            WorkItemType.name.label("work_item_type_name"),
            WorkItem.organization_id,
            Organization.name.label("organization_name"),
            WorkItem.subject,
            WorkItem.description,
            WorkItem.status_id,
            WorkItemStatus.status_name.label("status_name"),
            WorkItemStatus.status_category.label("status_category"),
            WorkItem.priority,
            WorkItem.assigned_to,
            Assignee.first_name.label("assigned_to_first_name"),
            Assignee.last_name.label("assigned_to_last_name"),
            WorkItem.due_date,
            WorkItem.started_at,
            WorkItem.completed_at,
            WorkItem.parent_work_item_id,
            WorkItem.root_work_item_id,
            WorkItem.depth,
            WorkItem.path,
            WorkItem.created_by,
            Creator.first_name.label("created_by_first_name"),
            Creator.last_name.label("created_by_last_name"),
            WorkItem.created_at,
            WorkItem.updated_at,
        )
        .select_from(WorkItem)
        .outerjoin(WorkItemType, WorkItemType.id == WorkItem.work_item_type_id)
        .outerjoin(Organization, Organization.id == WorkItem.organization_id)
        .outerjoin(WorkItemStatus, WorkItemStatus.id == WorkItem.status_id)
        .outerjoin(Assignee, Assignee.id == WorkItem.assigned_to)
        .outerjoin(Creator, Creator.id == WorkItem.created_by)
    )


def _full_name(first_name: str | None, last_name: str | None) -> str | None:
    if first_name and last_name:
        return f"{first_name} {last_name}"
    return None


def map_work_item_row(row: Mapping[str, Any], custom_fields: dict[str, Any] | None = None) -> WorkItemRead:
    return WorkItemRead(
        id=row["id"],
        work_item_type_id=row["work_item_type_id"],
        work_item_type_name=row.get("work_item_type_name") or "",
        organization_id=row["organization_id"],
        organization_name=row.get("organization_name") or "",
        subject=row["subject"],
        description=row.get("description"),
        status_id=row["status_id"],
        status_name=row.get("status_name") or "",
        status_category=row.get("status_category") or "",
        priority=row.get("priority") or "medium",
        assigned_to=row.get("assigned_to"),
        assigned_to_name=_full_name(row.get("assigned_to_first_name"), row.get("assigned_to_last_name")),
        due_date=row.get("due_date"),
        started_at=row.get("started_at"),
        completed_at=row.get("completed_at"),
        parent_work_item_id=row.get("parent_work_item_id"),
        root_work_item_id=row.get("root_work_item_id"),
        depth=row.get("depth") or 0,
        path=row.get("path"),
        created_by=row["created_by"],
        created_by_name=_full_name(row.get("created_by_first_name"), row.get("created_by_last_name")) or "",
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        custom_fields=custom_fields or {},
    )
