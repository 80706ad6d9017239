from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from workhub.errors import NotFoundError, ValidationError
from workhub.platform.security.context import AuthContext
from workhub.platform.security.scope import AccessScope
from workhub.work_items.custom_fields import CustomFieldLoader
from workhub.work_items.models import WorkItem
from workhub.work_items.query import build_work_item_conditions, map_work_item_row, work_item_select
from workhub.work_items.schemas import WorkItemRead
from workhub.work_items.tracking import elapsed_ms, track_operation


logger = logging.getLogger("workhub.work_items.hierarchy")

MAX_DEPTH = 10


@dataclass(frozen=True, slots=True)
class HierarchyFields:
    depth: int
    root_id: uuid.UUID | None
    parent_path: str | None
    parent_organization_id: uuid.UUID | None = None


def calculate_hierarchy_fields(
    session: Session,
    parent_id: uuid.UUID | None,
    max_depth: int = MAX_DEPTH,
) -> HierarchyFields:
    """Derive depth, root and parent path for an item placed under ``parent_id``."""

    if parent_id is None:
        return HierarchyFields(depth=0, root_id=None, parent_path=None)

    parent = session.execute(
        select(
            WorkItem.depth,
            WorkItem.root_work_item_id,
            WorkItem.path,
            WorkItem.organization_id,
        ).where(WorkItem.id == parent_id, WorkItem.deleted_at.is_(None))
    ).first()
    if parent is None:
        raise NotFoundError("Parent work item not found", {"parent_work_item_id": str(parent_id)})

    depth = parent.depth + 1
    if depth > max_depth:
        raise ValidationError(
            f"Maximum nesting depth of {max_depth} levels exceeded",
            {"parent_work_item_id": str(parent_id), "depth": depth, "max_depth": max_depth},
        )

    return HierarchyFields(
        depth=depth,
        root_id=parent.root_work_item_id or parent_id,
        parent_path=parent.path,
        parent_organization_id=parent.organization_id,
    )


def build_work_item_path(work_item_id: uuid.UUID, parent_path: str | None) -> str:
    if parent_path:
        return f"{parent_path}/{work_item_id}"
    return f"/{work_item_id}"


def path_ancestor_ids(path: str | None, work_item_id: uuid.UUID) -> list[uuid.UUID]:
    """Ids on ``path`` from the root down, excluding ``work_item_id`` itself."""

    if not path:
        return []
    ancestor_ids: list[uuid.UUID] = []
    for segment in path.split("/"):
        if not segment:
            continue
        try:
            segment_id = uuid.UUID(segment)
        except ValueError:
            continue
        if segment_id != work_item_id:
            ancestor_ids.append(segment_id)
    return ancestor_ids


@dataclass(slots=True)
class WorkItemHierarchyService:
    session: Session
    ctx: AuthContext
    scope: AccessScope
    custom_field_loader: CustomFieldLoader = field(default_factory=CustomFieldLoader)

    def get_work_item_children(self, work_item_id: uuid.UUID) -> list[WorkItemRead]:
        started = time.perf_counter()
        rbac_scope = self.scope.read_scope_label()
        if not self.scope.can_read:
            logger.info(
                "work_items.children.no_scope",
                extra={"operation": "get_children", "work_item_id": str(work_item_id), "user_id": str(self.ctx.user_id)},
            )
            return []

        with track_operation(
            self.session,
            self.ctx,
            "get_children",
            rbac_scope=rbac_scope,
            work_item_id=work_item_id,
        ):
            conditions = build_work_item_conditions(self.scope, self.ctx.user_id)
            parent = self.session.execute(
                select(WorkItem.id).where(*conditions, WorkItem.id == work_item_id)
            ).first()
            if parent is None:
                raise NotFoundError("Work item not found", {"work_item_id": str(work_item_id)})

            rows = self.session.execute(
                work_item_select()
                .where(*conditions, WorkItem.parent_work_item_id == work_item_id)
                .order_by(WorkItem.created_at.asc())
            ).all()
            items = self._map_rows(rows)

        logger.info(
            "work_items.children.retrieved",
            extra={
                "operation": "get_children",
                "work_item_id": str(work_item_id),
                "user_id": str(self.ctx.user_id),
                "count": len(items),
                "rbac_scope": rbac_scope,
                "duration_ms": elapsed_ms(started),
            },
        )
        return items

    def get_work_item_ancestors(self, work_item_id: uuid.UUID) -> list[WorkItemRead]:
        started = time.perf_counter()
        rbac_scope = self.scope.read_scope_label()
        if not self.scope.can_read:
            logger.info(
                "work_items.ancestors.no_scope",
                extra={"operation": "get_ancestors", "work_item_id": str(work_item_id), "user_id": str(self.ctx.user_id)},
            )
            return []

        with track_operation(
            self.session,
            self.ctx,
            "get_ancestors",
            rbac_scope=rbac_scope,
            work_item_id=work_item_id,
        ):
            conditions = build_work_item_conditions(self.scope, self.ctx.user_id)
            item = self.session.execute(
                select(WorkItem.id, WorkItem.parent_work_item_id, WorkItem.path).where(
                    *conditions, WorkItem.id == work_item_id
                )
            ).first()
            if item is None:
                raise NotFoundError("Work item not found", {"work_item_id": str(work_item_id)})
            if item.parent_work_item_id is None:
                return []

            ancestor_ids = path_ancestor_ids(item.path, work_item_id) or [item.parent_work_item_id]
            rows = self.session.execute(
                work_item_select()
                .where(*conditions, WorkItem.id.in_(ancestor_ids))
                .order_by(WorkItem.depth.asc())
            ).all()
            items = self._map_rows(rows)

        logger.info(
            "work_items.ancestors.retrieved",
            extra={
                "operation": "get_ancestors",
                "work_item_id": str(work_item_id),
                "user_id": str(self.ctx.user_id),
                "count": len(items),
                "rbac_scope": rbac_scope,
                "duration_ms": elapsed_ms(started),
            },
        )
        return items

    def _map_rows(self, rows: list) -> list[WorkItemRead]:  # type: ignore[type-arg]
        custom_fields = self.custom_field_loader.load(self.session, [row.id for row in rows])
        return [map_work_item_row(row._mapping, custom_fields.get(row.id)) for row in rows]
