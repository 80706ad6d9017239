from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from workhub import audit
from workhub.core.config import Settings, get_settings
from workhub.errors import NotFoundError, ValidationError
from workhub.platform.security.context import AuthContext
from workhub.platform.security.errors import AuthorizationError
from workhub.platform.security.scope import AccessScope, resolve_access_scope
from workhub.work_items.completion import CompletionValidator
from workhub.work_items.custom_fields import CustomFieldLoader
from workhub.work_items.fields import field_value_for
from workhub.work_items.hierarchy import WorkItemHierarchyService, build_work_item_path, calculate_hierarchy_fields
from workhub.work_items.models import WorkItem, WorkItemField, WorkItemFieldValue, WorkItemStatus, WorkItemType, utcnow
from workhub.work_items.query import SORT_COLUMNS, build_work_item_conditions, map_work_item_row, work_item_select
from workhub.work_items.repository import WorkItemRepository
from workhub.work_items.schemas import WorkItemCreate, WorkItemPage, WorkItemQuery, WorkItemRead, WorkItemUpdate
from workhub.work_items.tracking import elapsed_ms, track_operation
from workhub.work_items.transitions import StatusTransitionValidator, resolve_transition_policy


logger = logging.getLogger("workhub.work_items")

_AUDITED_FIELDS = (
    "subject",
    "description",
    "status_id",
    "priority",
    "assigned_to",
    "due_date",
    "started_at",
    "completed_at",
)
_NON_NULLABLE_FIELDS = {"subject", "status_id", "priority"}


def _plain(value: Any) -> Any:
    if isinstance(value, (uuid.UUID, datetime)):
        return str(value)
    return value


def _snapshot(item: WorkItem, fields: tuple[str, ...] = _AUDITED_FIELDS) -> dict[str, Any]:
    return {key: _plain(getattr(item, key)) for key in fields}


@dataclass(slots=True)
class WorkItemCoreService:
    session: Session
    ctx: AuthContext
    scope: AccessScope
    settings: Settings = field(default_factory=get_settings)
    repository: WorkItemRepository = field(default_factory=WorkItemRepository)
    custom_field_loader: CustomFieldLoader = field(default_factory=CustomFieldLoader)
    transition_validator: StatusTransitionValidator = field(
        default_factory=lambda: StatusTransitionValidator(resolve_transition_policy())
    )
    completion_validator: CompletionValidator = field(default_factory=CompletionValidator)

    def get_work_item_by_id(self, work_item_id: uuid.UUID) -> WorkItemRead | None:
        started = time.perf_counter()
        rbac_scope = self.scope.read_scope_label()
        with track_operation(self.session, self.ctx, "read", rbac_scope=rbac_scope, work_item_id=work_item_id):
            if not self.scope.can_read:
                raise AuthorizationError("Access denied: no read permission for work items")

            conditions = build_work_item_conditions(self.scope, self.ctx.user_id)
            query_started = time.perf_counter()
            row = self.session.execute(work_item_select().where(*conditions, WorkItem.id == work_item_id)).first()
            query_duration_ms = elapsed_ms(query_started)

            if row is None:
                logger.info(
                    "work_items.read.not_found",
                    extra={
                        "operation": "read",
                        "work_item_id": str(work_item_id),
                        "user_id": str(self.ctx.user_id),
                        "found": False,
                        "rbac_scope": rbac_scope,
                        "query_duration_ms": query_duration_ms,
                        "duration_ms": elapsed_ms(started),
                    },
                )
                return None

            self.repository.validate_read_scope(
                self.ctx,
                self.scope,
                organization_id=row.organization_id,
                created_by=row.created_by,
            )

            custom_fields = self.custom_field_loader.load(self.session, [row.id])
            item = map_work_item_row(row._mapping, custom_fields.get(row.id))

        logger.info(
            "work_items.read.found",
            extra={
                "operation": "read",
                "work_item_id": str(work_item_id),
                "organization_id": str(item.organization_id),
                "user_id": str(self.ctx.user_id),
                "found": True,
                "rbac_scope": rbac_scope,
                "query_duration_ms": query_duration_ms,
                "duration_ms": elapsed_ms(started),
            },
        )
        return item

    def get_work_item_count(self, query: WorkItemQuery | None = None) -> int:
        started = time.perf_counter()
        rbac_scope = self.scope.read_scope_label()
        if not self.scope.can_read:
            logger.info(
                "work_items.count.no_scope",
                extra={"operation": "count", "user_id": str(self.ctx.user_id), "count": 0, "rbac_scope": rbac_scope},
            )
            return 0

        with track_operation(self.session, self.ctx, "count", rbac_scope=rbac_scope):
            conditions = build_work_item_conditions(self.scope, self.ctx.user_id, query)
            total = self.session.scalar(select(func.count()).select_from(WorkItem).where(*conditions)) or 0

        logger.info(
            "work_items.count.completed",
            extra={
                "operation": "count",
                "user_id": str(self.ctx.user_id),
                "count": total,
                "filters": self._filters_for_log(query),
                "rbac_scope": rbac_scope,
                "duration_ms": elapsed_ms(started),
            },
        )
        return int(total)

    def get_work_item_page(self, query: WorkItemQuery | None = None) -> WorkItemPage:
        """Page of work items plus the total matching count.

        Count and page run under the same conditions, so ``total`` reflects the
        filtered result set rather than the page size.
        """

        started = time.perf_counter()
        query = query or WorkItemQuery()
        rbac_scope = self.scope.read_scope_label()
        limit = min(query.limit or self.settings.work_item_default_page_size, self.settings.work_item_max_page_size)
        offset = query.offset

        if not self.scope.can_read:
            logger.info(
                "work_items.list.no_scope",
                extra={"operation": "list", "user_id": str(self.ctx.user_id), "count": 0, "rbac_scope": rbac_scope},
            )
            return WorkItemPage(items=[], total=0, limit=limit, offset=offset)

        with track_operation(self.session, self.ctx, "list", rbac_scope=rbac_scope):
            conditions = build_work_item_conditions(self.scope, self.ctx.user_id, query)
            total = self.session.scalar(select(func.count()).select_from(WorkItem).where(*conditions)) or 0

            sort_column = SORT_COLUMNS.get(query.sort_by, WorkItem.created_at)
            ordering = sort_column.asc() if query.sort_order == "asc" else sort_column.desc()
            query_started = time.perf_counter()
            rows = self.session.execute(
                work_item_select()
                .where(*conditions)
                .order_by(ordering, WorkItem.id.asc())
                .limit(limit)
                .offset(offset)
            ).all()
            query_duration_ms = elapsed_ms(query_started)

            custom_fields = self.custom_field_loader.load(self.session, [row.id for row in rows])
            items = [map_work_item_row(row._mapping, custom_fields.get(row.id)) for row in rows]

        logger.info(
            "work_items.list.completed",
            extra={
                "operation": "list",
                "user_id": str(self.ctx.user_id),
                "count": len(items),
                "total": int(total),
                "filters": self._filters_for_log(query),
                "rbac_scope": rbac_scope,
                "query_duration_ms": query_duration_ms,
                "duration_ms": elapsed_ms(started),
            },
        )
        return WorkItemPage(items=items, total=int(total), limit=limit, offset=offset)

    def get_work_items(self, query: WorkItemQuery | None = None) -> list[WorkItemRead]:
        return self.get_work_item_page(query).items

    def create_work_item(self, data: WorkItemCreate) -> WorkItemRead:
        started = time.perf_counter()
        rbac_scope = self.scope.manage_scope_label()
        with track_operation(
            self.session,
            self.ctx,
            "create",
            rbac_scope=rbac_scope,
            work_item_type_id=data.work_item_type_id,
            organization_id=data.organization_id,
            parent_work_item_id=data.parent_work_item_id,
        ):
            self.repository.validate_create_scope(self.ctx, self.scope, organization_id=data.organization_id)

            work_item_type = self.session.scalar(
                select(WorkItemType).where(
                    WorkItemType.id == data.work_item_type_id,
                    WorkItemType.deleted_at.is_(None),
                )
            )
            if work_item_type is None:
                raise NotFoundError("Work item type not found", {"work_item_type_id": str(data.work_item_type_id)})
            if work_item_type.organization_id is not None and work_item_type.organization_id != data.organization_id:
                raise ValidationError(
                    "Work item type belongs to a different organization",
                    {"work_item_type_id": str(data.work_item_type_id), "organization_id": str(data.organization_id)},
                )

            initial_status = self.session.scalar(
                select(WorkItemStatus)
                .where(
                    WorkItemStatus.work_item_type_id == data.work_item_type_id,
                    WorkItemStatus.is_initial.is_(True),
                )
                .order_by(WorkItemStatus.display_order.asc())
                .limit(1)
            )
            if initial_status is None:
                raise NotFoundError(
                    "No initial status found for this work item type",
                    {"work_item_type_id": str(data.work_item_type_id)},
                )

            hierarchy = calculate_hierarchy_fields(
                self.session,
                data.parent_work_item_id,
                self.settings.work_item_max_depth,
            )
            if data.parent_work_item_id is not None and hierarchy.parent_organization_id != data.organization_id:
                raise ValidationError(
                    "Parent work item belongs to a different organization",
                    {
                        "parent_work_item_id": str(data.parent_work_item_id),
                        "organization_id": str(data.organization_id),
                    },
                )

            custom_values = dict(data.custom_fields or {})
            definitions = self._field_definitions(data.work_item_type_id)
            self._validate_custom_field_ids(custom_values, definitions)
            self._validate_required_on_creation(custom_values, definitions)

            work_item_id = uuid.uuid4()
            now = utcnow()
            item = WorkItem(
                id=work_item_id,
                work_item_type_id=data.work_item_type_id,
                organization_id=data.organization_id,
                subject=data.subject,
                description=data.description,
                status_id=initial_status.id,
                priority=data.priority,
                assigned_to=data.assigned_to,
                due_date=data.due_date,
                parent_work_item_id=data.parent_work_item_id,
                root_work_item_id=hierarchy.root_id or work_item_id,
                depth=hierarchy.depth,
                path=build_work_item_path(work_item_id, hierarchy.parent_path),
                created_by=self.ctx.user_id,
                created_at=now,
                updated_at=now,
            )
            self.session.add(item)
            self.session.flush()
            for field_id, value in custom_values.items():
                if value is None:
                    continue
                self.session.add(
                    WorkItemFieldValue(
                        work_item_id=work_item_id,
                        work_item_field_id=field_id,
                        field_value=value,
                        created_at=now,
                        updated_at=now,
                    )
                )
            self.session.commit()

            audit.record(
                actor_user_id=str(self.ctx.user_id),
                entity_type="work_item",
                entity_id=str(work_item_id),
                action="work_item.created",
                before=None,
                after={
                    **_snapshot(item),
                    "organization_id": str(item.organization_id),
                    "work_item_type_id": str(item.work_item_type_id),
                    "parent_work_item_id": _plain(item.parent_work_item_id),
                    "depth": item.depth,
                    "path": item.path,
                },
                correlation_id=self.ctx.correlation_id,
            )

        logger.info(
            "work_items.create.succeeded",
            extra={
                "operation": "create",
                "work_item_id": str(work_item_id),
                "work_item_type_id": str(data.work_item_type_id),
                "organization_id": str(data.organization_id),
                "parent_work_item_id": _plain(data.parent_work_item_id),
                "depth": hierarchy.depth,
                "user_id": str(self.ctx.user_id),
                "rbac_scope": rbac_scope,
                "duration_ms": elapsed_ms(started),
            },
        )
        return self._refetch(work_item_id)

    def update_work_item(self, work_item_id: uuid.UUID, data: WorkItemUpdate) -> WorkItemRead:
        started = time.perf_counter()
        rbac_scope = self.scope.manage_scope_label()
        with track_operation(self.session, self.ctx, "update", rbac_scope=rbac_scope, work_item_id=work_item_id):
            item = self._load_for_write(work_item_id, action="update")

            patch = data.model_dump(exclude_unset=True)
            custom_values = dict(patch.pop("custom_fields", None) or {})
            for key in _NON_NULLABLE_FIELDS:
                if key in patch and patch[key] is None:
                    patch.pop(key)

            if custom_values:
                self._validate_custom_field_ids(custom_values, self._field_definitions(item.work_item_type_id))

            new_status_id = patch.get("status_id")
            if new_status_id is not None and new_status_id != item.status_id:
                target_status = self.session.scalar(
                    select(WorkItemStatus).where(
                        WorkItemStatus.id == new_status_id,
                        WorkItemStatus.work_item_type_id == item.work_item_type_id,
                    )
                )
                if target_status is None:
                    raise NotFoundError(
                        "Status not found for this work item type",
                        {"status_id": str(new_status_id), "work_item_type_id": str(item.work_item_type_id)},
                    )
                self.transition_validator.validate(
                    self.session,
                    item.work_item_type_id,
                    item.status_id,
                    new_status_id,
                )
                if target_status.status_category == "completed":
                    self.completion_validator.validate(
                        self.session,
                        item.id,
                        item.work_item_type_id,
                        pending_values=custom_values,
                    )

            before = _snapshot(item)
            changes = audit.calculate_changes(before, {key: _plain(value) for key, value in patch.items()})

            now = utcnow()
            for key, value in patch.items():
                setattr(item, key, value)
            item.updated_at = now
            self.session.add(item)
            self._write_custom_values(item.id, custom_values, now)
            self.session.commit()

            audit.record(
                actor_user_id=str(self.ctx.user_id),
                entity_type="work_item",
                entity_id=str(work_item_id),
                action="work_item.updated",
                before=before,
                after={
                    **_snapshot(item),
                    "changes": changes,
                    "custom_fields": {str(key): value for key, value in custom_values.items()},
                },
                correlation_id=self.ctx.correlation_id,
            )

        logger.info(
            "work_items.update.succeeded",
            extra={
                "operation": "update",
                "work_item_id": str(work_item_id),
                "user_id": str(self.ctx.user_id),
                "changes": changes,
                "rbac_scope": rbac_scope,
                "duration_ms": elapsed_ms(started),
            },
        )
        return self._refetch(work_item_id)

    def delete_work_item(self, work_item_id: uuid.UUID) -> None:
        started = time.perf_counter()
        rbac_scope = self.scope.manage_scope_label()
        with track_operation(self.session, self.ctx, "delete", rbac_scope=rbac_scope, work_item_id=work_item_id):
            item = self._load_for_write(work_item_id, action="delete")
            before = _snapshot(item)

            now = utcnow()
            item.deleted_at = now
            item.updated_at = now
            self.session.add(item)
            self.session.commit()

            audit.record(
                actor_user_id=str(self.ctx.user_id),
                entity_type="work_item",
                entity_id=str(work_item_id),
                action="work_item.deleted",
                before=before,
                after={"deleted_at": str(now)},
                correlation_id=self.ctx.correlation_id,
            )

        logger.info(
            "work_items.delete.succeeded",
            extra={
                "operation": "delete",
                "work_item_id": str(work_item_id),
                "user_id": str(self.ctx.user_id),
                "rbac_scope": rbac_scope,
                "duration_ms": elapsed_ms(started),
            },
        )

    def _load_for_write(self, work_item_id: uuid.UUID, *, action: str) -> WorkItem:
        if not self.scope.can_read:
            raise AuthorizationError("Access denied: no read permission for work items")

        conditions = build_work_item_conditions(self.scope, self.ctx.user_id)
        item = self.session.scalar(select(WorkItem).where(*conditions, WorkItem.id == work_item_id))
        if item is None:
            raise NotFoundError("Work item not found", {"work_item_id": str(work_item_id)})

        self.repository.validate_read_scope(
            self.ctx,
            self.scope,
            organization_id=item.organization_id,
            created_by=item.created_by,
        )
        self.repository.validate_manage_scope(
            self.ctx,
            self.scope,
            organization_id=item.organization_id,
            created_by=item.created_by,
            action=action,
        )
        return item

    def _refetch(self, work_item_id: uuid.UUID) -> WorkItemRead:
        item = self.get_work_item_by_id(work_item_id)
        if item is None:
            raise NotFoundError("Work item not found", {"work_item_id": str(work_item_id)})
        return item

    def _field_definitions(self, work_item_type_id: uuid.UUID) -> dict[uuid.UUID, WorkItemField]:
        rows = self.session.scalars(
            select(WorkItemField)
            .where(
                WorkItemField.work_item_type_id == work_item_type_id,
                WorkItemField.deleted_at.is_(None),
            )
            .order_by(WorkItemField.display_order.asc())
        ).all()
        return {row.id: row for row in rows}

    @staticmethod
    def _validate_custom_field_ids(values: dict[uuid.UUID, Any], definitions: dict[uuid.UUID, WorkItemField]) -> None:
        unknown = [str(field_id) for field_id in values if field_id not in definitions]
        if unknown:
            raise ValidationError("Unknown custom fields for this work item type", {"unknown_fields": sorted(unknown)})

    @staticmethod
    def _validate_required_on_creation(
        values: dict[uuid.UUID, Any],
        definitions: dict[uuid.UUID, WorkItemField],
    ) -> None:
        missing = [
            definition.field_label
            for definition in definitions.values()
            if definition.is_required_on_creation
            and definition.is_visible
            and (definition.id not in values or field_value_for(definition.field_type, values[definition.id]).is_empty())
        ]
        if missing:
            raise ValidationError(
                f"The following required fields must be filled: {', '.join(missing)}",
                {"missing_fields": missing},
            )

    def _write_custom_values(self, work_item_id: uuid.UUID, values: dict[uuid.UUID, Any], now: datetime) -> None:
        if not values:
            return

        existing = {
            row.work_item_field_id: row
            for row in self.session.scalars(
                select(WorkItemFieldValue).where(
                    WorkItemFieldValue.work_item_id == work_item_id,
                    WorkItemFieldValue.work_item_field_id.in_(list(values)),
                )
            ).all()
        }
        for field_id, value in values.items():
            current = existing.get(field_id)
            if value is None:
                if current is not None:
                    self.session.delete(current)
                continue
            if current is None:
                self.session.add(
                    WorkItemFieldValue(
                        work_item_id=work_item_id,
                        work_item_field_id=field_id,
                        field_value=value,
                        created_at=now,
                        updated_at=now,
                    )
                )
            else:
                current.field_value = value
                current.updated_at = now
                self.session.add(current)

    @staticmethod
    def _filters_for_log(query: WorkItemQuery | None) -> dict[str, Any]:
        if query is None:
            return {}
        return query.model_dump(mode="json", exclude_defaults=True)


@dataclass(slots=True)
class WorkItemsService:
    """Entry point combining CRUD and hierarchy navigation for one caller."""

    core: WorkItemCoreService
    hierarchy: WorkItemHierarchyService

    @property
    def scope(self) -> AccessScope:
        return self.core.scope

    def get_work_item_by_id(self, work_item_id: uuid.UUID) -> WorkItemRead | None:
        return self.core.get_work_item_by_id(work_item_id)

    def get_work_item_count(self, query: WorkItemQuery | None = None) -> int:
        return self.core.get_work_item_count(query)

    def get_work_items(self, query: WorkItemQuery | None = None) -> list[WorkItemRead]:
        return self.core.get_work_items(query)

    def get_work_item_page(self, query: WorkItemQuery | None = None) -> WorkItemPage:
        return self.core.get_work_item_page(query)

    def create_work_item(self, data: WorkItemCreate) -> WorkItemRead:
        return self.core.create_work_item(data)

    def update_work_item(self, work_item_id: uuid.UUID, data: WorkItemUpdate) -> WorkItemRead:
        return self.core.update_work_item(work_item_id, data)

    def delete_work_item(self, work_item_id: uuid.UUID) -> None:
        self.core.delete_work_item(work_item_id)

    def get_work_item_children(self, work_item_id: uuid.UUID) -> list[WorkItemRead]:
        return self.hierarchy.get_work_item_children(work_item_id)

    def get_work_item_ancestors(self, work_item_id: uuid.UUID) -> list[WorkItemRead]:
        return self.hierarchy.get_work_item_ancestors(work_item_id)


def create_work_items_service(
    session: Session,
    ctx: AuthContext,
    settings: Settings | None = None,
) -> WorkItemsService:
    settings = settings or get_settings()
    scope = resolve_access_scope(ctx, "work_items")
    loader = CustomFieldLoader(settings.slow_query_threshold_ms)
    core = WorkItemCoreService(
        session=session,
        ctx=ctx,
        scope=scope,
        settings=settings,
        custom_field_loader=loader,
        transition_validator=StatusTransitionValidator(resolve_transition_policy(settings.work_item_transition_policy)),
    )
    hierarchy = WorkItemHierarchyService(session=session, ctx=ctx, scope=scope, custom_field_loader=loader)
    return WorkItemsService(core=core, hierarchy=hierarchy)
