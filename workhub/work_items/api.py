from __future__ import annotations

import uuid
from datetime import datetime

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from workhub.context import get_correlation_id
from workhub.core.auth import AuthUser, get_current_user
from workhub.core.database import get_db
from workhub.errors import ServiceError
from workhub.platform.security.context import AuthContext
from workhub.work_items.schemas import (
    SortField,
    SortOrder,
    StatusCategory,
    WorkItemCreate,
    WorkItemPage,
    WorkItemPriority,
    WorkItemQuery,
    WorkItemRead,
    WorkItemUpdate,
)
from workhub.work_items.service import WorkItemsService, create_work_items_service


router = APIRouter(prefix="/work-items", tags=["work-items"])


def _parse_uuid_list(raw: str | None) -> list[uuid.UUID]:
    if raw is None:
        return []
    try:
        return [uuid.UUID(item.strip()) for item in raw.split(",") if item.strip()]
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="invalid x-organization-ids header")


def get_work_items_auth_context(
    request: Request,
    auth_user: AuthUser = Depends(get_current_user),
    organization_ids_header: str | None = Header(default=None, alias="x-organization-ids"),
) -> AuthContext:
    try:
        user_id = uuid.UUID(auth_user.sub)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="authentication required")

    correlation_id = get_correlation_id() or getattr(request.state, "correlation_id", None)
    roles = [str(item) for item in auth_user.roles]
    normalized = {item.lower() for item in roles}

    return AuthContext(
        user_id=user_id,
        correlation_id=correlation_id,
        is_super_admin=("admin" in normalized or "system.admin" in normalized),
        permissions=roles,
        organization_ids=_parse_uuid_list(organization_ids_header),
    )


def get_work_items_service(
    db: Session = Depends(get_db),
    ctx: AuthContext = Depends(get_work_items_auth_context),
) -> WorkItemsService:
    return create_work_items_service(db, ctx)


def get_work_item_query(
    work_item_type_id: uuid.UUID | None = Query(default=None),
    organization_id: uuid.UUID | None = Query(default=None),
    status_id: uuid.UUID | None = Query(default=None),
    status_category: StatusCategory | None = Query(default=None),
    priority: WorkItemPriority | None = Query(default=None),
    assigned_to: uuid.UUID | None = Query(default=None),
    created_by: uuid.UUID | None = Query(default=None),
    search: str | None = Query(default=None, max_length=500),
    created_after: datetime | None = Query(default=None),
    created_before: datetime | None = Query(default=None),
    root_only: bool = Query(default=False),
    limit: int | None = Query(default=None, ge=1),
    offset: int = Query(default=0, ge=0),
    sort_by: SortField = Query(default="created_at"),
    sort_order: SortOrder = Query(default="desc"),
) -> WorkItemQuery:
    return WorkItemQuery(
        work_item_type_id=work_item_type_id,
        organization_id=organization_id,
        status_id=status_id,
        status_category=status_category,
        priority=priority,
        assigned_to=assigned_to,
        created_by=created_by,
        search=search,
        created_after=created_after,
        created_before=created_before,
        root_only=root_only,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
    )


def _to_http(exc: ServiceError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_detail())


@router.get("", response_model=WorkItemPage)
def list_work_items(
    query: WorkItemQuery = Depends(get_work_item_query),
    service: WorkItemsService = Depends(get_work_items_service),
) -> WorkItemPage:
    try:
        return service.get_work_item_page(query)
    except ServiceError as exc:
        raise _to_http(exc)


@router.get("/count")
def count_work_items(
    query: WorkItemQuery = Depends(get_work_item_query),
    service: WorkItemsService = Depends(get_work_items_service),
) -> dict[str, int]:
    try:
        return {"count": service.get_work_item_count(query)}
    except ServiceError as exc:
        raise _to_http(exc)


@router.post("", response_model=WorkItemRead, status_code=status.HTTP_201_CREATED)
def create_work_item(
    payload: WorkItemCreate,
    service: WorkItemsService = Depends(get_work_items_service),
) -> WorkItemRead:
    try:
        return service.create_work_item(payload)
    except ServiceError as exc:
        raise _to_http(exc)


@router.get("/{work_item_id}", response_model=WorkItemRead)
def get_work_item(
    work_item_id: uuid.UUID,
    service: WorkItemsService = Depends(get_work_items_service),
) -> WorkItemRead:
    try:
        item = service.get_work_item_by_id(work_item_id)
    except ServiceError as exc:
        raise _to_http(exc)
    if item is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Work item not found")
    return item


@router.patch("/{work_item_id}", response_model=WorkItemRead)
def update_work_item(
    work_item_id: uuid.UUID,
    payload: WorkItemUpdate,
    service: WorkItemsService = Depends(get_work_items_service),
) -> WorkItemRead:
    try:
        return service.update_work_item(work_item_id, payload)
    except ServiceError as exc:
        raise _to_http(exc)


@router.delete("/{work_item_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_work_item(
    work_item_id: uuid.UUID,
    service: WorkItemsService = Depends(get_work_items_service),
) -> Response:
    try:
        service.delete_work_item(work_item_id)
    except ServiceError as exc:
        raise _to_http(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/{work_item_id}/children", response_model=list[WorkItemRead])
def list_work_item_children(
    work_item_id: uuid.UUID,
    service: WorkItemsService = Depends(get_work_items_service),
) -> list[WorkItemRead]:
    try:
        return service.get_work_item_children(work_item_id)
    except ServiceError as exc:
        raise _to_http(exc)


@router.get("/{work_item_id}/ancestors", response_model=list[WorkItemRead])
def list_work_item_ancestors(
    work_item_id: uuid.UUID,
    service: WorkItemsService = Depends(get_work_items_service),
) -> list[WorkItemRead]:
    try:
        return service.get_work_item_ancestors(work_item_id)
    except ServiceError as exc:
        raise _to_http(exc)
