from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import false
from sqlalchemy.sql.elements import ColumnElement

from workhub import audit
from workhub.metrics import observe_scope_denied_read, observe_scope_denied_write
from workhub.platform.security.context import AuthContext
from workhub.platform.security.errors import AuthorizationError
from workhub.platform.security.scope import AccessScope


def scope_read_condition(
    scope: AccessScope,
    user_id: uuid.UUID,
    *,
    organization_column: Any,
    owner_column: Any,
) -> ColumnElement[bool] | None:
    """Row predicate limiting a query to what ``scope`` may read.

    Returns ``None`` when no restriction applies. Only the broadest granted
    tier applies: an organization grant with no accessible organizations
    matches nothing, even when an own grant is also held.
    """

    if scope.can_read_all:
        return None
    if scope.can_read_organization:
        if not scope.accessible_organization_ids:
            return false()
        return organization_column.in_(scope.accessible_organization_ids)
    if scope.can_read_own:
        return owner_column == user_id
    return false()


def _tier_allows(
    *,
    all_tier: bool,
    organization_tier: bool,
    own_tier: bool,
    scope: AccessScope,
    organization_id: uuid.UUID | None,
    created_by: uuid.UUID | None,
    user_id: uuid.UUID,
) -> bool:
    if all_tier:
        return True
    if organization_tier:
        return scope.has_organization(organization_id)
    if own_tier:
        return created_by is not None and created_by == user_id
    return False


def validate_read_scope(
    resource: str,
    ctx: AuthContext,
    scope: AccessScope,
    *,
    organization_id: uuid.UUID | None,
    created_by: uuid.UUID | None,
    action: str = "read",
) -> None:
    """Validate record-level read scope for records loaded by id."""

    if _tier_allows(
        all_tier=scope.can_read_all,
        organization_tier=scope.can_read_organization,
        own_tier=scope.can_read_own,
        scope=scope,
        organization_id=organization_id,
        created_by=created_by,
        user_id=ctx.user_id,
    ):
        return

    _emit_scope_denied(
        resource=resource,
        action=action,
        scope_type=scope.read_scope_label(),
        scope_value=str(organization_id),
        ctx=ctx,
        is_read=True,
    )
    raise AuthorizationError(f"Access denied: work item is outside the caller's {action} scope")


def validate_manage_scope(
    resource: str,
    ctx: AuthContext,
    scope: AccessScope,
    *,
    organization_id: uuid.UUID | None,
    created_by: uuid.UUID | None,
    action: str = "update",
) -> None:
    """Validate that an existing record may be changed by the caller."""

    if _tier_allows(
        all_tier=scope.can_manage_all,
        organization_tier=scope.can_manage_organization,
        own_tier=scope.can_manage_own,
        scope=scope,
        organization_id=organization_id,
        created_by=created_by,
        user_id=ctx.user_id,
    ):
        return

    _emit_scope_denied(
        resource=resource,
        action=action,
        scope_type=scope.manage_scope_label(),
        scope_value=str(organization_id),
        ctx=ctx,
        is_read=False,
    )
    raise AuthorizationError(f"Access denied: insufficient permissions to {action} this work item")


def validate_create_scope(
    resource: str,
    ctx: AuthContext,
    scope: AccessScope,
    *,
    organization_id: uuid.UUID,
) -> None:
    """Validate that the caller may create records in ``organization_id``.

    Own-only manage grants cannot create.
    """

    if scope.can_manage_all:
        return
    if scope.can_manage_organization and scope.has_organization(organization_id):
        return

    _emit_scope_denied(
        resource=resource,
        action="create",
        scope_type=scope.manage_scope_label(),
        scope_value=str(organization_id),
        ctx=ctx,
        is_read=False,
    )
    raise AuthorizationError("Access denied: insufficient permissions to create work items in this organization")


def _emit_scope_denied(
    *,
    resource: str,
    action: str,
    scope_type: str,
    scope_value: str,
    ctx: AuthContext,
    is_read: bool,
) -> None:
    if is_read:
        observe_scope_denied_read(resource=resource, scope_type=scope_type)
    else:
        observe_scope_denied_write(resource=resource, scope_type=scope_type)

    audit.record(
        actor_user_id=str(ctx.user_id),
        entity_type="security.scope",
        entity_id="scope",
        action="scope.denied",
        before=None,
        after={
            "resource": resource,
            "action": action,
            "scope_type": scope_type,
            "scope_value": scope_value,
            "correlation_id": ctx.correlation_id,
            "user_id": str(ctx.user_id),
        },
        correlation_id=ctx.correlation_id,
    )
