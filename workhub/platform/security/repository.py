from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy.sql.elements import ColumnElement

from workhub.platform.security.context import AuthContext
from workhub.platform.security.rls import (
    scope_read_condition,
    validate_create_scope,
    validate_manage_scope,
    validate_read_scope,
)
from workhub.platform.security.scope import AccessScope


class BaseRepository:
    resource = ""
    model: Any = None
    organization_field = "organization_id"
    owner_field = "created_by"

    def scope_condition(self, scope: AccessScope, user_id: uuid.UUID) -> ColumnElement[bool] | None:
        return scope_read_condition(
            scope,
            user_id,
            organization_column=getattr(self.model, self.organization_field),
            owner_column=getattr(self.model, self.owner_field),
        )

    def validate_read_scope(
        self,
        ctx: AuthContext,
        scope: AccessScope,
        *,
        organization_id: uuid.UUID | None,
        created_by: uuid.UUID | None,
        action: str = "read",
    ) -> None:
        validate_read_scope(
            self.resource,
            ctx,
            scope,
            organization_id=organization_id,
            created_by=created_by,
            action=action,
        )

    def validate_manage_scope(
        self,
        ctx: AuthContext,
        scope: AccessScope,
        *,
        organization_id: uuid.UUID | None,
        created_by: uuid.UUID | None,
        action: str = "update",
    ) -> None:
        validate_manage_scope(
            self.resource,
            ctx,
            scope,
            organization_id=organization_id,
            created_by=created_by,
            action=action,
        )

    def validate_create_scope(self, ctx: AuthContext, scope: AccessScope, *, organization_id: uuid.UUID) -> None:
        validate_create_scope(self.resource, ctx, scope, organization_id=organization_id)
