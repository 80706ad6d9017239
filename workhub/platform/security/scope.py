from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import StrEnum

from workhub.platform.security.context import AuthContext


class ScopeLevel(StrEnum):
    ALL = "all"
    ORGANIZATION = "organization"
    OWN = "own"


@dataclass(frozen=True, slots=True)
class AccessScope:
    """Resolved read/manage reach of a caller over one resource.

    Computed once per request from the caller's permission grants. Anything
    that filters or authorizes work items consults this value instead of
    re-evaluating permissions.
    """

    can_read_all: bool = False
    can_read_organization: bool = False
    can_read_own: bool = False
    can_manage_all: bool = False
    can_manage_organization: bool = False
    can_manage_own: bool = False
    accessible_organization_ids: tuple[uuid.UUID, ...] = ()

    @property
    def can_read(self) -> bool:
        return self.can_read_all or self.can_read_organization or self.can_read_own

    @property
    def can_manage(self) -> bool:
        return self.can_manage_all or self.can_manage_organization or self.can_manage_own

    def read_scope_label(self) -> str:
        if self.can_read_all:
            return ScopeLevel.ALL.value
        if self.can_read_organization:
            return ScopeLevel.ORGANIZATION.value
        if self.can_read_own:
            return ScopeLevel.OWN.value
        return "none"

    def manage_scope_label(self) -> str:
        if self.can_manage_all:
            return ScopeLevel.ALL.value
        if self.can_manage_organization:
            return ScopeLevel.ORGANIZATION.value
        if self.can_manage_own:
            return ScopeLevel.OWN.value
        return "none"

    def has_organization(self, organization_id: uuid.UUID | None) -> bool:
        return organization_id is not None and organization_id in self.accessible_organization_ids


def permission_matches(grant: str, required: str) -> bool:
    if grant in {"*", required}:
        return True

    if grant.endswith(".*"):
        return required.startswith(grant[:-1])

    return False


def has_permission(ctx: AuthContext, required: str) -> bool:
    return any(permission_matches(grant, required) for grant in ctx.permissions)


def resolve_access_scope(ctx: AuthContext, resource: str = "work_items") -> AccessScope:
    cache_key = f"scope.{resource}"
    cached = ctx._cache.get(cache_key)
    if isinstance(cached, AccessScope):
        return cached

    organization_ids = tuple(dict.fromkeys(ctx.organization_ids))
    if ctx.is_super_admin:
        scope = AccessScope(
            can_read_all=True,
            can_read_organization=True,
            can_read_own=True,
            can_manage_all=True,
            can_manage_organization=True,
            can_manage_own=True,
            accessible_organization_ids=organization_ids,
        )
    else:
        scope = AccessScope(
            can_read_all=has_permission(ctx, f"{resource}.read.{ScopeLevel.ALL}"),
            can_read_organization=has_permission(ctx, f"{resource}.read.{ScopeLevel.ORGANIZATION}"),
            can_read_own=has_permission(ctx, f"{resource}.read.{ScopeLevel.OWN}"),
            can_manage_all=has_permission(ctx, f"{resource}.manage.{ScopeLevel.ALL}"),
            can_manage_organization=has_permission(ctx, f"{resource}.manage.{ScopeLevel.ORGANIZATION}"),
            can_manage_own=has_permission(ctx, f"{resource}.manage.{ScopeLevel.OWN}"),
            accessible_organization_ids=organization_ids,
        )

    ctx._cache[cache_key] = scope
    return scope
