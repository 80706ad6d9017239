from __future__ import annotations

import uuid

import pytest

from workhub import audit
from workhub.platform.security.context import AuthContext
from workhub.platform.security.errors import AuthorizationError
from workhub.platform.security.rls import validate_create_scope, validate_manage_scope, validate_read_scope
from workhub.platform.security.scope import AccessScope, permission_matches, resolve_access_scope


def test_resolve_access_scope_maps_each_permission_tier() -> None:
    org_id = uuid.uuid4()
    ctx = AuthContext(
        user_id=uuid.uuid4(),
        permissions=["work_items.read.organization", "work_items.manage.own"],
        organization_ids=[org_id],
    )

    scope = resolve_access_scope(ctx)

    assert scope.can_read_organization is True
    assert scope.can_read_all is False
    assert scope.can_read_own is False
    assert scope.can_manage_own is True
    assert scope.can_manage_organization is False
    assert scope.accessible_organization_ids == (org_id,)
    assert scope.read_scope_label() == "organization"
    assert scope.manage_scope_label() == "own"


def test_resolve_access_scope_supports_wildcard_grants() -> None:
    ctx = AuthContext(user_id=uuid.uuid4(), permissions=["work_items.read.*"])

    scope = resolve_access_scope(ctx)

    assert scope.can_read_all and scope.can_read_organization and scope.can_read_own
    assert scope.can_manage is False

    everything = resolve_access_scope(AuthContext(user_id=uuid.uuid4(), permissions=["*"]))
    assert everything.can_read_all and everything.can_manage_all


def test_super_admin_gets_full_scope_without_grants() -> None:
    scope = resolve_access_scope(AuthContext(user_id=uuid.uuid4(), is_super_admin=True))

    assert scope.can_read_all is True
    assert scope.can_manage_all is True


def test_no_grants_resolves_to_empty_scope() -> None:
    scope = resolve_access_scope(AuthContext(user_id=uuid.uuid4(), permissions=["crm.accounts.read"]))

    assert scope == AccessScope()
    assert scope.can_read is False
    assert scope.read_scope_label() == "none"


def test_scope_is_resolved_once_per_context() -> None:
    ctx = AuthContext(user_id=uuid.uuid4(), permissions=["work_items.read.own"])

    first = resolve_access_scope(ctx)
    ctx.permissions.append("work_items.read.all")
    second = resolve_access_scope(ctx)

    assert first is second
    assert second.can_read_all is False


def test_permission_matches_prefix_wildcards_only_on_segment_boundary() -> None:
    assert permission_matches("work_items.*", "work_items.manage.all")
    assert permission_matches("work_items.read.own", "work_items.read.own")
    assert not permission_matches("work_items.read.own", "work_items.read.all")
    assert not permission_matches("work_item.*", "work_items.read.all")


def test_validate_read_scope_checks_organization_and_ownership() -> None:
    user_id = uuid.uuid4()
    org_id = uuid.uuid4()
    ctx = AuthContext(user_id=user_id, correlation_id="corr-1")
    org_scope = AccessScope(can_read_organization=True, accessible_organization_ids=(org_id,))
    own_scope = AccessScope(can_read_own=True)

    validate_read_scope("work_items", ctx, org_scope, organization_id=org_id, created_by=uuid.uuid4())
    validate_read_scope("work_items", ctx, own_scope, organization_id=uuid.uuid4(), created_by=user_id)

    with pytest.raises(AuthorizationError):
        validate_read_scope("work_items", ctx, org_scope, organization_id=uuid.uuid4(), created_by=user_id)

    denied = [entry for entry in audit.audit_entries if entry["action"] == "scope.denied"]
    assert len(denied) == 1
    assert denied[0]["entity_type"] == "security.scope"
    assert denied[0]["after"]["scope_type"] == "organization"
    assert denied[0]["correlation_id"] == "corr-1"


def test_validate_manage_scope_rejects_foreign_rows_for_own_scope() -> None:
    user_id = uuid.uuid4()
    ctx = AuthContext(user_id=user_id)
    scope = AccessScope(can_read_all=True, can_manage_own=True)

    validate_manage_scope("work_items", ctx, scope, organization_id=uuid.uuid4(), created_by=user_id)

    with pytest.raises(AuthorizationError) as exc_info:
        validate_manage_scope(
            "work_items",
            ctx,
            scope,
            organization_id=uuid.uuid4(),
            created_by=uuid.uuid4(),
            action="delete",
        )
    assert exc_info.value.status_code == 403
    assert "delete" in str(exc_info.value)


def test_validate_create_scope_requires_all_or_matching_organization() -> None:
    org_id = uuid.uuid4()
    ctx = AuthContext(user_id=uuid.uuid4())

    validate_create_scope("work_items", ctx, AccessScope(can_manage_all=True), organization_id=org_id)
    validate_create_scope(
        "work_items",
        ctx,
        AccessScope(can_manage_organization=True, accessible_organization_ids=(org_id,)),
        organization_id=org_id,
    )

    with pytest.raises(AuthorizationError):
        validate_create_scope(
            "work_items",
            ctx,
            AccessScope(can_manage_organization=True, accessible_organization_ids=(org_id,)),
            organization_id=uuid.uuid4(),
        )

    with pytest.raises(AuthorizationError):
        validate_create_scope("work_items", ctx, AccessScope(can_manage_own=True), organization_id=org_id)


def test_record_checks_use_the_broadest_granted_tier_only() -> None:
    user_id = uuid.uuid4()
    org_id = uuid.uuid4()
    other_org_id = uuid.uuid4()
    ctx = AuthContext(user_id=user_id)
    combined = AccessScope(
        can_read_organization=True,
        can_read_own=True,
        can_manage_organization=True,
        can_manage_own=True,
        accessible_organization_ids=(org_id,),
    )

    validate_read_scope("work_items", ctx, combined, organization_id=org_id, created_by=uuid.uuid4())
    validate_manage_scope("work_items", ctx, combined, organization_id=org_id, created_by=uuid.uuid4())

    with pytest.raises(AuthorizationError):
        validate_read_scope("work_items", ctx, combined, organization_id=other_org_id, created_by=user_id)
    with pytest.raises(AuthorizationError):
        validate_manage_scope("work_items", ctx, combined, organization_id=other_org_id, created_by=user_id)

    no_organizations = AccessScope(can_read_organization=True, can_read_own=True)
    with pytest.raises(AuthorizationError):
        validate_read_scope("work_items", ctx, no_organizations, organization_id=org_id, created_by=user_id)

    denied = [entry for entry in audit.audit_entries if entry["action"] == "scope.denied"]
    assert [entry["after"]["scope_type"] for entry in denied] == ["organization", "organization", "organization"]
