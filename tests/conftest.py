from __future__ import annotations

import uuid
from collections.abc import Callable, Generator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from workhub import audit
from workhub.core.config import get_settings
from workhub.core.database import Base
from workhub.models.directory import Organization, User
from workhub.platform.security.context import AuthContext
from workhub.work_items.models import (
    WorkItem,
    WorkItemField,
    WorkItemStatus,
    WorkItemType,
)


InsertItem = Callable[..., WorkItem]
MakeCtx = Callable[..., AuthContext]


@dataclass
class Seed:
    org_a: Organization
    org_b: Organization
    alice: User
    bob: User
    carol: User
    task_type: WorkItemType
    open_status: WorkItemStatus
    in_progress_status: WorkItemStatus
    done_status: WorkItemStatus
    cancelled_status: WorkItemStatus
    resolution_field: WorkItemField
    estimate_field: WorkItemField


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def setup_env() -> Generator[None, None, None]:
    get_settings.cache_clear()
    audit.audit_entries.clear()
    yield
    get_settings.cache_clear()
    audit.audit_entries.clear()


@pytest.fixture()
def seed(db_session: Session) -> Seed:
    org_a = Organization(name="Acme", slug="acme")
    org_b = Organization(name="Globex", slug="globex")
    alice = User(email="alice@example.com", first_name="Alice", last_name="Adams")
    bob = User(email="bob@example.com", first_name="Bob", last_name="Brown")
    carol = User(email="carol@example.com", first_name="Carol", last_name=None)
    task_type = WorkItemType(name="Task", organization_id=None)
    db_session.add_all([org_a, org_b, alice, bob, carol, task_type])
    db_session.flush()

    open_status = WorkItemStatus(
        work_item_type_id=task_type.id,
        status_name="Open",
        status_category="backlog",
        is_initial=True,
        display_order=1,
    )
    in_progress_status = WorkItemStatus(
        work_item_type_id=task_type.id,
        status_name="In Progress",
        status_category="in_progress",
        display_order=2,
    )
    done_status = WorkItemStatus(
        work_item_type_id=task_type.id,
        status_name="Done",
        status_category="completed",
        is_final=True,
        display_order=3,
    )
    cancelled_status = WorkItemStatus(
        work_item_type_id=task_type.id,
        status_name="Cancelled",
        status_category="cancelled",
        is_final=True,
        display_order=4,
    )
    resolution_field = WorkItemField(
        work_item_type_id=task_type.id,
        field_name="resolution",
        field_label="Resolution",
        field_type="text",
        is_required_to_complete=True,
        display_order=1,
    )
    estimate_field = WorkItemField(
        work_item_type_id=task_type.id,
        field_name="estimate",
        field_label="Estimate",
        field_type="number",
        display_order=2,
    )
    db_session.add_all(
        [open_status, in_progress_status, done_status, cancelled_status, resolution_field, estimate_field]
    )
    db_session.commit()

    return Seed(
        org_a=org_a,
        org_b=org_b,
        alice=alice,
        bob=bob,
        carol=carol,
        task_type=task_type,
        open_status=open_status,
        in_progress_status=in_progress_status,
        done_status=done_status,
        cancelled_status=cancelled_status,
        resolution_field=resolution_field,
        estimate_field=estimate_field,
    )


@pytest.fixture()
def make_ctx() -> MakeCtx:
    def _make(
        user: User,
        permissions: list[str] | None = None,
        organizations: list[Organization] | None = None,
        *,
        is_super_admin: bool = False,
    ) -> AuthContext:
        return AuthContext(
            user_id=user.id,
            correlation_id="corr-test",
            is_super_admin=is_super_admin,
            permissions=list(permissions or []),
            organization_ids=[org.id for org in organizations or []],
        )

    return _make


@pytest.fixture()
def insert_item(db_session: Session, seed: Seed) -> InsertItem:
    """Insert a work item row directly, bypassing service authorization."""

    counter = {"value": 0}

    def _insert(
        *,
        organization: Organization | None = None,
        created_by: User | None = None,
        subject: str = "Item",
        parent: WorkItem | None = None,
        status: WorkItemStatus | None = None,
        priority: str = "medium",
        assigned_to: User | None = None,
        description: str | None = None,
        deleted: bool = False,
    ) -> WorkItem:
        counter["value"] += 1
        item_id = uuid.uuid4()
        created_at = datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=counter["value"])
        depth = 0 if parent is None else parent.depth + 1
        path = f"/{item_id}" if parent is None else f"{parent.path}/{item_id}"
        root_id = item_id if parent is None else (parent.root_work_item_id or parent.id)
        item = WorkItem(
            id=item_id,
            work_item_type_id=seed.task_type.id,
            organization_id=(organization or seed.org_a).id,
            subject=subject,
            description=description,
            status_id=(status or seed.open_status).id,
            priority=priority,
            assigned_to=assigned_to.id if assigned_to is not None else None,
            parent_work_item_id=parent.id if parent is not None else None,
            root_work_item_id=root_id,
            depth=depth,
            path=path,
            created_by=(created_by or seed.alice).id,
            created_at=created_at,
            updated_at=created_at,
            deleted_at=created_at if deleted else None,
        )
        db_session.add(item)
        db_session.commit()
        return item

    return _insert
