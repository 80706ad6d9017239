from __future__ import annotations

import json
import logging
import uuid
from collections.abc import Generator

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import Session

from tests.conftest import InsertItem, Seed
from workhub.core.config import get_settings
from workhub.core.database import get_db
from workhub.logging import JsonLogFormatter
from workhub.main import app
from workhub.middleware.correlation_id import resolve_correlation_id
from workhub.otel import work_item_id_from_path, work_item_route_operation
from workhub.models.directory import User


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def _bearer(user: User, roles: list[str]) -> dict[str, str]:
    settings = get_settings()
    token = jwt.encode({"sub": str(user.id), "roles": roles}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return {"Authorization": f"Bearer {token}"}


def test_logs_include_correlation_id_for_http(client: TestClient, seed: Seed, caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO)

    headers = {**_bearer(seed.alice, ["work_items.read.all"]), "X-Correlation-Id": "abc-123"}
    missing_id = uuid.uuid4()
    response = client.get(f"/work-items/{missing_id}", headers=headers)
    assert response.status_code == 404

    records = [record for record in caplog.records if record.name == "workhub.request" and record.getMessage() == "http.request"]
    assert records
    assert any(
        getattr(record, "correlation_id", None) == "abc-123"
        and getattr(record, "method", None) == "GET"
        and getattr(record, "path", None) == "/work-items/{id}"
        and getattr(record, "status_code", None) == 404
        and isinstance(getattr(record, "duration_ms", None), float)
        and getattr(record, "operation", None) == "get"
        and getattr(record, "work_item_id", None) == str(missing_id)
        for record in records
    )

    lookups = [record for record in caplog.records if record.getMessage() == "work_items.read.not_found"]
    assert lookups
    assert lookups[0].found is False
    assert lookups[0].rbac_scope == "all"


def test_failed_operation_logs_context(
    client: TestClient,
    seed: Seed,
    insert_item: InsertItem,
    caplog: pytest.LogCaptureFixture,
) -> None:
    caplog.set_level(logging.INFO)
    item = insert_item(created_by=seed.bob)

    headers = {
        **_bearer(seed.alice, ["work_items.read.all", "work_items.manage.own"]),
        "X-Correlation-Id": "denied-1",
    }
    response = client.patch(f"/work-items/{item.id}", json={"subject": "x"}, headers=headers)
    assert response.status_code == 403

    failures = [record for record in caplog.records if record.getMessage() == "work_items.update.failed"]
    assert len(failures) == 1
    assert failures[0].levelno == logging.WARNING
    assert failures[0].work_item_id == str(item.id)
    assert failures[0].rbac_scope == "own"
    assert failures[0].correlation_id == "denied-1"


def test_json_formatter_keeps_known_fields_only() -> None:
    record = logging.makeLogRecord(
        {
            "name": "workhub.work_items",
            "levelname": "WARNING",
            "msg": "work_items.update.failed",
            "operation": "update",
            "secret_token": "do-not-log",
            "error": "x" * 800,
            "correlation_id": "fmt-1",
        }
    )

    payload = json.loads(JsonLogFormatter().format(record))

    assert payload["msg"] == "work_items.update.failed"
    assert payload["correlation_id"] == "fmt-1"
    assert payload["fields"]["operation"] == "update"
    assert "secret_token" not in payload["fields"]
    assert len(payload["fields"]["error"]) == 500


def test_correlation_id_resolution_logs_rejections(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.WARNING)

    assert resolve_correlation_id("wi-42:retry.1") == "wi-42:retry.1"
    assert resolve_correlation_id(None) != resolve_correlation_id(None)
    replaced = resolve_correlation_id("x" * 129)

    assert uuid.UUID(replaced)
    assert [record.getMessage() for record in caplog.records] == ["correlation_id.rejected"]


def test_work_item_routes_are_named_for_spans() -> None:
    item_id = uuid.uuid4()

    assert work_item_route_operation("POST", "/work-items") == "create"
    assert work_item_route_operation("GET", "/work-items/count") == "count"
    assert work_item_route_operation("PATCH", f"/work-items/{item_id}") == "update"
    assert work_item_route_operation("GET", f"/work-items/{item_id}/ancestors") == "ancestors"
    assert work_item_route_operation("GET", "/health") is None
    assert work_item_id_from_path(f"/work-items/{str(item_id).upper()}") == str(item_id)
    assert work_item_id_from_path("/work-items/not-a-uuid") is None
