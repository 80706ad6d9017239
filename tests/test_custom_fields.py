from __future__ import annotations

import logging
import uuid
from typing import Any

import pytest
from sqlalchemy import event
from sqlalchemy.orm import Session

from tests.conftest import InsertItem, Seed
from workhub.work_items.custom_fields import CustomFieldLoader
from workhub.work_items.fields import CheckboxValue, MultiSelectValue, NumberValue, TextValue, field_value_for
from workhub.work_items.models import WorkItemFieldValue


@pytest.mark.parametrize(
    ("field_type", "raw", "expected"),
    [
        ("text", "   ", True),
        ("text", "done", False),
        ("dropdown", None, True),
        ("user_picker", "", True),
        ("email", "a@b.c", False),
        ("date", "", True),
        ("date", "2026-01-01", False),
        ("datetime", None, True),
        ("number", 0, False),
        ("number", "", True),
        ("currency", None, True),
        ("percentage", 12.5, False),
        ("checkbox", None, False),
        ("checkbox", False, False),
        ("multi_select", [], True),
        ("multi_select", ["a"], False),
    ],
)
def test_field_value_emptiness_depends_on_type(field_type: str, raw: object, expected: bool) -> None:
    assert field_value_for(field_type, raw).is_empty() is expected


def test_field_value_for_picks_variant_class() -> None:
    assert isinstance(field_value_for("rich_text", "x"), TextValue)
    assert isinstance(field_value_for("currency", 1), NumberValue)
    assert isinstance(field_value_for("checkbox", True), CheckboxValue)
    assert isinstance(field_value_for("multi_select", []), MultiSelectValue)
    assert isinstance(field_value_for("something_new", "x"), TextValue)


def test_text_value_stringifies_non_strings() -> None:
    assert TextValue(42).is_empty() is False


def test_loader_short_circuits_on_empty_input(db_session: Session) -> None:
    statements: list[str] = []

    def capture(conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: bool) -> None:
        statements.append(statement)

    engine = db_session.get_bind()
    event.listen(engine, "before_cursor_execute", capture)
    try:
        assert CustomFieldLoader().load(db_session, []) == {}
    finally:
        event.remove(engine, "before_cursor_execute", capture)

    assert statements == []


def test_loader_groups_values_by_work_item(db_session: Session, seed: Seed, insert_item: InsertItem) -> None:
    first = insert_item()
    second = insert_item()
    third = insert_item()
    db_session.add_all(
        [
            WorkItemFieldValue(work_item_id=first.id, work_item_field_id=seed.resolution_field.id, field_value="fixed"),
            WorkItemFieldValue(work_item_id=first.id, work_item_field_id=seed.estimate_field.id, field_value=3),
            WorkItemFieldValue(work_item_id=second.id, work_item_field_id=seed.estimate_field.id, field_value=0),
        ]
    )
    db_session.commit()

    values = CustomFieldLoader().load(db_session, [first.id, second.id, third.id, uuid.uuid4()])

    assert values == {
        first.id: {str(seed.resolution_field.id): "fixed", str(seed.estimate_field.id): 3},
        second.id: {str(seed.estimate_field.id): 0},
    }


def test_loader_reports_slow_queries_without_failing(
    db_session: Session,
    seed: Seed,
    insert_item: InsertItem,
    caplog: pytest.LogCaptureFixture,
) -> None:
    item = insert_item()
    caplog.set_level(logging.WARNING, logger="workhub.work_items.custom_fields")

    values = CustomFieldLoader(slow_query_threshold_ms=-1).load(db_session, [item.id])

    assert values == {}
    slow = [record for record in caplog.records if record.getMessage() == "work_items.custom_fields.slow_query"]
    assert len(slow) == 1
    assert slow[0].slow is True
    assert slow[0].count == 1
