from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from workhub.errors import ValidationError
from workhub.metrics import observe_completion_block
from workhub.work_items.fields import field_value_for
from workhub.work_items.models import WorkItemField, WorkItemFieldValue


logger = logging.getLogger("workhub.work_items.completion")


@dataclass(slots=True)
class CompletionValidator:
    def validate(
        self,
        session: Session,
        work_item_id: uuid.UUID,
        work_item_type_id: uuid.UUID,
        pending_values: Mapping[uuid.UUID, Any] | None = None,
    ) -> None:
        """Reject completion while any visible required-to-complete field is empty.

        ``pending_values`` are values written by the same update; they take
        precedence over what is stored. All offending fields are reported together.
        """

        required_fields = session.scalars(
            select(WorkItemField)
            .where(
                WorkItemField.work_item_type_id == work_item_type_id,
                WorkItemField.is_required_to_complete.is_(True),
                WorkItemField.is_visible.is_(True),
                WorkItemField.deleted_at.is_(None),
            )
            .order_by(WorkItemField.display_order.asc(), WorkItemField.field_label.asc())
        ).all()
        if not required_fields:
            return

        stored = session.execute(
            select(WorkItemFieldValue.work_item_field_id, WorkItemFieldValue.field_value).where(
                WorkItemFieldValue.work_item_id == work_item_id,
                WorkItemFieldValue.work_item_field_id.in_([item.id for item in required_fields]),
            )
        ).all()
        values: dict[uuid.UUID, Any] = {row.work_item_field_id: row.field_value for row in stored}
        if pending_values:
            values.update(pending_values)

        missing: list[WorkItemField] = []
        for definition in required_fields:
            if definition.id not in values:
                missing.append(definition)
                continue
            if field_value_for(definition.field_type, values[definition.id]).is_empty():
                missing.append(definition)

        if not missing:
            return

        labels = [definition.field_label for definition in missing]
        observe_completion_block()
        logger.info(
            "work_items.completion.blocked",
            extra={
                "operation": "validate_completion",
                "work_item_id": str(work_item_id),
                "work_item_type_id": str(work_item_type_id),
                "missing_fields": labels,
            },
        )
        raise ValidationError(
            f"Cannot complete work item. The following required fields must be filled: {', '.join(labels)}",
            {
                "missing_fields": [
                    {"field_id": str(definition.id), "field_name": definition.field_name, "field_label": definition.field_label}
                    for definition in missing
                ]
            },
        )
