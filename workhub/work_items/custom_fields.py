from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from workhub.core.config import get_settings
from workhub.metrics import observe_slow_query
from workhub.work_items.models import WorkItemFieldValue


logger = logging.getLogger("workhub.work_items.custom_fields")


@dataclass(slots=True)
class CustomFieldLoader:
    slow_query_threshold_ms: float | None = None

    def load(self, session: Session, work_item_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, dict[str, Any]]:
        """Load custom field values for many work items with a single query.

        Returns ``{work_item_id: {field_id: value}}``; items without values are
        absent from the result.
        """

        ids = list(dict.fromkeys(work_item_ids))
        if not ids:
            return {}

        started = time.perf_counter()
        rows = session.execute(
            select(
                WorkItemFieldValue.work_item_id,
                WorkItemFieldValue.work_item_field_id,
                WorkItemFieldValue.field_value,
            ).where(WorkItemFieldValue.work_item_id.in_(ids))
        ).all()
        duration_ms = round((time.perf_counter() - started) * 1000, 2)

        threshold = self.slow_query_threshold_ms
        if threshold is None:
            threshold = get_settings().slow_query_threshold_ms
        if duration_ms > threshold:
            observe_slow_query("custom_fields.load")
            logger.warning(
                "work_items.custom_fields.slow_query",
                extra={
                    "operation": "custom_fields.load",
                    "count": len(ids),
                    "query_duration_ms": duration_ms,
                    "slow": True,
                },
            )

        values: dict[uuid.UUID, dict[str, Any]] = {}
        for row in rows:
            values.setdefault(row.work_item_id, {})[str(row.work_item_field_id)] = row.field_value
        return values
