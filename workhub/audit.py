from __future__ import annotations

import logging
import uuid
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any

from workhub.context import get_correlation_id

logger = logging.getLogger("workhub.audit")

audit_entries: list[dict[str, Any]] = []


def record(
    actor_user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: dict[str, Any] | None,
    after: dict[str, Any] | None,
    correlation_id: str | None = None,
) -> None:
    resolved_correlation_id = correlation_id or get_correlation_id()
    entry = {
        "id": str(uuid.uuid4()),
        "actor_user_id": actor_user_id,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "action": action,
        "before": before,
        "after": after,
        "correlation_id": resolved_correlation_id,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
    }
    audit_entries.append(entry)
    logger.debug("audit.%s", action, extra={"operation": action, "user_id": actor_user_id})


def calculate_changes(
    before: Mapping[str, Any],
    after: Mapping[str, Any],
    fields: Iterable[str] | None = None,
) -> dict[str, dict[str, Any]]:
    """Field-level diff of ``after`` against ``before``.

    Only keys present in ``after`` (or ``fields`` when given) are compared, so a
    partial patch yields changes for the patched keys alone.
    """

    changes: dict[str, dict[str, Any]] = {}
    for key in fields if fields is not None else after.keys():
        old_value = before.get(key)
        new_value = after.get(key)
        if old_value != new_value:
            changes[key] = {"from": old_value, "to": new_value}
    return changes
