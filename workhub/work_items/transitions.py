from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from enum import StrEnum

from sqlalchemy import select
from sqlalchemy.orm import Session

from workhub.core.config import get_settings
from workhub.errors import ValidationError
from workhub.metrics import observe_transition_block
from workhub.work_items.models import WorkItemStatus, WorkItemStatusTransition


logger = logging.getLogger("workhub.work_items.transitions")


class TransitionPolicy(StrEnum):
    PERMISSIVE = "permissive"
    RESTRICTIVE = "restrictive"


def resolve_transition_policy(value: str | None = None) -> TransitionPolicy:
    raw = value if value is not None else get_settings().work_item_transition_policy
    try:
        return TransitionPolicy(raw.strip().lower())
    except ValueError:
        logger.warning("work_items.transitions.unknown_policy", extra={"error": f"unknown policy '{raw}'"})
        return TransitionPolicy.PERMISSIVE


@dataclass(slots=True)
class StatusTransitionValidator:
    """Checks a status change against the per-type transition table.

    An explicit rule with ``is_allowed`` false always blocks. When no rule
    exists the policy decides: permissive allows, restrictive blocks.
    """

    policy: TransitionPolicy = TransitionPolicy.PERMISSIVE

    def validate(
        self,
        session: Session,
        work_item_type_id: uuid.UUID,
        from_status_id: uuid.UUID,
        to_status_id: uuid.UUID,
    ) -> None:
        if from_status_id == to_status_id:
            return

        rule = session.scalar(
            select(WorkItemStatusTransition).where(
                WorkItemStatusTransition.work_item_type_id == work_item_type_id,
                WorkItemStatusTransition.from_status_id == from_status_id,
                WorkItemStatusTransition.to_status_id == to_status_id,
            )
        )

        if rule is not None and rule.is_allowed:
            return

        if rule is None and self.policy == TransitionPolicy.PERMISSIVE:
            return

        reason = "no_rule" if rule is None else "disallowed"
        observe_transition_block(reason)
        names = self._status_names(session, from_status_id, to_status_id)
        from_name = names.get(from_status_id, str(from_status_id))
        to_name = names.get(to_status_id, str(to_status_id))
        logger.info(
            "work_items.transitions.blocked",
            extra={
                "operation": "validate_transition",
                "work_item_type_id": str(work_item_type_id),
                "from_status_id": str(from_status_id),
                "to_status_id": str(to_status_id),
                "error": reason,
            },
        )
        raise ValidationError(
            f"Status transition from '{from_name}' to '{to_name}' is not allowed",
            {
                "from_status_id": str(from_status_id),
                "to_status_id": str(to_status_id),
                "from_status": from_name,
                "to_status": to_name,
            },
        )

    @staticmethod
    def _status_names(session: Session, *status_ids: uuid.UUID) -> dict[uuid.UUID, str]:
        rows = session.execute(
            select(WorkItemStatus.id, WorkItemStatus.status_name).where(WorkItemStatus.id.in_(status_ids))
        ).all()
        return {row.id: row.status_name for row in rows}
