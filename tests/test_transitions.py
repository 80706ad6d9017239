from __future__ import annotations

import pytest
from sqlalchemy.orm import Session

from tests.conftest import Seed
from workhub.core.config import get_settings
from workhub.errors import ValidationError
from workhub.work_items.models import WorkItemStatus, WorkItemStatusTransition
from workhub.work_items.transitions import StatusTransitionValidator, TransitionPolicy, resolve_transition_policy


def _rule(session: Session, seed: Seed, from_status: WorkItemStatus, to_status: WorkItemStatus, allowed: bool) -> None:
    session.add(
        WorkItemStatusTransition(
            work_item_type_id=seed.task_type.id,
            from_status_id=from_status.id,
            to_status_id=to_status.id,
            is_allowed=allowed,
        )
    )
    session.commit()


def test_permissive_policy_allows_transitions_without_rules(db_session: Session, seed: Seed) -> None:
    validator = StatusTransitionValidator(TransitionPolicy.PERMISSIVE)

    validator.validate(db_session, seed.task_type.id, seed.open_status.id, seed.done_status.id)


def test_restrictive_policy_blocks_transitions_without_rules(db_session: Session, seed: Seed) -> None:
    _rule(db_session, seed, seed.open_status, seed.in_progress_status, True)
    validator = StatusTransitionValidator(TransitionPolicy.RESTRICTIVE)

    validator.validate(db_session, seed.task_type.id, seed.open_status.id, seed.in_progress_status.id)
    with pytest.raises(ValidationError) as exc_info:
        validator.validate(db_session, seed.task_type.id, seed.open_status.id, seed.done_status.id)

    assert exc_info.value.details == {
        "from_status_id": str(seed.open_status.id),
        "to_status_id": str(seed.done_status.id),
        "from_status": "Open",
        "to_status": "Done",
    }


@pytest.mark.parametrize("policy", [TransitionPolicy.PERMISSIVE, TransitionPolicy.RESTRICTIVE])
def test_disallowed_rule_always_blocks(db_session: Session, seed: Seed, policy: TransitionPolicy) -> None:
    _rule(db_session, seed, seed.open_status, seed.done_status, False)
    validator = StatusTransitionValidator(policy)

    with pytest.raises(ValidationError) as exc_info:
        validator.validate(db_session, seed.task_type.id, seed.open_status.id, seed.done_status.id)

    assert exc_info.value.status_code == 422
    assert "'Open' to 'Done'" in str(exc_info.value)


def test_same_status_is_not_a_transition(db_session: Session, seed: Seed) -> None:
    _rule(db_session, seed, seed.open_status, seed.open_status, False)

    StatusTransitionValidator(TransitionPolicy.RESTRICTIVE).validate(
        db_session, seed.task_type.id, seed.open_status.id, seed.open_status.id
    )


def test_policy_comes_from_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    assert resolve_transition_policy() == TransitionPolicy.PERMISSIVE

    monkeypatch.setenv("WORK_ITEM_TRANSITION_POLICY", "restrictive")
    get_settings.cache_clear()
    assert resolve_transition_policy() == TransitionPolicy.RESTRICTIVE

    assert resolve_transition_policy("bogus") == TransitionPolicy.PERMISSIVE
