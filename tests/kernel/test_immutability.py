"""
Tests for ORM-level immutability of settled operations.

Rows in ``processed`` or ``processed-account-not-found`` reject updates and
deletes through the session; transitions into those states are allowed.
"""

from datetime import datetime, timezone

import pytest

from treasury_kernel.domain.types import Direction, OperationStatus
from treasury_kernel.exceptions import ImmutabilityViolationError
from treasury_kernel.models.operation import TreasuryOperationModel

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


@pytest.fixture
def treasury(make_treasury):
    return make_treasury()


def _add(session, treasury_id, status, op_id="tx-1"):
    model = TreasuryOperationModel(
        id=op_id,
        treasury_id=treasury_id,
        created_at=NOW,
        updated_at=NOW,
        direction=Direction.IN.value,
        amount=100,
        status=status.value,
        message="000000000101",
        metadata_={},
        account="0xabc",
    )
    session.add(model)
    session.commit()
    return model


class TestTerminalOperations:

    @pytest.mark.parametrize(
        "status",
        [OperationStatus.PROCESSED, OperationStatus.PROCESSED_ACCOUNT_NOT_FOUND],
    )
    def test_update_rejected(self, session, treasury, status):
        model = _add(session, treasury.id, status)
        model.amount = 1

        with pytest.raises(ImmutabilityViolationError) as exc_info:
            session.flush()
        assert exc_info.value.entity_id == f"{treasury.id}:tx-1"
        session.rollback()

    def test_status_change_rejected(self, session, treasury):
        model = _add(session, treasury.id, OperationStatus.PROCESSED)
        model.status = OperationStatus.PENDING.value

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_delete_rejected(self, session, treasury):
        model = _add(session, treasury.id, OperationStatus.PROCESSED)
        session.delete(model)

        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

    def test_updated_at_may_change(self, session, treasury):
        model = _add(session, treasury.id, OperationStatus.PROCESSED)
        model.updated_at = datetime(2025, 4, 1, tzinfo=timezone.utc)
        session.flush()

    def test_violation_logged(self, session, treasury, captured_logs):
        model = _add(session, treasury.id, OperationStatus.PROCESSED)
        model.account = "0xother"
        with pytest.raises(ImmutabilityViolationError):
            session.flush()
        session.rollback()

        blocked = [
            r for r in captured_logs() if r["message"] == "immutability_violation_blocked"
        ]
        assert blocked[0]["field"] == "account"


class TestNonTerminalOperations:

    def test_transition_into_terminal_allowed(self, session, treasury):
        model = _add(session, treasury.id, OperationStatus.CONFIRMING)
        model.status = OperationStatus.PROCESSED.value
        session.commit()

    def test_pending_row_editable_and_deletable(self, session, treasury):
        model = _add(session, treasury.id, OperationStatus.PENDING)
        model.account = "0xother"
        session.flush()
        session.delete(model)
        session.commit()


class TestListenerToggle:

    def test_unregistered_allows_edit(self, session, treasury, without_immutability):
        model = _add(session, treasury.id, OperationStatus.PROCESSED)
        model.amount = 1
        session.commit()
