"""Tests for the operation status state machine."""

from datetime import datetime, timezone

import pytest

from treasury_kernel.domain.status import (
    ALLOWED_TRANSITIONS,
    INGESTION_STATUSES,
    TERMINAL_STATUSES,
    can_transition,
    mark_account_not_found,
    validate_transition,
)
from treasury_kernel.domain.types import Direction, OperationStatus, TreasuryOperation
from treasury_kernel.exceptions import InvalidStatusTransitionError

S = OperationStatus
NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


def _op(status: OperationStatus, account: str | None = "0xabc") -> TreasuryOperation:
    return TreasuryOperation(
        id="tx-1",
        treasury_id=1,
        created_at=NOW,
        updated_at=NOW,
        direction=Direction.IN,
        amount=100,
        status=status,
        message="000000000101",
        account=account,
    )


class TestTransitions:

    @pytest.mark.parametrize(
        "source,target",
        [
            (S.REQUESTING, S.PENDING),
            (S.PENDING, S.CONFIRMING),
            (S.CONFIRMING, S.PROCESSED),
            (S.PENDING_PERIODIC, S.PENDING),
            (S.PENDING, S.PROCESSED_ACCOUNT_NOT_FOUND),
            (S.PENDING_PERIODIC, S.PROCESSED_ACCOUNT_NOT_FOUND),
        ],
    )
    def test_allowed(self, source, target):
        assert can_transition(source, target)
        validate_transition(source, target)

    @pytest.mark.parametrize(
        "source,target",
        [
            (S.PENDING, S.PENDING_PERIODIC),
            (S.PENDING_PERIODIC, S.CONFIRMING),
            (S.CONFIRMING, S.PENDING),
            (S.PROCESSED, S.PENDING),
            (S.PROCESSED_ACCOUNT_NOT_FOUND, S.PENDING),
        ],
    )
    def test_rejected(self, source, target):
        assert not can_transition(source, target)
        with pytest.raises(InvalidStatusTransitionError) as exc_info:
            validate_transition(source, target)
        assert exc_info.value.code == "INVALID_STATUS_TRANSITION"

    def test_every_status_has_an_entry(self):
        assert set(ALLOWED_TRANSITIONS) == set(OperationStatus)

    def test_terminal_statuses(self):
        assert TERMINAL_STATUSES == {S.PROCESSED, S.PROCESSED_ACCOUNT_NOT_FOUND}
        assert all(status.is_terminal for status in TERMINAL_STATUSES)

    def test_ingestion_statuses_are_not_terminal(self):
        assert INGESTION_STATUSES == {S.PENDING, S.PENDING_PERIODIC}
        assert not INGESTION_STATUSES & TERMINAL_STATUSES

    def test_accepts_raw_values(self):
        assert can_transition("pending-periodic", "pending")


class TestMarkAccountNotFound:

    def test_clears_account(self):
        routed = mark_account_not_found(_op(S.PENDING))
        assert routed.status == S.PROCESSED_ACCOUNT_NOT_FOUND
        assert routed.account is None

    def test_from_pending_periodic(self):
        routed = mark_account_not_found(_op(S.PENDING_PERIODIC))
        assert routed.status == S.PROCESSED_ACCOUNT_NOT_FOUND

    def test_original_untouched(self):
        op = _op(S.PENDING)
        mark_account_not_found(op)
        assert op.status == S.PENDING
        assert op.account == "0xabc"

    def test_from_confirming_rejected(self):
        with pytest.raises(InvalidStatusTransitionError):
            mark_account_not_found(_op(S.CONFIRMING))
