"""
Operation status state machine.

    requesting -> pending -> confirming -> processed
    pending-periodic -> pending                       (aggregation promotion)
    pending | pending-periodic -> processed-account-not-found

Terminal states never transition again.  Pure module, ZERO I/O.
"""

from __future__ import annotations

from treasury_kernel.domain.types import OperationStatus, TreasuryOperation
from treasury_kernel.exceptions import InvalidStatusTransitionError

S = OperationStatus

ALLOWED_TRANSITIONS: dict[OperationStatus, frozenset[OperationStatus]] = {
    S.REQUESTING: frozenset({S.PENDING}),
    S.PENDING: frozenset({S.CONFIRMING, S.PROCESSED_ACCOUNT_NOT_FOUND}),
    S.PENDING_PERIODIC: frozenset({S.PENDING, S.PROCESSED_ACCOUNT_NOT_FOUND}),
    S.CONFIRMING: frozenset({S.PROCESSED}),
    S.PROCESSED: frozenset(),
    S.PROCESSED_ACCOUNT_NOT_FOUND: frozenset(),
}

# Statuses a reconciler may write for a freshly ingested operation.
INGESTION_STATUSES: frozenset[OperationStatus] = frozenset(
    {S.PENDING, S.PENDING_PERIODIC}
)

TERMINAL_STATUSES: frozenset[OperationStatus] = frozenset(
    status for status, targets in ALLOWED_TRANSITIONS.items() if not targets
)


def can_transition(from_status: OperationStatus, to_status: OperationStatus) -> bool:
    return to_status in ALLOWED_TRANSITIONS[OperationStatus(from_status)]


def validate_transition(
    from_status: OperationStatus, to_status: OperationStatus,
) -> None:
    """
    Raises:
        InvalidStatusTransitionError: If the edge does not exist.
    """
    if not can_transition(from_status, to_status):
        raise InvalidStatusTransitionError(
            OperationStatus(from_status).value, OperationStatus(to_status).value,
        )


def mark_account_not_found(operation: TreasuryOperation) -> TreasuryOperation:
    """Route an unresolvable operation to manual review.

    The account is cleared so nothing downstream can settle it against a
    guessed beneficiary.
    """
    validate_transition(operation.status, S.PROCESSED_ACCOUNT_NOT_FOUND)
    return operation.with_status(S.PROCESSED_ACCOUNT_NOT_FOUND).with_account(None)
