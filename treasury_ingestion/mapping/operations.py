"""
Raw transaction -> TreasuryOperation mapping (pure, ZERO I/O).

    amount_minor_units > 0   direction "in"
    amount_minor_units <= 0  direction "out"
    amount                   absolute value in minor units
    message                  cleaned reference
"""

from __future__ import annotations

from treasury_kernel.domain.structured_message import clean_message
from treasury_kernel.domain.types import (
    Direction,
    OperationStatus,
    RawTransaction,
    TreasuryOperation,
)


def raw_transaction_to_operation(
    transaction: RawTransaction,
    treasury_id: int,
    status: OperationStatus,
) -> TreasuryOperation:
    return TreasuryOperation(
        id=transaction.id,
        treasury_id=treasury_id,
        created_at=transaction.created_at,
        updated_at=transaction.updated_at,
        direction=Direction.IN if transaction.amount_minor_units > 0 else Direction.OUT,
        amount=abs(transaction.amount_minor_units),
        status=status,
        message=clean_message(transaction.reference),
    )
