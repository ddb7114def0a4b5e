"""
Card-processor event ingestion.

Charges and refunds become PAYG operations and go through the same
insert-or-ignore path as bank transactions, so webhook redelivery is
harmless.

    charge   direction "in",  id = payment id,
             amount = net_amount or max(amount - fees, 0)
    refund   direction "out", id = "<payment id>-refund",
             amount = net_amount or amount + fees;
             fees only when the charge was never minted
"""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.orm import Session

from treasury_kernel.domain.clock import Clock, SystemClock
from treasury_kernel.domain.types import (
    Direction,
    OperationStatus,
    PaygMetadata,
    TreasuryOperation,
)
from treasury_kernel.logging_config import LogContext, get_logger
from treasury_kernel.services.operation_store import OperationStore

from treasury_ingestion.domain.types import CardEvent, CardEventKind

logger = get_logger("ingestion.card_events")

REFUND_SUFFIX = "-refund"


def charge_amount(event: CardEvent) -> int:
    if event.net_amount is not None:
        return max(event.net_amount, 0)
    return max(event.amount - event.fees, 0)


def refund_amount(event: CardEvent) -> int:
    if not event.charge_minted:
        return event.fees
    if event.net_amount is not None:
        return max(event.net_amount, 0)
    return event.amount + event.fees


def operation_message(event: CardEvent) -> str:
    label = "refund operation" if event.kind == CardEventKind.REFUND else "operation"
    message = f"{event.processor} {label} - {event.place_name or ''} - {event.order_id}"
    if event.kind == CardEventKind.CHARGE and event.payment_method:
        message += f" - {event.payment_method}"
    return message


def card_event_to_operation(event: CardEvent, treasury_id: int) -> TreasuryOperation:
    if event.kind == CardEventKind.REFUND:
        operation_id = f"{event.transaction_id}{REFUND_SUFFIX}"
        direction = Direction.OUT
        amount = refund_amount(event)
    else:
        operation_id = event.transaction_id
        direction = Direction.IN
        amount = charge_amount(event)

    return TreasuryOperation(
        id=operation_id,
        treasury_id=treasury_id,
        created_at=event.occurred_at,
        updated_at=event.occurred_at,
        direction=direction,
        amount=amount,
        status=OperationStatus.PENDING,
        message=operation_message(event),
        metadata=PaygMetadata(order_id=event.order_id, description=event.description),
        account=event.account,
    )


class CardEventIngestor:
    """Stores card-processor events as pending PAYG operations."""

    def __init__(self, session: Session, clock: Clock | None = None):
        self._store = OperationStore(session, clock or SystemClock())

    def ingest(self, treasury_id: int, events: Iterable[CardEvent]) -> int:
        """Returns the number of newly stored operations."""
        events = list(events)
        if not events:
            return 0
        operations = [card_event_to_operation(e, treasury_id) for e in events]

        with LogContext.bind(treasury_id=treasury_id, provider=events[0].processor):
            inserted = self._store.insert_operations(operations)
            logger.info(
                "card_events_ingested",
                extra={"received": len(operations), "inserted": inserted},
            )
        return inserted
