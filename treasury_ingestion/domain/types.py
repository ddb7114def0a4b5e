"""
treasury_ingestion.domain.types -- Normalized card-processor events.

ZERO I/O.  Webhook payloads from Stripe- or Viva-style processors are
parsed upstream into ``CardEvent``; amounts are minor units.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class CardEventKind(str, Enum):
    CHARGE = "charge"  # Charge succeeded: mint
    REFUND = "refund"  # Charge refunded: burn


@dataclass(frozen=True)
class CardEvent:
    """One settled card-processor event for a place's order."""

    processor: str  # "stripe" | "viva"
    transaction_id: str  # Processor payment id
    kind: CardEventKind
    occurred_at: datetime
    amount: int
    account: str
    order_id: int
    fees: int = 0
    net_amount: int | None = None
    place_name: str | None = None
    description: str | None = None
    payment_method: str | None = None
    charge_minted: bool = True  # Refunds: was the original charge settled

    def __post_init__(self) -> None:
        if not self.account:
            raise ValueError("Card event requires an account")
        if self.order_id <= 0:
            raise ValueError(f"Card event requires an order id, got {self.order_id}")
        if self.amount < 0 or self.fees < 0:
            raise ValueError("Card event amount and fees must be non-negative")
