"""
Module: treasury_kernel.models.operation
Responsibility: ORM persistence for treasury operations and the per-treasury
    sync cursor.
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/types.py only.

Invariants enforced:
    - (id, treasury_id) is the primary key and the idempotency key of every
      ingested bank transaction.
    - Operations in a terminal status are immutable (db/immutability.py).
    - The cursor row holds the newest operation below which every fetched
      transaction was stored; it never points past a skipped one.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import JSON, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from treasury_kernel.db.base import Base

if TYPE_CHECKING:
    from treasury_kernel.domain.types import SyncCursor, TreasuryOperation


class TreasuryOperationModel(Base):
    """One normalized ledger entry derived from an external event."""

    __tablename__ = "treasury_operations"

    __table_args__ = (
        Index("ix_treasury_operations_created", "treasury_id", "created_at"),
        Index("ix_treasury_operations_status", "treasury_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    treasury_id: Mapped[int] = mapped_column(
        ForeignKey("treasury.id"), primary_key=True,
    )
    created_at: Mapped[datetime] = mapped_column(nullable=False)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)
    direction: Mapped[str] = mapped_column(String(8), nullable=False)
    amount: Mapped[int] = mapped_column(nullable=False)
    status: Mapped[str] = mapped_column(String(40), nullable=False)
    message: Mapped[str] = mapped_column(String(500), nullable=False, default="")
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON, nullable=True)
    tx_hash: Mapped[str | None] = mapped_column(String(100), nullable=True)
    account: Mapped[str | None] = mapped_column(String(100), nullable=True)

    def to_dto(self) -> TreasuryOperation:
        from treasury_kernel.domain.types import (
            Direction,
            OperationStatus,
            TreasuryOperation,
            metadata_from_dict,
        )

        return TreasuryOperation(
            id=self.id,
            treasury_id=self.treasury_id,
            created_at=self.created_at,
            updated_at=self.updated_at,
            direction=Direction(self.direction),
            amount=self.amount,
            status=OperationStatus(self.status),
            message=self.message,
            metadata=metadata_from_dict(self.metadata_),
            tx_hash=self.tx_hash,
            account=self.account,
        )

    @classmethod
    def from_dto(cls, dto: TreasuryOperation) -> TreasuryOperationModel:
        return cls(
            id=dto.id,
            treasury_id=dto.treasury_id,
            created_at=dto.created_at,
            updated_at=dto.updated_at,
            direction=dto.direction.value,
            amount=dto.amount,
            status=dto.status.value,
            message=dto.message,
            metadata_=dto.metadata.to_dict(),
            tx_hash=dto.tx_hash,
            account=dto.account,
        )

    @staticmethod
    def table_row(dto: TreasuryOperation) -> dict[str, Any]:
        """Values keyed by column name, for core statements on ``__table__``."""
        return {
            "id": dto.id,
            "treasury_id": dto.treasury_id,
            "created_at": dto.created_at,
            "updated_at": dto.updated_at,
            "direction": dto.direction.value,
            "amount": dto.amount,
            "status": dto.status.value,
            "message": dto.message,
            "metadata": dto.metadata.to_dict(),
            "tx_hash": dto.tx_hash,
            "account": dto.account,
        }


class TreasurySyncCursorModel(Base):
    """Durable "last stored" marker of the bank feed for one treasury."""

    __tablename__ = "treasury_sync_cursor"

    treasury_id: Mapped[int] = mapped_column(
        ForeignKey("treasury.id"), primary_key=True,
    )
    # NULL: read the whole feed history next run
    operation_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    operation_created_at: Mapped[datetime | None] = mapped_column(nullable=True)
    updated_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self) -> SyncCursor:
        from treasury_kernel.domain.types import SyncCursor

        return SyncCursor(
            treasury_id=self.treasury_id,
            operation_id=self.operation_id,
            operation_created_at=self.operation_created_at,
            updated_at=self.updated_at,
        )
