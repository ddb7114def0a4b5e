"""
Module: treasury_kernel.selectors.operation_selector
Responsibility: Read side of the Operation Store: resume cursor, window
    snapshots for periodic aggregation, and the set of operations already
    subsumed by a promoted representative.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select

from treasury_kernel.domain.types import (
    OperationStatus,
    SyncCursor,
    TreasuryOperation,
)
from treasury_kernel.models.operation import (
    TreasuryOperationModel,
    TreasurySyncCursorModel,
)
from treasury_kernel.selectors.base import BaseSelector

# Statuses a promoted representative can be in.
_REPRESENTATIVE_STATUSES = (
    OperationStatus.PENDING.value,
    OperationStatus.CONFIRMING.value,
    OperationStatus.PROCESSED.value,
)


class OperationSelector(BaseSelector[TreasuryOperationModel]):
    """Read-only queries over ``treasury_operations``."""

    def get(self, operation_id: str, treasury_id: int) -> TreasuryOperation | None:
        model = self.session.get(TreasuryOperationModel, (operation_id, treasury_id))
        return model.to_dto() if model is not None else None

    def latest_operation(self, treasury_id: int) -> TreasuryOperation | None:
        """Newest stored operation by ``created_at`` (ties: highest id)."""
        model = self.session.scalars(
            select(TreasuryOperationModel)
            .where(TreasuryOperationModel.treasury_id == treasury_id)
            .order_by(
                TreasuryOperationModel.created_at.desc(),
                TreasuryOperationModel.id.desc(),
            )
            .limit(1)
        ).first()
        return model.to_dto() if model is not None else None

    def sync_cursor(self, treasury_id: int) -> SyncCursor | None:
        model = self.session.get(TreasurySyncCursorModel, treasury_id)
        return model.to_dto() if model is not None else None

    def resume_operation_id(self, treasury_id: int) -> str | None:
        """Id the bank feed is read back to.

        The durable cursor wins; without one the latest stored operation is
        used.  ``None`` means a full backfill.
        """
        cursor = self.sync_cursor(treasury_id)
        if cursor is not None:
            return cursor.operation_id
        latest = self.latest_operation(treasury_id)
        return latest.id if latest is not None else None

    def pending_periodic_between(
        self, treasury_id: int, opens_at: datetime, closes_at: datetime,
    ) -> list[TreasuryOperation]:
        """Snapshot of contributions with ``opens_at <= created_at < closes_at``."""
        models = self.session.scalars(
            select(TreasuryOperationModel)
            .where(
                TreasuryOperationModel.treasury_id == treasury_id,
                TreasuryOperationModel.status
                == OperationStatus.PENDING_PERIODIC.value,
                TreasuryOperationModel.created_at >= opens_at,
                TreasuryOperationModel.created_at < closes_at,
            )
            .order_by(
                TreasuryOperationModel.created_at,
                TreasuryOperationModel.id,
            )
        ).all()
        return [m.to_dto() for m in models]

    def subsumed_operation_ids(
        self, treasury_id: int, since: datetime | None = None,
    ) -> frozenset[str]:
        """Ids listed in any representative's ``grouped_operations``.

        ``since`` bounds the representatives scanned by their ``created_at``.
        Grouped ids are read in Python so the query stays portable across
        JSON backends.
        """
        stmt = select(TreasuryOperationModel).where(
            TreasuryOperationModel.treasury_id == treasury_id,
            TreasuryOperationModel.status.in_(_REPRESENTATIVE_STATUSES),
        )
        if since is not None:
            stmt = stmt.where(TreasuryOperationModel.created_at >= since)

        subsumed: set[str] = set()
        for model in self.session.scalars(stmt):
            subsumed.update(model.to_dto().grouped_operation_ids)
        return frozenset(subsumed)
