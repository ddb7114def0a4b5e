"""
Module: treasury_kernel.selectors.settlement_selector
Responsibility: Work queue of the settlement consumer.  Lists operations that
    are ready to mint or burn, skipping contributions that settle by proxy
    through a promoted representative.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from sqlalchemy import select

from treasury_kernel.domain.types import OperationStatus, TreasuryOperation
from treasury_kernel.models.operation import TreasuryOperationModel
from treasury_kernel.selectors.base import BaseSelector
from treasury_kernel.selectors.operation_selector import OperationSelector


class SettlementSelector(BaseSelector[TreasuryOperationModel]):

    def pending_settlements(
        self, treasury_id: int, limit: int | None = None,
    ) -> list[TreasuryOperation]:
        """``pending`` operations with an account, oldest first."""
        subsumed = OperationSelector(self.session).subsumed_operation_ids(treasury_id)

        stmt = (
            select(TreasuryOperationModel)
            .where(
                TreasuryOperationModel.treasury_id == treasury_id,
                TreasuryOperationModel.status == OperationStatus.PENDING.value,
                TreasuryOperationModel.account.is_not(None),
            )
            .order_by(
                TreasuryOperationModel.created_at,
                TreasuryOperationModel.id,
            )
        )

        result: list[TreasuryOperation] = []
        for model in self.session.scalars(stmt):
            if model.id in subsumed:
                continue
            result.append(model.to_dto())
            if limit is not None and len(result) >= limit:
                break
        return result
