"""
Module: treasury_kernel.selectors.account_selector
Responsibility: Read-only lookups of treasury beneficiaries by structured id,
    by free-text message and by address.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from sqlalchemy import func, select

from treasury_kernel.domain.types import TreasuryAccount
from treasury_kernel.models.treasury import (
    TreasuryAccountMessageModel,
    TreasuryAccountModel,
)
from treasury_kernel.selectors.base import BaseSelector


class AccountSelector(BaseSelector[TreasuryAccountModel]):
    """Read-only queries over ``treasury_account`` and its message map."""

    def by_structured_id(
        self, structured_id: str, treasury_id: int,
    ) -> TreasuryAccount | None:
        model = self.session.get(TreasuryAccountModel, (structured_id, treasury_id))
        return model.to_dto() if model is not None else None

    def account_for_message(self, message: str, treasury_id: int) -> str | None:
        return self.session.scalars(
            select(TreasuryAccountMessageModel.account).where(
                TreasuryAccountMessageModel.message == message,
                TreasuryAccountMessageModel.treasury_id == treasury_id,
            )
        ).first()

    def by_account(self, account: str, treasury_id: int) -> TreasuryAccount | None:
        """Registered entry for an address (case-insensitive, oldest first)."""
        model = self.session.scalars(
            select(TreasuryAccountModel)
            .where(
                TreasuryAccountModel.treasury_id == treasury_id,
                func.lower(TreasuryAccountModel.account) == account.lower(),
            )
            .order_by(TreasuryAccountModel.id)
            .limit(1)
        ).first()
        return model.to_dto() if model is not None else None

    def targets_by_account(self, treasury_id: int) -> dict[str, int | None]:
        """Per-account target override, keyed by lower-cased address.

        When an address holds several structured ids the lowest id wins.
        """
        rows = self.session.execute(
            select(TreasuryAccountModel.account, TreasuryAccountModel.target)
            .where(TreasuryAccountModel.treasury_id == treasury_id)
            .order_by(TreasuryAccountModel.id.desc())
        ).all()
        return {account.lower(): target for account, target in rows}

    def structured_ids(self, treasury_id: int) -> list[str]:
        return list(
            self.session.scalars(
                select(TreasuryAccountModel.id).where(
                    TreasuryAccountModel.treasury_id == treasury_id,
                )
            )
        )
