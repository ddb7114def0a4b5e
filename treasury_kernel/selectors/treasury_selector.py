"""
Module: treasury_kernel.selectors.treasury_selector
Responsibility: Read-only treasury configuration lookups for the sync runner.
Architecture position: Kernel > Selectors.
"""

from __future__ import annotations

from sqlalchemy import select

from treasury_kernel.domain.types import SyncProvider, Treasury
from treasury_kernel.exceptions import TreasuryNotFoundError
from treasury_kernel.models.treasury import TreasuryModel
from treasury_kernel.selectors.base import BaseSelector


class TreasurySelector(BaseSelector[TreasuryModel]):

    def get(self, treasury_id: int) -> Treasury:
        """
        Raises:
            TreasuryNotFoundError: If no treasury has this id.
        """
        model = self.session.get(TreasuryModel, treasury_id)
        if model is None:
            raise TreasuryNotFoundError(treasury_id)
        return model.to_dto()

    def by_provider(self, provider: SyncProvider) -> list[Treasury]:
        models = self.session.scalars(
            select(TreasuryModel)
            .where(TreasuryModel.sync_provider == SyncProvider(provider).value)
            .order_by(TreasuryModel.id)
        ).all()
        return [m.to_dto() for m in models]
