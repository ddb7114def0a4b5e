"""
PAYG reconciler: every bank transaction settles on its own.

Operations are written ``pending`` (or ``processed-account-not-found``)
and picked up directly by the settlement consumer.
"""

from __future__ import annotations

from treasury_kernel.domain.types import OperationStatus, SyncStrategy, Treasury

from treasury_sync.domain.types import SyncOutcomeStatus, TreasurySyncOutcome
from treasury_sync.reconcilers.base import BaseReconciler


class PaygReconciler(BaseReconciler):

    initial_status = OperationStatus.PENDING

    def sync(self, treasury: Treasury) -> TreasurySyncOutcome:
        ingestion = self.ingest(treasury)
        return TreasurySyncOutcome(
            treasury_id=treasury.id,
            strategy=SyncStrategy.PAYG.value,
            status=SyncOutcomeStatus.SUCCEEDED,
            ingestion=ingestion,
        )
