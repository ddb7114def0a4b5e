"""
Periodic reconciler: contributions accumulate per account and settle in
aggregate once the account reaches its target.

Ingestion writes ``pending-periodic`` rows.  Aggregation then runs inside
a SAVEPOINT:

    - outside the monthly trigger window: no-op
    - inside: snapshot the window's contributions, skip ids already
      subsumed by an earlier representative, group per account, and
      promote one representative per account at or above target

A configuration error, or a promotion lost to a concurrent run, rolls back
the SAVEPOINT only; the ingested contributions are still committed.
"""

from __future__ import annotations

from treasury_kernel.domain.aggregation import group_contributions, plan_promotions
from treasury_kernel.domain.types import OperationStatus, SyncStrategy, Treasury
from treasury_kernel.domain.window import settlement_window
from treasury_kernel.exceptions import (
    ConfigurationError,
    OperationStateConflictError,
)
from treasury_kernel.logging_config import get_logger
from treasury_kernel.selectors.account_selector import AccountSelector

from treasury_sync.domain.types import (
    AggregationResult,
    SyncOutcomeStatus,
    TreasurySyncOutcome,
)
from treasury_sync.reconcilers.base import BaseReconciler

logger = get_logger("sync.periodic")


class PeriodicReconciler(BaseReconciler):

    initial_status = OperationStatus.PENDING_PERIODIC

    def sync(self, treasury: Treasury) -> TreasurySyncOutcome:
        ingestion = self.ingest(treasury)

        try:
            with self.session.begin_nested():
                aggregation = self.aggregate(treasury)
        except (ConfigurationError, OperationStateConflictError) as exc:
            logger.warning(
                "aggregation_skipped",
                extra={"error_code": exc.code, "reason": str(exc)},
            )
            aggregation = AggregationResult(error_code=exc.code)

        return TreasurySyncOutcome(
            treasury_id=treasury.id,
            strategy=SyncStrategy.PERIODIC.value,
            status=SyncOutcomeStatus.SUCCEEDED,
            ingestion=ingestion,
            aggregation=aggregation,
        )

    def aggregate(self, treasury: Treasury) -> AggregationResult:
        """Promote matured account groups of the current window.

        Raises:
            ConfigurationError: Missing or unusable strategy config.
            OperationStateConflictError: A representative changed status
                under a concurrent run.
        """
        config = treasury.periodic_config()
        now = self.clock.now()
        window = settlement_window(config, now, treasury.id)

        if not window.is_open(now):
            logger.debug(
                "aggregation_window_closed",
                extra={
                    "trigger_opens_at": window.trigger_opens_at,
                    "closes_at": window.closes_at,
                },
            )
            return AggregationResult(window_open=False)

        candidates = self.operations.pending_periodic_between(
            treasury.id, window.opens_at, window.closes_at,
        )
        subsumed = self.operations.subsumed_operation_ids(
            treasury.id, since=window.previous_opens_at,
        )
        contributions = group_contributions(candidates, subsumed)
        plans = plan_promotions(
            contributions,
            config,
            AccountSelector(self.session).targets_by_account(treasury.id),
        )

        for plan in plans:
            self.store.promote_operation(
                plan.representative.id, treasury.id, plan.metadata(),
            )

        logger.info(
            "aggregation_completed",
            extra={
                "opens_at": window.opens_at,
                "closes_at": window.closes_at,
                "candidates": len(candidates),
                "accounts": len(contributions),
                "promotions": len(plans),
            },
        )
        return AggregationResult(
            window_open=True,
            candidates=len(candidates),
            promoted_operation_ids=tuple(p.representative.id for p in plans),
        )
