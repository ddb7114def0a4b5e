"""
SyncRunner -- Sync Strategy Selector for the scheduled bank-feed job.

Contract:
    ``run_scheduled_sync()`` loads every ponto treasury and reconciles them
    one after another.  Each treasury gets its own session and transaction:
    commit on success, rollback on any failure, and the next treasury runs
    regardless.

    payg      -> PaygReconciler
    periodic  -> PeriodicReconciler (ingestion + aggregation)
    other     -> UnsupportedSyncStrategyError, that treasury fails

Invariants enforced:
    - All timestamps (and the run deadline) from the injected Clock.
    - Once the run deadline has passed no further treasury is started; the
      rest are reported SKIPPED and resume from their cursor next run.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Callable
from uuid import uuid4

import httpx
from sqlalchemy.orm import Session

from treasury_kernel.db.engine import session_scope
from treasury_kernel.domain.clock import Clock, SystemClock
from treasury_kernel.domain.types import SyncProvider, SyncStrategy, Treasury
from treasury_kernel.exceptions import UnsupportedSyncStrategyError
from treasury_kernel.logging_config import LogContext, get_logger
from treasury_kernel.selectors.treasury_selector import TreasurySelector

from treasury_ingestion.adapters.base import TransactionSource
from treasury_ingestion.adapters.ponto import (
    PONTO_API_URL,
    AccessTokenHolder,
    PontoClient,
)

from treasury_sync.domain.types import (
    SyncOutcomeStatus,
    SyncRunResult,
    TreasurySyncOutcome,
)
from treasury_sync.reconcilers.base import BaseReconciler
from treasury_sync.reconcilers.payg import PaygReconciler
from treasury_sync.reconcilers.periodic import PeriodicReconciler

logger = get_logger("sync.runner")

RECONCILERS: dict[str, type[BaseReconciler]] = {
    SyncStrategy.PAYG.value: PaygReconciler,
    SyncStrategy.PERIODIC.value: PeriodicReconciler,
}

UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class PontoSourceFactory:
    """Builds one PontoClient per treasury, sharing a per-run token holder."""

    def __init__(
        self,
        http_client: httpx.Client,
        token_holder: AccessTokenHolder,
        api_url: str = PONTO_API_URL,
    ):
        self._http = http_client
        self._tokens = token_holder
        self._api_url = api_url

    def __call__(self, treasury: Treasury) -> TransactionSource:
        return PontoClient(
            treasury.ponto_credentials,
            self._tokens,
            self._http,
            api_url=self._api_url,
        )


class SyncRunner:
    """Runs the bank-feed sync for all ponto treasuries."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        source_factory: Callable[[Treasury], TransactionSource],
        clock: Clock | None = None,
        run_deadline_seconds: float | None = None,
    ):
        self._session_factory = session_factory
        self._source_factory = source_factory
        self._clock = clock or SystemClock()
        self._run_deadline = (
            timedelta(seconds=run_deadline_seconds)
            if run_deadline_seconds is not None
            else None
        )

    def run_scheduled_sync(self) -> SyncRunResult:
        run_id = str(uuid4())
        started_at = self._clock.now()
        deadline = started_at + self._run_deadline if self._run_deadline else None

        with LogContext.bind(run_id=run_id):
            treasuries = self._load_treasuries()
            logger.info("sync_run_started", extra={"treasuries": len(treasuries)})

            outcomes: list[TreasurySyncOutcome] = []
            for treasury in treasuries:
                if deadline is not None and self._clock.now() >= deadline:
                    logger.warning(
                        "treasury_skipped_deadline",
                        extra={"treasury_id": treasury.id},
                    )
                    outcomes.append(
                        TreasurySyncOutcome(
                            treasury_id=treasury.id,
                            strategy=treasury.sync_strategy,
                            status=SyncOutcomeStatus.SKIPPED,
                        )
                    )
                    continue
                outcomes.append(self.sync_treasury(treasury))

            result = SyncRunResult(
                run_id=run_id,
                started_at=started_at,
                completed_at=self._clock.now(),
                outcomes=tuple(outcomes),
            )
            logger.info(
                "sync_run_completed",
                extra={
                    "succeeded": result.succeeded,
                    "failed": result.failed,
                    "skipped": result.skipped,
                },
            )
        return result

    def run_treasury(self, treasury_id: int) -> TreasurySyncOutcome:
        """Sync a single treasury by id (manual or per-treasury trigger).

        Raises:
            TreasuryNotFoundError: If the id does not exist.
        """
        session = self._session_factory()
        try:
            treasury = TreasurySelector(session).get(treasury_id)
        finally:
            session.close()
        with LogContext.bind(run_id=str(uuid4())):
            return self.sync_treasury(treasury)

    def sync_treasury(self, treasury: Treasury) -> TreasurySyncOutcome:
        """Reconcile one treasury in its own transaction.  Never raises."""
        with LogContext.bind(
            treasury_id=treasury.id,
            provider=treasury.sync_provider.value,
            strategy=treasury.sync_strategy,
        ):
            try:
                with session_scope(self._session_factory) as session:
                    outcome = self._reconciler_for(treasury, session).sync(treasury)
            except Exception as exc:
                error_code = getattr(exc, "code", UNEXPECTED_ERROR)
                logger.error(
                    "treasury_sync_failed",
                    extra={"error_code": error_code},
                    exc_info=True,
                )
                return TreasurySyncOutcome(
                    treasury_id=treasury.id,
                    strategy=treasury.sync_strategy,
                    status=SyncOutcomeStatus.FAILED,
                    error_code=error_code,
                    error_message=str(exc),
                )

            logger.info(
                "treasury_sync_succeeded",
                extra={
                    "stored": outcome.stored,
                    "unresolved": outcome.unresolved,
                    "promotions": outcome.promotions,
                },
            )
            return outcome

    def _load_treasuries(self) -> list[Treasury]:
        session = self._session_factory()
        try:
            return TreasurySelector(session).by_provider(SyncProvider.PONTO)
        finally:
            session.close()

    def _reconciler_for(self, treasury: Treasury, session: Session) -> BaseReconciler:
        reconciler_cls = RECONCILERS.get(treasury.sync_strategy)
        if reconciler_cls is None:
            raise UnsupportedSyncStrategyError(treasury.id, treasury.sync_strategy)
        return reconciler_cls(session, self._source_factory(treasury), self._clock)
