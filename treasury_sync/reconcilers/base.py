"""
Shared ingestion pass of the PAYG and periodic reconcilers.

    1. Resume point: the durable sync cursor, else the latest stored
       operation (by created_at), else the whole feed.
    2. Pull every transaction newer than the resume point.
    3. Map 1:1 to operations with the strategy's initial status.
    4. Resolve accounts, memoized per (message, treasury) for this batch.
       No match -> processed-account-not-found with a null account.
       Lookup error -> the operation is left out of this batch.
    5. Insert, ignoring (id, treasury_id) keys that already exist.
    6. Advance the cursor over the contiguous run of stored operations
       (oldest first), stopping before the first one left out.

A source or store failure propagates; the caller rolls the treasury back
and the next run re-reads from the unchanged cursor.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from sqlalchemy.orm import Session

from treasury_kernel.domain.clock import Clock
from treasury_kernel.domain.status import mark_account_not_found
from treasury_kernel.domain.types import (
    OperationStatus,
    Treasury,
    TreasuryOperation,
)
from treasury_kernel.exceptions import AccountLookupError
from treasury_kernel.logging_config import get_logger
from treasury_kernel.selectors.operation_selector import OperationSelector
from treasury_kernel.services.account_resolver import AccountResolver
from treasury_kernel.services.operation_store import OperationStore

from treasury_ingestion.adapters.base import TransactionSource
from treasury_ingestion.mapping.operations import raw_transaction_to_operation

from treasury_sync.domain.types import IngestionResult, TreasurySyncOutcome

logger = get_logger("sync.reconciler")


class BaseReconciler(ABC):
    """Ingests one treasury's bank feed within the caller's transaction."""

    initial_status: OperationStatus

    def __init__(self, session: Session, source: TransactionSource, clock: Clock):
        self.session = session
        self.source = source
        self.clock = clock
        self.operations = OperationSelector(session)
        self.store = OperationStore(session, clock)

    @abstractmethod
    def sync(self, treasury: Treasury) -> TreasurySyncOutcome:
        ...

    def ingest(self, treasury: Treasury) -> IngestionResult:
        cursor = self.operations.sync_cursor(treasury.id)
        anchor: TreasuryOperation | None = None
        if cursor is not None:
            since_id = cursor.operation_id
        else:
            anchor = self.operations.latest_operation(treasury.id)
            since_id = anchor.id if anchor is not None else None

        account_ref = treasury.ponto_credentials.account_id
        transactions = list(
            self.source.get_all_transactions_until_id(account_ref, since_id)
        )
        if not transactions:
            logger.info("no_transactions_to_sync", extra={"since_id": since_id})
            return IngestionResult()

        fetched = [
            raw_transaction_to_operation(t, treasury.id, self.initial_status)
            for t in transactions
        ]

        resolver = AccountResolver(self.session, treasury.message_type)
        resolved: list[TreasuryOperation] = []
        left_out: set[tuple[str, int]] = set()
        unresolved = 0
        for operation in fetched:
            try:
                account = resolver.resolve(operation.message, treasury.id)
            except AccountLookupError as exc:
                logger.warning(
                    "operation_skipped_lookup_failed",
                    extra={"operation_id": operation.id, "error_code": exc.code},
                )
                left_out.add(operation.key)
                continue

            if account is None:
                unresolved += 1
                resolved.append(mark_account_not_found(operation))
            else:
                resolved.append(operation.with_account(account))

        inserted = self.store.insert_operations(resolved)
        cursor_op = self._advance_cursor(treasury.id, fetched, left_out, anchor, cursor)

        result = IngestionResult(
            fetched=len(fetched),
            stored=inserted,
            duplicates=len(resolved) - inserted,
            unresolved=unresolved,
            lookup_failures=len(left_out),
            cursor_operation_id=cursor_op,
        )
        logger.info(
            "treasury_ingested",
            extra={
                "fetched": result.fetched,
                "stored": result.stored,
                "duplicates": result.duplicates,
                "unresolved": result.unresolved,
                "lookup_failures": result.lookup_failures,
                "store_reads": resolver.store_reads,
            },
        )
        return result

    def _advance_cursor(self, treasury_id, fetched, left_out, anchor, cursor):
        last_stored: TreasuryOperation | None = None
        for operation in sorted(fetched, key=lambda o: (o.created_at, o.id)):
            if operation.key in left_out:
                break
            last_stored = operation

        if last_stored is not None:
            return self.store.advance_cursor(last_stored).operation_id
        if cursor is None:
            return self.store.hold_cursor(treasury_id, anchor).operation_id
        return cursor.operation_id
