"""
OperationStore -- write side of ``treasury_operations``.

Responsibility:
    Persists ingested operations with insert-or-ignore semantics keyed on
    ``(id, treasury_id)``, performs the targeted status transitions of
    aggregation and settlement, and advances the durable sync cursor.

Architecture position:
    Kernel > Services.  Called by the reconcilers, the card event ingestor
    and the settlement consumer.

Invariants enforced:
    - Idempotent ingestion: ``INSERT ... ON CONFLICT (id, treasury_id) DO
      NOTHING``; an existing row is never overwritten.
    - Every transition is validated against domain/status.py and written
      as ``UPDATE ... WHERE status = <expected>``.  A miss raises
      OperationStateConflictError, so two overlapping runs cannot promote
      the same row twice.
    - The sync cursor never moves backwards.

Failure modes:
    - OperationStoreError: the upsert failed (fatal for the treasury run).
    - OperationNotFoundError / OperationStateConflictError on transitions.
"""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy import update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from treasury_kernel.domain.clock import Clock, SystemClock
from treasury_kernel.domain.status import validate_transition
from treasury_kernel.domain.types import (
    OperationStatus,
    PeriodicMetadata,
    SyncCursor,
    TreasuryOperation,
)
from treasury_kernel.exceptions import (
    OperationNotFoundError,
    OperationStateConflictError,
    OperationStoreError,
)
from treasury_kernel.logging_config import get_logger
from treasury_kernel.models.operation import (
    TreasuryOperationModel,
    TreasurySyncCursorModel,
)
from treasury_kernel.services.base import BaseService

logger = get_logger("services.operation_store")

INSERT_CHUNK_SIZE = 500

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class OperationStore(BaseService[TreasuryOperationModel]):
    """Writes treasury operations within the caller's transaction."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    # =========================================================================
    # Ingestion
    # =========================================================================

    def insert_operations(self, operations: Sequence[TreasuryOperation]) -> int:
        """Insert operations, ignoring keys that already exist.

        Returns:
            Number of rows actually inserted.

        Raises:
            OperationStoreError: If the statement fails.
        """
        if not operations:
            return 0

        treasury_id = operations[0].treasury_id
        dialect = self.session.get_bind().dialect.name
        insert = _DIALECT_INSERTS.get(dialect)
        if insert is None:
            raise OperationStoreError(
                treasury_id, "insert", f"unsupported dialect {dialect!r}",
            )

        table = TreasuryOperationModel.__table__
        inserted = 0
        try:
            for start in range(0, len(operations), INSERT_CHUNK_SIZE):
                chunk = operations[start:start + INSERT_CHUNK_SIZE]
                stmt = (
                    insert(table)
                    .values([TreasuryOperationModel.table_row(op) for op in chunk])
                    .on_conflict_do_nothing(index_elements=["id", "treasury_id"])
                )
                result = self.session.execute(stmt)
                inserted += max(result.rowcount or 0, 0)
        except SQLAlchemyError as exc:
            logger.error(
                "operation_insert_failed",
                extra={"treasury_id": treasury_id, "count": len(operations)},
                exc_info=True,
            )
            raise OperationStoreError(treasury_id, "insert", str(exc)) from exc

        logger.info(
            "operations_inserted",
            extra={
                "treasury_id": treasury_id,
                "submitted": len(operations),
                "inserted": inserted,
                "duplicates": len(operations) - inserted,
            },
        )
        return inserted

    # =========================================================================
    # Transitions
    # =========================================================================

    def promote_operation(
        self,
        operation_id: str,
        treasury_id: int,
        metadata: PeriodicMetadata,
    ) -> None:
        """``pending-periodic -> pending`` carrying the group metadata."""
        self._transition(
            operation_id,
            treasury_id,
            OperationStatus.PENDING_PERIODIC,
            OperationStatus.PENDING,
            {TreasuryOperationModel.metadata_: metadata.to_dict()},
        )
        logger.info(
            "operation_promoted",
            extra={
                "treasury_id": treasury_id,
                "operation_id": operation_id,
                "grouped_count": len(metadata.grouped_operations),
                "total_amount": metadata.total_amount,
                "settlement_amount": metadata.settlement_amount,
            },
        )

    def mark_confirming(
        self, operation_id: str, treasury_id: int, tx_hash: str,
    ) -> None:
        """Settlement submitted: ``pending -> confirming``."""
        self._transition(
            operation_id,
            treasury_id,
            OperationStatus.PENDING,
            OperationStatus.CONFIRMING,
            {TreasuryOperationModel.tx_hash: tx_hash},
        )
        logger.info(
            "operation_confirming",
            extra={
                "treasury_id": treasury_id,
                "operation_id": operation_id,
                "tx_hash": tx_hash,
            },
        )

    def mark_processed(self, operation_id: str, treasury_id: int) -> None:
        """Settlement confirmed: ``confirming -> processed``."""
        self._transition(
            operation_id,
            treasury_id,
            OperationStatus.CONFIRMING,
            OperationStatus.PROCESSED,
            {},
        )
        logger.info(
            "operation_processed",
            extra={"treasury_id": treasury_id, "operation_id": operation_id},
        )

    def _transition(
        self,
        operation_id: str,
        treasury_id: int,
        expected: OperationStatus,
        target: OperationStatus,
        values: dict,
    ) -> None:
        validate_transition(expected, target)

        stmt = (
            update(TreasuryOperationModel)
            .where(
                TreasuryOperationModel.id == operation_id,
                TreasuryOperationModel.treasury_id == treasury_id,
                TreasuryOperationModel.status == expected.value,
            )
            .values(
                {
                    TreasuryOperationModel.status: target.value,
                    TreasuryOperationModel.updated_at: self._clock.now(),
                    **values,
                }
            )
        )
        result = self.session.execute(stmt)
        if result.rowcount == 1:
            return

        if self.session.get(TreasuryOperationModel, (operation_id, treasury_id)) is None:
            raise OperationNotFoundError(operation_id, treasury_id)
        logger.warning(
            "operation_state_conflict",
            extra={
                "treasury_id": treasury_id,
                "operation_id": operation_id,
                "expected_status": expected.value,
                "target_status": target.value,
            },
        )
        raise OperationStateConflictError(operation_id, treasury_id, expected.value)

    # =========================================================================
    # Cursor
    # =========================================================================

    def advance_cursor(self, operation: TreasuryOperation) -> SyncCursor:
        """Move the treasury's cursor to ``operation`` unless it is older."""
        model = self.session.get(TreasurySyncCursorModel, operation.treasury_id)
        now = self._clock.now()

        if model is None:
            model = TreasurySyncCursorModel(
                treasury_id=operation.treasury_id,
                operation_id=operation.id,
                operation_created_at=operation.created_at,
                updated_at=now,
            )
            self.session.add(model)
        elif model.operation_id is None or (operation.created_at, operation.id) > (
            model.operation_created_at, model.operation_id,
        ):
            model.operation_id = operation.id
            model.operation_created_at = operation.created_at
            model.updated_at = now
        else:
            return model.to_dto()

        self.session.flush()
        logger.debug(
            "sync_cursor_advanced",
            extra={
                "treasury_id": operation.treasury_id,
                "operation_id": operation.id,
            },
        )
        return model.to_dto()

    def hold_cursor(
        self, treasury_id: int, anchor: TreasuryOperation | None,
    ) -> SyncCursor:
        """Pin the cursor at ``anchor`` if the treasury has none yet.

        Used when the oldest fetched transaction could not be stored: the
        latest-operation fallback would otherwise resume past it.
        ``anchor=None`` pins a full-history read.
        """
        model = self.session.get(TreasurySyncCursorModel, treasury_id)
        if model is not None:
            return model.to_dto()

        model = TreasurySyncCursorModel(
            treasury_id=treasury_id,
            operation_id=anchor.id if anchor is not None else None,
            operation_created_at=anchor.created_at if anchor is not None else None,
            updated_at=self._clock.now(),
        )
        self.session.add(model)
        self.session.flush()
        logger.info(
            "sync_cursor_held",
            extra={
                "treasury_id": treasury_id,
                "operation_id": model.operation_id,
            },
        )
        return model.to_dto()
