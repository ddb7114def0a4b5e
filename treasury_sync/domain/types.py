"""
treasury_sync.domain.types -- Pure result DTOs of a sync run.

ZERO I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class SyncOutcomeStatus(str, Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"  # Run deadline reached before this treasury


@dataclass(frozen=True)
class IngestionResult:
    """What one reconciler pass did with the fetched transactions."""

    fetched: int = 0
    stored: int = 0  # Newly inserted rows
    duplicates: int = 0
    unresolved: int = 0  # Routed to processed-account-not-found
    lookup_failures: int = 0  # Skipped, refetched next run
    cursor_operation_id: str | None = None


@dataclass(frozen=True)
class AggregationResult:
    """Outcome of one periodic aggregation pass."""

    window_open: bool = False
    candidates: int = 0
    promoted_operation_ids: tuple[str, ...] = ()
    error_code: str | None = None

    @property
    def promotions(self) -> int:
        return len(self.promoted_operation_ids)


@dataclass(frozen=True)
class TreasurySyncOutcome:
    treasury_id: int
    strategy: str
    status: SyncOutcomeStatus
    ingestion: IngestionResult = field(default_factory=IngestionResult)
    aggregation: AggregationResult | None = None
    error_code: str | None = None
    error_message: str | None = None

    @property
    def fetched(self) -> int:
        return self.ingestion.fetched

    @property
    def stored(self) -> int:
        return self.ingestion.stored

    @property
    def unresolved(self) -> int:
        return self.ingestion.unresolved

    @property
    def promotions(self) -> int:
        return self.aggregation.promotions if self.aggregation else 0


@dataclass(frozen=True)
class SyncRunResult:
    run_id: str
    started_at: datetime
    completed_at: datetime
    outcomes: tuple[TreasurySyncOutcome, ...]

    def _count(self, status: SyncOutcomeStatus) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def succeeded(self) -> int:
        return self._count(SyncOutcomeStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return self._count(SyncOutcomeStatus.FAILED)

    @property
    def skipped(self) -> int:
        return self._count(SyncOutcomeStatus.SKIPPED)

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def outcome_for(self, treasury_id: int) -> TreasurySyncOutcome | None:
        for outcome in self.outcomes:
            if outcome.treasury_id == treasury_id:
                return outcome
        return None
