"""Pure sync result types (ZERO I/O)."""

from treasury_sync.domain.types import (
    AggregationResult,
    IngestionResult,
    SyncOutcomeStatus,
    SyncRunResult,
    TreasurySyncOutcome,
)

__all__ = [
    "AggregationResult",
    "IngestionResult",
    "SyncOutcomeStatus",
    "SyncRunResult",
    "TreasurySyncOutcome",
]
