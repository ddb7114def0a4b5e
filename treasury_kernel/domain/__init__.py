"""
treasury_kernel.domain -- Pure types, rules and calculations.

ZERO I/O.  Everything here is a frozen dataclass or a pure function.
"""

from treasury_kernel.domain.types import (
    Direction,
    IntervalUnit,
    MessageType,
    OperationMetadata,
    OperationStatus,
    PaygMetadata,
    PeriodicMetadata,
    PeriodicSyncStrategyConfig,
    PontoCredentials,
    RawTransaction,
    RewardPolicy,
    SyncCursor,
    SyncProvider,
    SyncStrategy,
    Treasury,
    TreasuryAccount,
    TreasuryOperation,
    metadata_from_dict,
)

__all__ = [
    "Direction",
    "IntervalUnit",
    "MessageType",
    "OperationMetadata",
    "OperationStatus",
    "PaygMetadata",
    "PeriodicMetadata",
    "PeriodicSyncStrategyConfig",
    "PontoCredentials",
    "RawTransaction",
    "RewardPolicy",
    "SyncCursor",
    "SyncProvider",
    "SyncStrategy",
    "Treasury",
    "TreasuryAccount",
    "TreasuryOperation",
    "metadata_from_dict",
]
