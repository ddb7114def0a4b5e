"""
treasury_kernel.domain.types -- Pure frozen dataclasses for reconciliation.

ZERO I/O.  Every DTO is immutable; changes produce new instances through
``dataclasses.replace``.

Operation metadata is a tagged variant (``PaygMetadata`` | ``PeriodicMetadata``)
so promotion code cannot write the wrong shape into the JSON column.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar, Union

from treasury_kernel.exceptions import (
    InvalidStrategyConfigError,
    MissingStrategyConfigError,
)


# =============================================================================
# Enums
# =============================================================================


class OperationStatus(str, Enum):
    """TreasuryOperation lifecycle status (see domain/status.py for edges)."""

    REQUESTING = "requesting"  # Reserved pre-creation phase
    PENDING = "pending"  # Ready to settle
    PENDING_PERIODIC = "pending-periodic"  # Contribution, not settleable alone
    CONFIRMING = "confirming"  # Settlement in flight
    PROCESSED = "processed"  # Terminal
    PROCESSED_ACCOUNT_NOT_FOUND = "processed-account-not-found"  # Terminal, manual review

    @property
    def is_terminal(self) -> bool:
        return self in (
            OperationStatus.PROCESSED,
            OperationStatus.PROCESSED_ACCOUNT_NOT_FOUND,
        )


class Direction(str, Enum):
    IN = "in"
    OUT = "out"


class SyncStrategy(str, Enum):
    PAYG = "payg"
    PERIODIC = "periodic"


class SyncProvider(str, Enum):
    PONTO = "ponto"  # Bank transaction feed
    STRIPE = "stripe"  # Card processor (webhooks)
    VIVA = "viva"  # Card processor (webhooks)
    NONE = "none"


class IntervalUnit(str, Enum):
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


class RewardPolicy(str, Enum):
    """How the settled amount of a promoted periodic batch is computed."""

    TOTAL_PLUS_REWARD = "total_plus_reward"
    TARGET_PLUS_REWARD = "target_plus_reward"


class MessageType(str, Enum):
    """How bank transfer references identify the beneficiary."""

    STRUCTURED = "structured"  # 12-digit mod-97 structured id
    UNSTRUCTURED = "unstructured"  # Exact free-text message mapping


# =============================================================================
# Operation metadata (tagged variant)
# =============================================================================


@dataclass(frozen=True)
class PaygMetadata:
    """Metadata of an individually settled operation."""

    kind: ClassVar[str] = "payg"

    order_id: int | None = None
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.order_id is not None:
            data["order_id"] = self.order_id
        if self.description is not None:
            data["description"] = self.description
        return data


@dataclass(frozen=True)
class PeriodicMetadata:
    """Metadata of a representative operation promoted by aggregation."""

    kind: ClassVar[str] = "periodic"

    grouped_operations: tuple[str, ...]
    total_amount: int
    reward: int = 0
    settlement_amount: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "grouped_operations": list(self.grouped_operations),
            "total_amount": self.total_amount,
            "reward": self.reward,
            "settlement_amount": self.settlement_amount,
        }


OperationMetadata = Union[PaygMetadata, PeriodicMetadata]


def metadata_from_dict(data: dict[str, Any] | None) -> OperationMetadata:
    """Rebuild the tagged metadata variant from its stored JSON shape."""
    if not data:
        return PaygMetadata()
    if "grouped_operations" in data:
        return PeriodicMetadata(
            grouped_operations=tuple(str(i) for i in data["grouped_operations"]),
            total_amount=int(data["total_amount"]),
            reward=_int_or_default(data.get("reward"), 0),
            settlement_amount=(
                int(data["settlement_amount"])
                if data.get("settlement_amount") is not None
                else None
            ),
        )
    order_id = data.get("order_id")
    return PaygMetadata(
        order_id=int(order_id) if order_id is not None else None,
        description=data.get("description"),
    )


# =============================================================================
# Source and ledger DTOs
# =============================================================================


@dataclass(frozen=True)
class RawTransaction:
    """One transaction as yielded by an External Event Source."""

    id: str
    created_at: datetime
    updated_at: datetime
    amount_minor_units: int  # Signed: negative is outgoing
    reference: str


@dataclass(frozen=True)
class TreasuryOperation:
    """One normalized ledger entry derived from an external financial event.

    ``(id, treasury_id)`` is the idempotency key.  ``amount`` is always
    non-negative; the sign lives in ``direction``.
    """

    id: str
    treasury_id: int
    created_at: datetime
    updated_at: datetime
    direction: Direction
    amount: int
    status: OperationStatus
    message: str
    metadata: OperationMetadata = field(default_factory=PaygMetadata)
    tx_hash: str | None = None
    account: str | None = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise ValueError(f"Operation amount must be non-negative: {self.amount}")

    @property
    def key(self) -> tuple[str, int]:
        return (self.id, self.treasury_id)

    @property
    def settlement_amount(self) -> int:
        """Amount the settlement consumer mints or burns for this operation."""
        if (
            isinstance(self.metadata, PeriodicMetadata)
            and self.metadata.settlement_amount is not None
        ):
            return self.metadata.settlement_amount
        return self.amount

    @property
    def grouped_operation_ids(self) -> tuple[str, ...]:
        if isinstance(self.metadata, PeriodicMetadata):
            return self.metadata.grouped_operations
        return ()

    def with_status(self, status: OperationStatus) -> TreasuryOperation:
        return replace(self, status=status)

    def with_account(self, account: str | None) -> TreasuryOperation:
        return replace(self, account=account)


@dataclass(frozen=True)
class TreasuryAccount:
    """Beneficiary registered against a structured id within one treasury."""

    id: str  # 12-digit structured id
    treasury_id: int
    account: str
    target: int | None = None
    name: str | None = None
    email: str | None = None
    created_at: datetime | None = None


# =============================================================================
# Treasury configuration
# =============================================================================


@dataclass(frozen=True)
class PontoCredentials:
    """Bank-feed credentials stored on a ponto treasury."""

    client_id: str
    client_secret: str
    account_id: str
    iban: str | None = None
    sync_message_type: MessageType = MessageType.STRUCTURED

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PontoCredentials:
        return cls(
            client_id=data["client_id"],
            client_secret=data["client_secret"],
            account_id=data["account_id"],
            iban=data.get("iban"),
            sync_message_type=MessageType(
                data.get("sync_message_type") or MessageType.STRUCTURED.value
            ),
        )


@dataclass(frozen=True)
class PeriodicSyncStrategyConfig:
    """Aggregation settings of a periodic treasury (amounts in minor units)."""

    target: int
    reward: int
    interval_unit: IntervalUnit
    interval: int = 1
    day_of_month: int | None = None  # 1-31, month interval only
    day_of_week: int | None = None  # 0-6, declared for week interval
    hour: int | None = None  # 0-23, defaults to 23
    minute: int | None = None  # 0-59, defaults to 59
    reward_policy: RewardPolicy = RewardPolicy.TOTAL_PLUS_REWARD

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PeriodicSyncStrategyConfig:
        """Parse the JSON config column.

        Raises:
            InvalidStrategyConfigError: On missing keys, bad enum values or
                out-of-range fields.
        """
        try:
            config = cls(
                target=int(data["target"]),
                reward=int(data.get("reward") or 0),
                interval_unit=IntervalUnit(data["interval_unit"]),
                interval=_int_or_default(data.get("interval"), 1),
                day_of_month=_opt_int(data.get("day_of_month")),
                day_of_week=_opt_int(data.get("day_of_week")),
                hour=_opt_int(data.get("hour")),
                minute=_opt_int(data.get("minute")),
                reward_policy=RewardPolicy(
                    data.get("reward_policy") or RewardPolicy.TOTAL_PLUS_REWARD.value
                ),
            )
        except KeyError as exc:
            raise InvalidStrategyConfigError(f"missing key {exc.args[0]!r}") from exc
        except (TypeError, ValueError) as exc:
            raise InvalidStrategyConfigError(str(exc)) from exc

        _check_range("day_of_month", config.day_of_month, 1, 31)
        _check_range("day_of_week", config.day_of_week, 0, 6)
        _check_range("hour", config.hour, 0, 23)
        _check_range("minute", config.minute, 0, 59)
        if config.interval < 1:
            raise InvalidStrategyConfigError("interval must be at least 1")
        if config.target < 0 or config.reward < 0:
            raise InvalidStrategyConfigError("target and reward must be non-negative")
        return config


def _opt_int(value: Any) -> int | None:
    return int(value) if value is not None else None


def _int_or_default(value: Any, default: int) -> int:
    return default if value is None else int(value)


def _check_range(name: str, value: int | None, low: int, high: int) -> None:
    if value is not None and not low <= value <= high:
        raise InvalidStrategyConfigError(
            f"{name}={value} outside range [{low}, {high}]"
        )


@dataclass(frozen=True)
class Treasury:
    """Configuration root, read once per sync invocation.

    ``sync_strategy`` and ``sync_strategy_config`` stay raw so that a bad
    config only fails the step that needs it.
    """

    id: int
    token: str
    sync_provider: SyncProvider
    sync_strategy: str
    sync_provider_credentials: dict[str, Any] = field(default_factory=dict)
    sync_strategy_config: dict[str, Any] | None = None
    business_id: int | None = None
    sync_currency_symbol: str | None = None

    @property
    def ponto_credentials(self) -> PontoCredentials:
        return PontoCredentials.from_dict(self.sync_provider_credentials)

    @property
    def message_type(self) -> MessageType:
        raw = self.sync_provider_credentials.get("sync_message_type")
        return MessageType(raw) if raw else MessageType.STRUCTURED

    def periodic_config(self) -> PeriodicSyncStrategyConfig:
        """
        Raises:
            MissingStrategyConfigError: If no config is stored.
            InvalidStrategyConfigError: If the stored config is malformed.
        """
        if not self.sync_strategy_config:
            raise MissingStrategyConfigError(self.id)
        return PeriodicSyncStrategyConfig.from_dict(self.sync_strategy_config)


@dataclass(frozen=True)
class SyncCursor:
    """Newest fetched operation below which every transaction was stored."""

    treasury_id: int
    operation_id: str | None  # None: full history
    operation_created_at: datetime | None
    updated_at: datetime | None = None
