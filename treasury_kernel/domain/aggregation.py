"""
Periodic contribution aggregation (pure, ZERO I/O).

Turns a snapshot of ``pending-periodic`` operations into promotion plans:

    1. Group by resolved account (case-insensitive); unresolved rows and
       rows already subsumed into another operation's group are ignored.
    2. Sum amounts per account.
    3. Compare with the account target (falls back to the treasury target).
    4. For every account at or above target, pick the representative: the
       earliest ``created_at``, ties broken by the lowest operation id.
    5. Compute the settled amount from the reward policy.

Reward arithmetic:
    TOTAL_PLUS_REWARD   settlement = total + reward
    TARGET_PLUS_REWARD  settlement = target + reward
Reward is never capped.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from treasury_kernel.domain.types import (
    OperationStatus,
    PeriodicMetadata,
    PeriodicSyncStrategyConfig,
    RewardPolicy,
    TreasuryOperation,
)


@dataclass(frozen=True)
class AccountContribution:
    """All contributions of one account within a settlement window."""

    account: str
    operations: tuple[TreasuryOperation, ...]  # Ordered by (created_at, id)

    @property
    def total(self) -> int:
        return sum(op.amount for op in self.operations)


@dataclass(frozen=True)
class PromotionPlan:
    """Decision to promote one representative on behalf of its group."""

    account: str
    representative: TreasuryOperation
    grouped_operation_ids: tuple[str, ...]
    total_amount: int
    target: int
    reward: int
    settlement_amount: int

    def metadata(self) -> PeriodicMetadata:
        return PeriodicMetadata(
            grouped_operations=self.grouped_operation_ids,
            total_amount=self.total_amount,
            reward=self.reward,
            settlement_amount=self.settlement_amount,
        )


def representative_sort_key(operation: TreasuryOperation) -> tuple:
    return (operation.created_at, operation.id)


def group_contributions(
    operations: Iterable[TreasuryOperation],
    excluded_ids: frozenset[str] = frozenset(),
) -> dict[str, AccountContribution]:
    """Group eligible operations by lower-cased account."""
    buckets: dict[str, list[TreasuryOperation]] = {}
    display: dict[str, str] = {}
    for op in operations:
        if op.status != OperationStatus.PENDING_PERIODIC:
            continue
        if not op.account or op.id in excluded_ids:
            continue
        key = op.account.lower()
        buckets.setdefault(key, []).append(op)
        display.setdefault(key, op.account)

    return {
        key: AccountContribution(
            account=display[key],
            operations=tuple(sorted(ops, key=representative_sort_key)),
        )
        for key, ops in buckets.items()
    }


def compute_settlement_amount(
    total: int, target: int, reward: int, policy: RewardPolicy,
) -> int:
    if policy == RewardPolicy.TARGET_PLUS_REWARD:
        return target + reward
    return total + reward


def plan_promotions(
    contributions: Mapping[str, AccountContribution],
    config: PeriodicSyncStrategyConfig,
    account_targets: Mapping[str, int | None] | None = None,
) -> tuple[PromotionPlan, ...]:
    """Return one plan per account whose total reached its target.

    ``account_targets`` is keyed by lower-cased account; a missing or None
    entry means the treasury default ``config.target`` applies.
    """
    account_targets = account_targets or {}
    plans: list[PromotionPlan] = []

    for key in sorted(contributions):
        contribution = contributions[key]
        target = account_targets.get(key)
        if target is None:
            target = config.target

        total = contribution.total
        if total < target:
            continue

        representative, *grouped = contribution.operations
        plans.append(
            PromotionPlan(
                account=contribution.account,
                representative=representative,
                grouped_operation_ids=tuple(op.id for op in grouped),
                total_amount=total,
                target=target,
                reward=config.reward,
                settlement_amount=compute_settlement_amount(
                    total, target, config.reward, config.reward_policy,
                ),
            )
        )

    return tuple(plans)
