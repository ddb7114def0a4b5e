"""Selectors - read-only query side of the kernel."""

from treasury_kernel.selectors.account_selector import AccountSelector
from treasury_kernel.selectors.base import BaseSelector
from treasury_kernel.selectors.operation_selector import OperationSelector
from treasury_kernel.selectors.settlement_selector import SettlementSelector
from treasury_kernel.selectors.treasury_selector import TreasurySelector

__all__ = [
    "AccountSelector",
    "BaseSelector",
    "OperationSelector",
    "SettlementSelector",
    "TreasurySelector",
]
