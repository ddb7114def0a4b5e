"""Services - write side of the kernel (flush only, never commit)."""

from treasury_kernel.services.account_registry import AccountRegistry
from treasury_kernel.services.account_resolver import AccountResolver
from treasury_kernel.services.base import BaseService
from treasury_kernel.services.operation_store import OperationStore

__all__ = [
    "AccountRegistry",
    "AccountResolver",
    "BaseService",
    "OperationStore",
]
