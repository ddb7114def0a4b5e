"""
External Event Source protocol.

Contract:
    ``get_all_transactions_until_id`` yields every transaction newer than
    ``since_id`` (all history when ``since_id`` is None), lazily, page by
    page.  Order is whatever the provider returns; consumers must not rely
    on it.  Failures raise ``TransactionSourceError``.

Architecture: treasury_ingestion/adapters.  Network I/O only, no DB.
"""

from __future__ import annotations

from typing import Iterator, Protocol, runtime_checkable

from treasury_kernel.domain.types import RawTransaction


@runtime_checkable
class TransactionSource(Protocol):
    """Paginated feed of raw transactions for one bank account."""

    def get_all_transactions_until_id(
        self, account_ref: str, since_id: str | None,
    ) -> Iterator[RawTransaction]:
        ...
