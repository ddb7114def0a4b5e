"""External Event Source adapters (network I/O only, no DB)."""

from treasury_ingestion.adapters.base import TransactionSource
from treasury_ingestion.adapters.ponto import (
    AccessTokenHolder,
    PontoClient,
    ponto_transaction_to_raw,
)

__all__ = [
    "AccessTokenHolder",
    "PontoClient",
    "TransactionSource",
    "ponto_transaction_to_raw",
]
