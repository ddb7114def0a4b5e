"""Pure mappings from source records to kernel DTOs."""

from treasury_ingestion.mapping.operations import raw_transaction_to_operation

__all__ = ["raw_transaction_to_operation"]
