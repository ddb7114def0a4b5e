"""Ingestion services (DB writes through treasury_kernel services)."""

from treasury_ingestion.services.card_events import (
    CardEventIngestor,
    card_event_to_operation,
)

__all__ = ["CardEventIngestor", "card_event_to_operation"]
