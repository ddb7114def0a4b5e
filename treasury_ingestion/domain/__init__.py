"""Pure ingestion types (ZERO I/O)."""

from treasury_ingestion.domain.types import CardEvent, CardEventKind

__all__ = ["CardEvent", "CardEventKind"]
