"""
Treasury Kernel

Reconciliation core for treasury operations:
- Idempotent ingestion of external financial events
- Structured-message account resolution
- Periodic contribution aggregation and settlement promotion
- Explicit operation state machine
"""

__version__ = "0.1.0"
