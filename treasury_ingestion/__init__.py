"""
treasury_ingestion -- External Event Sources and event normalization.

Turns bank-feed transactions and card-processor events into
``TreasuryOperation`` DTOs.  Nothing in treasury_kernel imports from here.
"""
