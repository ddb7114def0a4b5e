"""
treasury_sync -- Scheduled treasury reconciliation.

Pulls bank-feed transactions for every ponto treasury, reconciles them
into operations (pay-as-you-go or periodic), and aggregates periodic
contributions into settleable representatives.

Architecture:
    treasury_sync/ sits on top of treasury_kernel and treasury_ingestion.
    Nothing below it imports from here.
"""
