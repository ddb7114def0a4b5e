"""PAYG and periodic reconcilers."""

from treasury_sync.reconcilers.base import BaseReconciler
from treasury_sync.reconcilers.payg import PaygReconciler
from treasury_sync.reconcilers.periodic import PeriodicReconciler

__all__ = ["BaseReconciler", "PaygReconciler", "PeriodicReconciler"]
