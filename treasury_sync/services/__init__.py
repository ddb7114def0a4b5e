"""Sync orchestration: strategy selector and polling scheduler."""

from treasury_sync.services.runner import PontoSourceFactory, SyncRunner
from treasury_sync.services.scheduler import SyncScheduler

__all__ = ["PontoSourceFactory", "SyncRunner", "SyncScheduler"]
