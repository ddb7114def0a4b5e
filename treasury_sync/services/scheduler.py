"""
SyncScheduler -- In-process polling loop around SyncRunner.

Contract:
    ``tick()`` performs one scheduled sync; ``start()`` / ``stop()`` run it
    on a background thread every ``tick_interval_seconds``.  A failing tick
    is logged and the loop keeps going.

Non-goals:
    - NOT a distributed scheduler; one process per deployment.
"""

from __future__ import annotations

import threading
from typing import Callable

from treasury_kernel.logging_config import get_logger

from treasury_sync.domain.types import SyncRunResult
from treasury_sync.services.runner import SyncRunner

logger = get_logger("sync.scheduler")


class SyncScheduler:
    """Background thread calling a fresh SyncRunner per tick."""

    def __init__(
        self,
        runner_factory: Callable[[], SyncRunner],
        tick_interval_seconds: float = 300,
    ):
        self._runner_factory = runner_factory
        self._tick_interval = tick_interval_seconds
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self.ticks = 0

    def tick(self) -> SyncRunResult | None:
        """Run one sync (public for testing).  Returns None if it crashed."""
        self.ticks += 1
        try:
            return self._runner_factory().run_scheduled_sync()
        except Exception:
            logger.exception("sync_tick_failed")
            return None

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run_loop,
            name="treasury-sync-scheduler",
            daemon=True,
        )
        self._thread.start()
        logger.info("scheduler_started", extra={"tick_interval": self._tick_interval})

    def stop(self, timeout: float = 30.0) -> None:
        """Signal stop and wait for the current tick to finish."""
        self._stop_event.set()
        if self._thread is not None and self._thread.is_alive():
            self._thread.join(timeout=timeout)
        logger.info("scheduler_stopped")

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _run_loop(self) -> None:
        while not self._stop_event.is_set():
            self.tick()
            self._stop_event.wait(timeout=self._tick_interval)
