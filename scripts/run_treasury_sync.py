#!/usr/bin/env python3
"""
Run the scheduled treasury bank-feed sync.

One invocation reconciles every ponto treasury (or a single one with
--treasury-id) and exits 0 when no treasury failed, 1 otherwise.  Meant to
be called by cron or another external scheduler; --loop keeps the process
alive and syncs every ``tick_interval_seconds`` instead.

Usage:
    python3 scripts/run_treasury_sync.py [--config PATH] [options]

Examples:
    # One run with settings from config/treasury_sync.yaml
    python3 scripts/run_treasury_sync.py --config config/treasury_sync.yaml

    # Only treasury 12
    python3 scripts/run_treasury_sync.py --config config/treasury_sync.yaml --treasury-id 12

    # In-process polling loop (Ctrl-C to stop)
    python3 scripts/run_treasury_sync.py --config config/treasury_sync.yaml --loop
"""

from __future__ import annotations

import argparse
import sys
import threading
from datetime import timedelta
from pathlib import Path

# Project root on sys.path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Reconcile treasury bank feeds into operations.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="YAML settings file (TREASURY_* environment variables override it).",
    )
    parser.add_argument(
        "--db-url",
        default=None,
        help="Database URL (overrides the settings file).",
    )
    parser.add_argument(
        "--treasury-id",
        type=int,
        default=None,
        help="Sync only this treasury.",
    )
    parser.add_argument(
        "--loop",
        action="store_true",
        help="Keep running and sync every tick_interval_seconds.",
    )
    parser.add_argument(
        "--create-tables",
        action="store_true",
        help="Create missing tables before syncing.",
    )
    return parser.parse_args()


def main() -> int:
    args = _parse_args()

    from treasury_config import load_settings

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as e:
        print(f"ERROR: Failed to load settings: {e}", file=sys.stderr)
        return 1

    import httpx

    from treasury_ingestion.adapters.ponto import AccessTokenHolder
    from treasury_kernel.db.engine import (
        create_tables,
        get_session_factory,
        init_engine_from_url,
    )
    from treasury_kernel.domain.clock import SystemClock
    from treasury_kernel.exceptions import TreasuryNotFoundError
    from treasury_kernel.logging_config import configure_logging
    from treasury_sync.domain.types import SyncOutcomeStatus
    from treasury_sync.services.runner import PontoSourceFactory, SyncRunner
    from treasury_sync.services.scheduler import SyncScheduler

    configure_logging(level=settings.log_level)

    try:
        init_engine_from_url(args.db_url or settings.database_url)
    except Exception as e:
        print(f"ERROR: Database init failed: {e}", file=sys.stderr)
        return 1
    if args.create_tables:
        create_tables()

    clock = SystemClock()
    http_client = httpx.Client(timeout=settings.http_timeout_seconds)

    def build_runner() -> SyncRunner:
        # Fresh token holder per run: no token outlives its run
        tokens = AccessTokenHolder(
            clock, timedelta(seconds=settings.token_expiry_margin_seconds),
        )
        return SyncRunner(
            get_session_factory(),
            PontoSourceFactory(http_client, tokens, settings.ponto_api_url),
            clock=clock,
            run_deadline_seconds=settings.run_deadline_seconds,
        )

    try:
        if args.loop:
            scheduler = SyncScheduler(build_runner, settings.tick_interval_seconds)
            scheduler.start()
            try:
                threading.Event().wait()
            except KeyboardInterrupt:
                print("Stopping...")
            finally:
                scheduler.stop()
            return 0

        if args.treasury_id is not None:
            try:
                outcome = build_runner().run_treasury(args.treasury_id)
            except TreasuryNotFoundError as e:
                print(f"ERROR: {e}", file=sys.stderr)
                return 1
            print(
                f"Treasury {outcome.treasury_id}: {outcome.status.value} "
                f"(fetched={outcome.fetched}, stored={outcome.stored}, "
                f"unresolved={outcome.unresolved}, promotions={outcome.promotions})"
            )
            return 0 if outcome.status != SyncOutcomeStatus.FAILED else 1

        result = build_runner().run_scheduled_sync()
        for outcome in result.outcomes:
            line = f"  Treasury {outcome.treasury_id} [{outcome.strategy}]: {outcome.status.value}"
            if outcome.error_code:
                line += f" ({outcome.error_code})"
            print(line)
        print(
            f"Succeeded: {result.succeeded}, Failed: {result.failed}, "
            f"Skipped: {result.skipped}"
        )
        return 0 if result.ok else 1
    finally:
        http_client.close()


if __name__ == "__main__":
    sys.exit(main())
