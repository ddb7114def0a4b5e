"""
Pytest fixtures for the treasury reconciliation test suite.

Provides:
- A file-backed SQLite database per test (separate connections per session,
  so the sync runner's per-treasury sessions behave as in production)
- DeterministicClock
- Treasury / account factories and an in-memory transaction source
- Captured structured logs
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from io import StringIO
from typing import Iterator

import pytest

from treasury_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    reset_engine,
)
from treasury_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from treasury_kernel.domain.clock import DeterministicClock
from treasury_kernel.domain.structured_message import build_structured_id
from treasury_kernel.domain.types import RawTransaction, SyncProvider, Treasury
from treasury_kernel.exceptions import TransactionSourceError
from treasury_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from treasury_kernel.models.treasury import (
    TreasuryAccountMessageModel,
    TreasuryAccountModel,
    TreasuryModel,
)

UTC = timezone.utc

# Mid-month, well outside a day-28 monthly trigger window.
DEFAULT_NOW = datetime(2025, 3, 15, 12, 0, 0, tzinfo=UTC)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "slow: tests that start background threads"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture treasury_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "operations_inserted" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("treasury_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Database fixtures
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    eng = init_engine_from_url(f"sqlite:///{tmp_path / 'treasury.db'}")
    create_tables()
    yield eng
    drop_tables()
    reset_engine()


@pytest.fixture
def session_factory(engine):
    return get_session_factory()


@pytest.fixture
def session(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def without_immutability():
    """Disable the terminal-operation guards for the duration of a test."""
    unregister_immutability_listeners()
    yield
    register_immutability_listeners()


@pytest.fixture
def clock():
    return DeterministicClock(DEFAULT_NOW)


# =============================================================================
# Factories
# =============================================================================


@pytest.fixture
def make_treasury(session):
    """Insert a treasury row and return its DTO."""
    counter = {"next": 1}

    def _make(
        strategy: str = "payg",
        config: dict | None = None,
        provider: str = "ponto",
        message_type: str = "structured",
        treasury_id: int | None = None,
    ) -> Treasury:
        tid = treasury_id if treasury_id is not None else counter["next"]
        counter["next"] = tid + 1
        model = TreasuryModel(
            id=tid,
            token="0xToken",
            sync_provider=provider,
            sync_provider_credentials={
                "client_id": f"client-{tid}",
                "client_secret": "secret",
                "account_id": f"account-{tid}",
                "sync_message_type": message_type,
            },
            sync_strategy=strategy,
            sync_strategy_config=config,
        )
        session.add(model)
        session.commit()
        return model.to_dto()

    return _make


@pytest.fixture
def make_account(session):
    """Register ``account`` under the structured id of ``sequence``."""

    def _make(
        treasury_id: int,
        sequence: int,
        account: str,
        target: int | None = None,
    ) -> str:
        structured_id = build_structured_id(sequence)
        session.add(
            TreasuryAccountModel(
                id=structured_id,
                treasury_id=treasury_id,
                account=account,
                target=target,
                created_at=DEFAULT_NOW,
            )
        )
        session.commit()
        return structured_id

    return _make


@pytest.fixture
def make_message_mapping(session):
    def _make(treasury_id: int, message: str, account: str) -> None:
        session.add(
            TreasuryAccountMessageModel(
                message=message,
                treasury_id=treasury_id,
                account=account,
                created_at=DEFAULT_NOW,
            )
        )
        session.commit()

    return _make


def raw_tx(
    tx_id: str,
    amount: int,
    reference: str,
    created_at: datetime | None = None,
) -> RawTransaction:
    """Build a RawTransaction; ``amount`` is signed minor units."""
    created = created_at or DEFAULT_NOW - timedelta(days=1)
    return RawTransaction(
        id=tx_id,
        created_at=created,
        updated_at=created,
        amount_minor_units=amount,
        reference=reference,
    )


class FakeTransactionSource:
    """
    In-memory bank feed.

    Behaves like the Ponto feed: newest first, stopping at ``since_id``.
    """

    def __init__(self, transactions=(), error: Exception | None = None):
        self.transactions = list(transactions)
        self.error = error
        self.calls: list[tuple[str, str | None]] = []

    def get_all_transactions_until_id(
        self, account_ref: str, since_id: str | None,
    ) -> Iterator[RawTransaction]:
        self.calls.append((account_ref, since_id))
        if self.error is not None:
            raise self.error
        ordered = sorted(
            self.transactions, key=lambda t: (t.created_at, t.id), reverse=True,
        )
        for transaction in ordered:
            if transaction.id == since_id:
                return
            yield transaction


@pytest.fixture
def fake_source():
    return FakeTransactionSource()


@pytest.fixture
def failing_source():
    return FakeTransactionSource(
        error=TransactionSourceError("ponto", "connection reset"),
    )


__all__ = [
    "DEFAULT_NOW",
    "FakeTransactionSource",
    "SyncProvider",
    "raw_tx",
]
