"""
Tests for PaygReconciler.

Ingestion is idempotent across runs, unresolvable references go to manual
review, and a failed account lookup for one transaction neither blocks the
rest of the batch nor lets the cursor move past it.
"""

import re
from datetime import timedelta

import pytest
from sqlalchemy import event, select
from sqlalchemy.exc import OperationalError

from treasury_kernel.domain.types import Direction, OperationStatus
from treasury_kernel.models.operation import TreasuryOperationModel
from treasury_kernel.selectors.account_selector import AccountSelector
from treasury_kernel.selectors.operation_selector import OperationSelector
from treasury_kernel.services.operation_store import OperationStore

from treasury_sync.domain.types import SyncOutcomeStatus
from treasury_sync.reconcilers.payg import PaygReconciler

from tests.conftest import DEFAULT_NOW, FakeTransactionSource, raw_tx


def _at(days_ago: int):
    return DEFAULT_NOW - timedelta(days=days_ago)


def _rows(session, treasury_id):
    return {
        m.id: m.to_dto()
        for m in session.scalars(
            select(TreasuryOperationModel).where(
                TreasuryOperationModel.treasury_id == treasury_id,
            )
        )
    }


class ReplayingSource(FakeTransactionSource):
    """Feed that ignores the resume point and re-sends everything."""

    def get_all_transactions_until_id(self, account_ref, since_id):
        return super().get_all_transactions_until_id(account_ref, None)


@pytest.fixture
def treasury(make_treasury):
    return make_treasury(strategy="payg")


@pytest.fixture
def alice_id(treasury, make_account):
    return make_account(treasury.id, 1, "0xAlice")


@pytest.fixture
def fail_lookups(monkeypatch):
    """Make the account store raise for the given structured ids."""

    def _install(*failing_ids):
        original = AccountSelector.by_structured_id

        def flaky(self, structured_id, treasury_id):
            if structured_id in failing_ids:
                raise OperationalError("SELECT", {}, Exception("database is locked"))
            return original(self, structured_id, treasury_id)

        monkeypatch.setattr(AccountSelector, "by_structured_id", flaky)

    return _install


_ACCOUNT_TABLE = re.compile(r"\btreasury_account\b")


@pytest.fixture
def broken_account_reads(engine):
    """Make account reads for the given structured ids fail in the database.

    The statement is pointed at a missing table, so the driver raises and
    the failure happens inside the open transaction.  Returns the list of
    executed statements.
    """
    statements: list[str] = []
    failing: set[str] = set()

    def before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)
        if _ACCOUNT_TABLE.search(statement) and failing.intersection(parameters or ()):
            statement = _ACCOUNT_TABLE.sub("treasury_account_gone", statement)
        return statement, parameters

    event.listen(engine, "before_cursor_execute", before_cursor_execute, retval=True)

    def _install(*structured_ids):
        failing.update(structured_ids)
        return statements

    yield _install
    event.remove(engine, "before_cursor_execute", before_cursor_execute)


# =============================================================================
# Ingestion
# =============================================================================


class TestPaygIngestion:

    def test_operations_written_pending(self, session, clock, treasury, alice_id):
        source = FakeTransactionSource(
            [
                raw_tx("t1", 1250, alice_id, _at(2)),
                raw_tx("t2", -300, alice_id, _at(1)),
            ]
        )
        outcome = PaygReconciler(session, source, clock).sync(treasury)
        session.commit()

        assert outcome.status == SyncOutcomeStatus.SUCCEEDED
        assert outcome.ingestion.stored == 2
        rows = _rows(session, treasury.id)
        assert rows["t1"].status == OperationStatus.PENDING
        assert rows["t1"].direction == Direction.IN
        assert rows["t1"].amount == 1250
        assert rows["t1"].account == "0xAlice"
        assert rows["t2"].direction == Direction.OUT
        assert rows["t2"].amount == 300

    def test_formatted_reference_stored_clean(self, session, clock, treasury, alice_id):
        source = FakeTransactionSource([raw_tx("t1", 100, "+++000/0000/00101+++")])
        PaygReconciler(session, source, clock).sync(treasury)
        session.commit()

        row = _rows(session, treasury.id)["t1"]
        assert row.message == "000000000101"
        assert row.account == "0xAlice"

    def test_first_run_reads_full_history(self, session, clock, treasury):
        source = FakeTransactionSource()
        PaygReconciler(session, source, clock).sync(treasury)
        assert source.calls == [(f"account-{treasury.id}", None)]

    def test_empty_feed(self, session, clock, treasury, captured_logs):
        outcome = PaygReconciler(session, FakeTransactionSource(), clock).sync(treasury)
        assert outcome.ingestion.fetched == 0
        assert any(r["message"] == "no_transactions_to_sync" for r in captured_logs())


class TestIdempotency:

    def test_same_transaction_twice_one_row(self, session_factory, clock, treasury, alice_id):
        tx = raw_tx("t1", 500, alice_id, _at(1))

        for _ in range(2):
            s = session_factory()
            PaygReconciler(s, FakeTransactionSource([tx]), clock).sync(treasury)
            s.commit()
            s.close()

        s = session_factory()
        rows = _rows(s, treasury.id)
        s.close()
        assert list(rows) == ["t1"]
        assert rows["t1"].amount == 500

    def test_existing_row_unchanged_after_replay(self, session, clock, treasury, alice_id):
        tx = raw_tx("t1", 500, alice_id, _at(1))
        PaygReconciler(session, FakeTransactionSource([tx]), clock).sync(treasury)
        OperationStore(session, clock).mark_confirming("t1", treasury.id, "0xhash")
        session.commit()

        replay = ReplayingSource([raw_tx("t1", 999, alice_id, _at(1))])
        outcome = PaygReconciler(session, replay, clock).sync(treasury)
        session.commit()

        assert outcome.ingestion.stored == 0
        assert outcome.ingestion.duplicates == 1
        row = _rows(session, treasury.id)["t1"]
        assert row.amount == 500
        assert row.status == OperationStatus.CONFIRMING

    def test_second_run_resumes_from_cursor(self, session, clock, treasury, alice_id):
        source = FakeTransactionSource(
            [raw_tx("t1", 100, alice_id, _at(3)), raw_tx("t2", 100, alice_id, _at(2))]
        )
        PaygReconciler(session, source, clock).sync(treasury)
        session.commit()

        source.transactions.append(raw_tx("t3", 100, alice_id, _at(1)))
        outcome = PaygReconciler(session, source, clock).sync(treasury)
        session.commit()

        assert source.calls[-1][1] == "t2"
        assert outcome.ingestion.fetched == 1
        assert outcome.ingestion.cursor_operation_id == "t3"


# =============================================================================
# Resolution
# =============================================================================


class TestUnresolved:

    @pytest.mark.parametrize(
        "reference",
        [
            "000000000202",  # valid format, not registered
            "000000000102",  # bad check digits
            "monthly dues",  # free text
            "",
        ],
    )
    def test_routed_to_manual_review(self, session, clock, treasury, alice_id, reference):
        source = FakeTransactionSource([raw_tx("t1", 100, reference)])
        outcome = PaygReconciler(session, source, clock).sync(treasury)
        session.commit()

        row = _rows(session, treasury.id)["t1"]
        assert row.status == OperationStatus.PROCESSED_ACCOUNT_NOT_FOUND
        assert row.account is None
        assert outcome.unresolved == 1

    def test_unstructured_treasury(self, session, clock, make_treasury, make_message_mapping):
        treasury = make_treasury(strategy="payg", message_type="unstructured")
        make_message_mapping(treasury.id, "Dues Alice", "0xAlice")
        source = FakeTransactionSource(
            [raw_tx("t1", 100, "Dues Alice", _at(2)), raw_tx("t2", 100, "Dues Bob", _at(1))]
        )
        PaygReconciler(session, source, clock).sync(treasury)
        session.commit()

        rows = _rows(session, treasury.id)
        assert rows["t1"].account == "0xAlice"
        assert rows["t2"].status == OperationStatus.PROCESSED_ACCOUNT_NOT_FOUND


class TestLookupFailureIsolation:

    def test_other_operations_stored(
        self, session, clock, treasury, make_account, fail_lookups,
    ):
        ids = [make_account(treasury.id, seq, f"0xUser{seq}") for seq in range(1, 6)]
        fail_lookups(ids[2])
        source = FakeTransactionSource(
            [raw_tx(f"t{i}", 100, sid, _at(10 - i)) for i, sid in enumerate(ids)]
        )

        outcome = PaygReconciler(session, source, clock).sync(treasury)
        session.commit()

        rows = _rows(session, treasury.id)
        assert sorted(rows) == ["t0", "t1", "t3", "t4"]
        assert all(r.status == OperationStatus.PENDING for r in rows.values())
        assert outcome.ingestion.lookup_failures == 1

    def test_failed_statement_rolled_back_to_savepoint(
        self, session, clock, treasury, make_account, broken_account_reads,
    ):
        ids = [make_account(treasury.id, seq, f"0xUser{seq}") for seq in range(1, 6)]
        statements = broken_account_reads(ids[2])
        session.expunge_all()
        source = FakeTransactionSource(
            [raw_tx(f"t{i}", 100, sid, _at(10 - i)) for i, sid in enumerate(ids)]
        )

        outcome = PaygReconciler(session, source, clock).sync(treasury)
        session.commit()

        assert sorted(_rows(session, treasury.id)) == ["t0", "t1", "t3", "t4"]
        assert outcome.ingestion.lookup_failures == 1
        assert outcome.ingestion.stored == 4
        assert any(s.startswith("ROLLBACK TO SAVEPOINT") for s in statements)

    def test_cursor_stops_before_skipped(
        self, session, clock, treasury, make_account, fail_lookups,
    ):
        ids = [make_account(treasury.id, seq, f"0xUser{seq}") for seq in range(1, 4)]
        fail_lookups(ids[1])
        source = FakeTransactionSource(
            [raw_tx(f"t{i}", 100, sid, _at(10 - i)) for i, sid in enumerate(ids)]
        )

        outcome = PaygReconciler(session, source, clock).sync(treasury)
        session.commit()

        assert outcome.ingestion.cursor_operation_id == "t0"
        assert OperationSelector(session).resume_operation_id(treasury.id) == "t0"

    def test_skipped_operation_recovered_next_run(
        self, session, clock, treasury, make_account, monkeypatch, fail_lookups,
    ):
        ids = [make_account(treasury.id, seq, f"0xUser{seq}") for seq in range(1, 4)]
        source = FakeTransactionSource(
            [raw_tx(f"t{i}", 100, sid, _at(10 - i)) for i, sid in enumerate(ids)]
        )

        fail_lookups(ids[1])
        PaygReconciler(session, source, clock).sync(treasury)
        session.commit()
        monkeypatch.undo()

        outcome = PaygReconciler(session, source, clock).sync(treasury)
        session.commit()

        assert source.calls[-1][1] == "t0"
        assert sorted(_rows(session, treasury.id)) == ["t0", "t1", "t2"]
        assert outcome.ingestion.stored == 1
        assert outcome.ingestion.duplicates == 1
        assert outcome.ingestion.cursor_operation_id == "t2"

    def test_oldest_skipped_holds_full_history(
        self, session, clock, treasury, make_account, fail_lookups,
    ):
        ids = [make_account(treasury.id, seq, f"0xUser{seq}") for seq in range(1, 3)]
        fail_lookups(ids[0])
        source = FakeTransactionSource(
            [raw_tx(f"t{i}", 100, sid, _at(10 - i)) for i, sid in enumerate(ids)]
        )

        PaygReconciler(session, source, clock).sync(treasury)
        session.commit()

        selector = OperationSelector(session)
        assert sorted(_rows(session, treasury.id)) == ["t1"]
        # Without the held cursor the latest-operation fallback would skip t0
        assert selector.sync_cursor(treasury.id).operation_id is None
        assert selector.resume_operation_id(treasury.id) is None
