"""
Tests for AccountResolver.

Structured and unstructured lookups, per-batch memoization and the
difference between "no account" and "store unavailable".
"""

import pytest
from sqlalchemy.exc import OperationalError

from treasury_kernel.domain.types import MessageType
from treasury_kernel.exceptions import AccountLookupError
from treasury_kernel.selectors.account_selector import AccountSelector
from treasury_kernel.services.account_resolver import AccountResolver


@pytest.fixture
def treasury(make_treasury):
    return make_treasury()


class TestStructured:

    def test_resolves_registered_id(self, session, treasury, make_account):
        make_account(treasury.id, 1, "0xAlice")
        resolver = AccountResolver(session)
        assert resolver.resolve("000000000101", treasury.id) == "0xAlice"

    def test_resolves_formatted_reference(self, session, treasury, make_account):
        make_account(treasury.id, 1, "0xAlice")
        resolver = AccountResolver(session)
        assert resolver.resolve("+++000/0000/00101+++", treasury.id) == "0xAlice"

    def test_differently_grouped_reference(self, session, treasury, make_account):
        make_account(treasury.id, 1, "0xAlice")
        resolver = AccountResolver(session)
        assert resolver.resolve("+++00/0000/000101+++", treasury.id) == "0xAlice"

    def test_unknown_id_is_none(self, session, treasury):
        assert AccountResolver(session).resolve("000000000202", treasury.id) is None

    def test_invalid_check_digits_skip_store(self, session, treasury, make_account):
        make_account(treasury.id, 1, "0xAlice")
        resolver = AccountResolver(session)
        assert resolver.resolve("000000000102", treasury.id) is None
        assert resolver.store_reads == 0

    def test_free_text_is_none(self, session, treasury):
        resolver = AccountResolver(session)
        assert resolver.resolve("thanks for the coffee", treasury.id) is None
        assert resolver.store_reads == 0

    def test_scoped_to_treasury(self, session, make_treasury, make_account):
        first = make_treasury()
        second = make_treasury()
        make_account(first.id, 1, "0xAlice")
        assert AccountResolver(session).resolve("000000000101", second.id) is None


class TestUnstructured:

    def test_exact_message(self, session, treasury, make_message_mapping):
        make_message_mapping(treasury.id, "Dues Alice", "0xAlice")
        resolver = AccountResolver(session, MessageType.UNSTRUCTURED)
        assert resolver.resolve("  Dues Alice ", treasury.id) == "0xAlice"

    def test_no_fuzzy_match(self, session, treasury, make_message_mapping):
        make_message_mapping(treasury.id, "Dues Alice", "0xAlice")
        resolver = AccountResolver(session, MessageType.UNSTRUCTURED)
        assert resolver.resolve("dues alice", treasury.id) is None

    def test_empty_message(self, session, treasury):
        resolver = AccountResolver(session, MessageType.UNSTRUCTURED)
        assert resolver.resolve("  ", treasury.id) is None
        assert resolver.store_reads == 0


class TestMemoization:

    def test_one_read_per_distinct_message(self, session, treasury, make_account):
        make_account(treasury.id, 1, "0xAlice")
        resolver = AccountResolver(session)
        for _ in range(5):
            resolver.resolve("000000000101", treasury.id)
        resolver.resolve("000000000202", treasury.id)
        assert resolver.store_reads == 2

    def test_misses_are_memoized(self, session, treasury):
        resolver = AccountResolver(session)
        resolver.resolve("000000000202", treasury.id)
        resolver.resolve("000000000202", treasury.id)
        assert resolver.store_reads == 1

    def test_new_resolver_reads_again(self, session, treasury, make_account):
        make_account(treasury.id, 1, "0xAlice")
        AccountResolver(session).resolve("000000000101", treasury.id)
        resolver = AccountResolver(session)
        resolver.resolve("000000000101", treasury.id)
        assert resolver.store_reads == 1


class TestLookupFailure:

    def test_store_error_raises_and_is_not_memoized(
        self, session, treasury, monkeypatch,
    ):
        calls = {"n": 0}

        def broken(self, structured_id, treasury_id):
            calls["n"] += 1
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(AccountSelector, "by_structured_id", broken)
        resolver = AccountResolver(session)

        with pytest.raises(AccountLookupError) as exc_info:
            resolver.resolve("000000000101", treasury.id)
        assert exc_info.value.treasury_id == treasury.id

        with pytest.raises(AccountLookupError):
            resolver.resolve("000000000101", treasury.id)
        assert calls["n"] == 2
