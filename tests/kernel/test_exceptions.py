"""Tests for the typed exception hierarchy."""

import pytest

from treasury_kernel import exceptions as exc_module
from treasury_kernel.exceptions import (
    AccountLookupError,
    ConfigurationError,
    MissingStrategyConfigError,
    OperationStateConflictError,
    TransactionSourceError,
    TreasuryKernelError,
)


def _error_classes():
    return [
        obj
        for obj in vars(exc_module).values()
        if isinstance(obj, type) and issubclass(obj, TreasuryKernelError)
    ]


class TestHierarchy:

    def test_every_error_has_a_unique_code(self):
        codes = [cls.code for cls in _error_classes()]
        assert len(codes) == len(set(codes))

    @pytest.mark.parametrize("cls", _error_classes(), ids=lambda c: c.__name__)
    def test_code_is_upper_snake(self, cls):
        assert cls.code == cls.code.upper()
        assert " " not in cls.code

    def test_configuration_errors_share_base(self):
        assert issubclass(MissingStrategyConfigError, ConfigurationError)


class TestContext:

    def test_source_error_carries_status(self):
        err = TransactionSourceError("ponto", "HTTP 503", status_code=503)
        assert err.provider == "ponto"
        assert err.status_code == 503
        assert "HTTP 503" in str(err)

    def test_lookup_error_fields(self):
        err = AccountLookupError("000000000101", 4, "db down")
        assert err.treasury_id == 4
        assert err.message == "000000000101"
        assert err.code == "ACCOUNT_LOOKUP_FAILED"

    def test_state_conflict_fields(self):
        err = OperationStateConflictError("tx-1", 2, "pending-periodic")
        assert err.operation_id == "tx-1"
        assert err.expected_status == "pending-periodic"

    def test_missing_config_names_field(self):
        err = MissingStrategyConfigError(9, "day_of_month")
        assert "day_of_month" in str(err)
        assert err.field == "day_of_month"
