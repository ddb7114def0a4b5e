"""
Typed Exception Hierarchy for the Treasury Kernel.

Every error carries a machine-readable ``code`` class attribute and its
context as structured attributes, so callers catch by type and log by
field instead of parsing messages.

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    TreasuryKernelError (base)
    |
    +-- SourceError
    |   +-- TransactionSourceError
    |   +-- TokenRequestError
    |
    +-- ResolutionError
    |   +-- AccountLookupError
    |
    +-- StoreError
    |   +-- OperationStoreError
    |
    +-- OperationError
    |   +-- OperationNotFoundError
    |   +-- InvalidStatusTransitionError
    |   +-- OperationStateConflictError
    |   +-- ImmutabilityViolationError
    |
    +-- ConfigurationError
    |   +-- TreasuryNotFoundError
    |   +-- MissingStrategyConfigError
    |   +-- InvalidStrategyConfigError
    |   +-- UnsupportedIntervalError
    |   +-- UnsupportedSyncStrategyError
    |
    +-- StructuredMessageError
        +-- InvalidStructuredMessageError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category      | Code                        | When Raised
--------------|-----------------------------|-------------------------------------------
Source        | TRANSACTION_SOURCE_ERROR    | Bank feed request failed (transient)
              | TOKEN_REQUEST_FAILED        | Access token could not be obtained
--------------|-----------------------------|-------------------------------------------
Resolution    | ACCOUNT_LOOKUP_FAILED       | Account store read failed for one message
--------------|-----------------------------|-------------------------------------------
Store         | OPERATION_STORE_ERROR       | Upsert/update against the store failed
--------------|-----------------------------|-------------------------------------------
Operation     | OPERATION_NOT_FOUND         | (id, treasury_id) does not exist
              | INVALID_STATUS_TRANSITION   | Transition not allowed by the state machine
              | OPERATION_STATE_CONFLICT    | Row changed status under a conditional update
              | IMMUTABILITY_VIOLATION      | Modifying a terminal operation
--------------|-----------------------------|-------------------------------------------
Configuration | TREASURY_NOT_FOUND          | Treasury id does not exist
              | MISSING_STRATEGY_CONFIG     | Periodic treasury without usable config
              | INVALID_STRATEGY_CONFIG     | Config present but malformed
              | UNSUPPORTED_INTERVAL        | Interval unit without aggregation rules
              | UNSUPPORTED_SYNC_STRATEGY   | Strategy not payg/periodic
--------------|-----------------------------|-------------------------------------------
Structured    | INVALID_STRUCTURED_MESSAGE  | Not a 12-digit mod-97 structured id

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Resolution failures for ONE operation are contained by the reconciler:

    try:
        account = resolver.resolve(message, treasury_id)
    except AccountLookupError:
        logger.warning("account_lookup_failed", exc_info=True)
        # skip this operation; the cursor is not advanced past it

2. Configuration errors skip aggregation only; ingestion is kept:

    except ConfigurationError as e:
        outcome = outcome.with_aggregation_error(e.code)
"""


class TreasuryKernelError(Exception):
    """
    Base exception for all treasury kernel errors.

    All subclasses must have a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "TREASURY_KERNEL_ERROR"


# Source-related exceptions


class SourceError(TreasuryKernelError):
    """Base exception for External Event Source failures."""

    code: str = "SOURCE_ERROR"


class TransactionSourceError(SourceError):
    """Fetching transactions from the bank feed failed."""

    code: str = "TRANSACTION_SOURCE_ERROR"

    def __init__(self, provider: str, reason: str, status_code: int | None = None):
        self.provider = provider
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"{provider} transaction request failed: {reason}")


class TokenRequestError(SourceError):
    """The provider refused or failed to issue an access token."""

    code: str = "TOKEN_REQUEST_FAILED"

    def __init__(self, provider: str, reason: str):
        self.provider = provider
        self.reason = reason
        super().__init__(f"{provider} token request failed: {reason}")


# Resolution-related exceptions


class ResolutionError(TreasuryKernelError):
    """Base exception for account resolution errors."""

    code: str = "RESOLUTION_ERROR"


class AccountLookupError(ResolutionError):
    """
    Reading the account store failed for one message.

    Not the same as "no account found" -- that is a normal ``None`` result.
    """

    code: str = "ACCOUNT_LOOKUP_FAILED"

    def __init__(self, message: str, treasury_id: int, reason: str):
        self.message = message
        self.treasury_id = treasury_id
        self.reason = reason
        super().__init__(
            f"Account lookup failed for message {message!r} "
            f"in treasury {treasury_id}: {reason}"
        )


# Store-related exceptions


class StoreError(TreasuryKernelError):
    """Base exception for Operation Store failures."""

    code: str = "STORE_ERROR"


class OperationStoreError(StoreError):
    """A write against the operation store failed; the run must be retried."""

    code: str = "OPERATION_STORE_ERROR"

    def __init__(self, treasury_id: int, action: str, reason: str):
        self.treasury_id = treasury_id
        self.action = action
        self.reason = reason
        super().__init__(
            f"Operation store {action} failed for treasury {treasury_id}: {reason}"
        )


# Operation-related exceptions


class OperationError(TreasuryKernelError):
    """Base exception for operation lifecycle errors."""

    code: str = "OPERATION_ERROR"


class OperationNotFoundError(OperationError):
    """Operation with the given key does not exist."""

    code: str = "OPERATION_NOT_FOUND"

    def __init__(self, operation_id: str, treasury_id: int):
        self.operation_id = operation_id
        self.treasury_id = treasury_id
        super().__init__(
            f"Operation not found: {operation_id} (treasury {treasury_id})"
        )


class InvalidStatusTransitionError(OperationError):
    """The requested status change is not an edge of the state machine."""

    code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, from_status: str, to_status: str):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid operation status transition: {from_status} -> {to_status}"
        )


class OperationStateConflictError(OperationError):
    """
    A conditional update matched no row.

    Another run moved the operation out of ``expected_status`` first.
    """

    code: str = "OPERATION_STATE_CONFLICT"

    def __init__(self, operation_id: str, treasury_id: int, expected_status: str):
        self.operation_id = operation_id
        self.treasury_id = treasury_id
        self.expected_status = expected_status
        super().__init__(
            f"Operation {operation_id} (treasury {treasury_id}) is no longer "
            f"in status {expected_status}"
        )


class ImmutabilityViolationError(OperationError):
    """Attempted to modify or delete an operation in a terminal state."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


# Configuration-related exceptions


class ConfigurationError(TreasuryKernelError):
    """Base exception for treasury configuration errors."""

    code: str = "CONFIGURATION_ERROR"


class TreasuryNotFoundError(ConfigurationError):
    """Treasury with the given id does not exist."""

    code: str = "TREASURY_NOT_FOUND"

    def __init__(self, treasury_id: int):
        self.treasury_id = treasury_id
        super().__init__(f"Treasury not found: {treasury_id}")


class MissingStrategyConfigError(ConfigurationError):
    """A periodic treasury lacks the config needed to aggregate."""

    code: str = "MISSING_STRATEGY_CONFIG"

    def __init__(self, treasury_id: int, field: str | None = None):
        self.treasury_id = treasury_id
        self.field = field
        detail = f"'{field}' is required" if field else "no sync_strategy_config"
        super().__init__(
            f"Periodic treasury {treasury_id} cannot aggregate: {detail}"
        )


class InvalidStrategyConfigError(ConfigurationError):
    """The stored sync_strategy_config cannot be parsed."""

    code: str = "INVALID_STRATEGY_CONFIG"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid sync strategy config: {reason}")


class UnsupportedIntervalError(ConfigurationError):
    """Interval unit is declared in the config type but has no aggregation rules."""

    code: str = "UNSUPPORTED_INTERVAL"

    def __init__(self, interval_unit: str):
        self.interval_unit = interval_unit
        super().__init__(
            f"Periodic aggregation is not implemented for interval unit "
            f"'{interval_unit}'"
        )


class UnsupportedSyncStrategyError(ConfigurationError):
    """Treasury strategy has no reconciler."""

    code: str = "UNSUPPORTED_SYNC_STRATEGY"

    def __init__(self, treasury_id: int, strategy: str):
        self.treasury_id = treasury_id
        self.strategy = strategy
        super().__init__(
            f"Unsupported sync strategy '{strategy}' for treasury {treasury_id}"
        )


# Structured message exceptions


class StructuredMessageError(TreasuryKernelError):
    """Base exception for structured payment reference errors."""

    code: str = "STRUCTURED_MESSAGE_ERROR"


class InvalidStructuredMessageError(StructuredMessageError):
    """Digits do not form a valid 12-digit mod-97 structured id."""

    code: str = "INVALID_STRUCTURED_MESSAGE"

    def __init__(self, value: str, reason: str):
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid structured message {value!r}: {reason}")
