"""
AccountResolver -- maps a payment reference to a beneficiary address.

Responsibility:
    Resolves the free-text reference of a bank transfer to the account
    registered for it in one treasury.  Two schemes exist, chosen by the
    treasury's feed credentials:

        structured    digits of the reference must form a valid 12-digit
                      mod-97 structured id; looked up in treasury_account.
        unstructured  the cleaned reference is looked up verbatim in
                      treasury_account_message.

    No fuzzy matching: anything that does not match exactly resolves to
    ``None`` and the reconciler routes the operation to manual review.

Lifecycle:
    One resolver per reconciliation batch.  Each distinct ``(message,
    treasury_id)`` hits the store at most once per batch; lookup errors
    are not cached so the next batch retries them.  Every store read runs
    in its own SAVEPOINT, so a failed read leaves the caller's transaction
    usable for the rest of the batch.

Failure modes:
    - AccountLookupError: the account store read failed.
"""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from treasury_kernel.domain.structured_message import (
    clean_message,
    extract_id_from_message,
    is_valid_structured_id,
)
from treasury_kernel.domain.types import MessageType
from treasury_kernel.exceptions import AccountLookupError
from treasury_kernel.logging_config import get_logger
from treasury_kernel.selectors.account_selector import AccountSelector

logger = get_logger("services.account_resolver")


class AccountResolver:
    """Batch-scoped, memoizing reference -> account lookup."""

    def __init__(
        self,
        session: Session,
        message_type: MessageType = MessageType.STRUCTURED,
    ):
        self._session = session
        self._accounts = AccountSelector(session)
        self._message_type = MessageType(message_type)
        self._memo: dict[tuple[str, int], str | None] = {}
        self.store_reads = 0

    def resolve(self, message: str, treasury_id: int) -> str | None:
        """
        Raises:
            AccountLookupError: If the account store cannot be read.
        """
        key = (message, treasury_id)
        if key in self._memo:
            return self._memo[key]

        account = self._lookup(message, treasury_id)
        self._memo[key] = account
        return account

    def _lookup(self, message: str, treasury_id: int) -> str | None:
        if self._message_type == MessageType.UNSTRUCTURED:
            reference = clean_message(message)
            if not reference:
                return None
            return self._read(
                message, treasury_id,
                lambda: self._accounts.account_for_message(reference, treasury_id),
            )

        structured_id = extract_id_from_message(message)
        if not is_valid_structured_id(structured_id):
            logger.debug(
                "structured_id_invalid",
                extra={"treasury_id": treasury_id, "digits": structured_id},
            )
            return None

        def read_account() -> str | None:
            found = self._accounts.by_structured_id(structured_id, treasury_id)
            return found.account if found is not None else None

        return self._read(message, treasury_id, read_account)

    def _read(self, message, treasury_id, query):
        self.store_reads += 1
        try:
            with self._session.begin_nested():
                return query()
        except SQLAlchemyError as exc:
            logger.warning(
                "account_lookup_failed",
                extra={"treasury_id": treasury_id, "reference": message},
                exc_info=True,
            )
            raise AccountLookupError(message, treasury_id, str(exc)) from exc
