"""
AccountRegistry -- registers beneficiaries under structured ids.

Responsibility:
    Write side of the "join" flow.  Allocates the next structured id of a
    treasury (highest existing sequence + 1, check digits appended) and
    stores the account with its optional target.  Registering the same
    address twice in a treasury returns the existing entry.

Failure modes:
    - IntegrityError retried under a SAVEPOINT when a concurrent
      registration claimed the same id.
    - InvalidStructuredMessageError when the 10-digit sequence space is
      exhausted.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from treasury_kernel.domain.clock import Clock, SystemClock
from treasury_kernel.domain.structured_message import (
    build_structured_id,
    is_valid_structured_id,
    parse_structured_id,
)
from treasury_kernel.domain.types import TreasuryAccount
from treasury_kernel.logging_config import get_logger
from treasury_kernel.models.treasury import (
    TreasuryAccountMessageModel,
    TreasuryAccountModel,
)
from treasury_kernel.selectors.account_selector import AccountSelector
from treasury_kernel.services.base import BaseService

logger = get_logger("services.account_registry")

_MAX_ALLOCATION_ATTEMPTS = 3


class AccountRegistry(BaseService[TreasuryAccountModel]):

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._accounts = AccountSelector(session)

    def register_account(
        self,
        treasury_id: int,
        account: str,
        target: int | None = None,
        name: str | None = None,
        email: str | None = None,
    ) -> TreasuryAccount:
        existing = self._accounts.by_account(account, treasury_id)
        if existing is not None:
            return existing

        attempt = 0
        while True:
            attempt += 1
            structured_id = build_structured_id(self._next_sequence(treasury_id))
            dto = TreasuryAccount(
                id=structured_id,
                treasury_id=treasury_id,
                account=account,
                target=target,
                name=name,
                email=email,
                created_at=self._clock.now(),
            )
            try:
                with self.session.begin_nested():
                    self.session.add(TreasuryAccountModel.from_dto(dto, dto.created_at))
            except IntegrityError:
                if attempt == _MAX_ALLOCATION_ATTEMPTS:
                    raise
                logger.warning(
                    "structured_id_collision",
                    extra={
                        "treasury_id": treasury_id,
                        "structured_id": structured_id,
                        "attempt": attempt,
                    },
                )
                continue

            logger.info(
                "treasury_account_registered",
                extra={"treasury_id": treasury_id, "structured_id": structured_id},
            )
            return dto

    def register_message(self, treasury_id: int, message: str, account: str) -> None:
        """Map a free-text reference to an account (unstructured feeds)."""
        self.session.merge(
            TreasuryAccountMessageModel(
                message=message,
                treasury_id=treasury_id,
                account=account,
                created_at=self._clock.now(),
            )
        )
        self.session.flush()

    def _next_sequence(self, treasury_id: int) -> int:
        sequences = [
            parse_structured_id(sid)
            for sid in self._accounts.structured_ids(treasury_id)
            if is_valid_structured_id(sid)
        ]
        return max(sequences, default=0) + 1
