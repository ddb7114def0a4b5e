"""
Module: treasury_kernel.models.treasury
Responsibility: ORM persistence for treasuries and their beneficiary
    registry (structured-id accounts and free-text message mappings).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/types.py only.

Invariants enforced:
    - A treasury account id is unique per treasury (composite primary key).
    - A free-text message maps to at most one account per treasury.
    - Credentials and strategy config are stored raw; they are validated
      when a reconciler needs them, not on load.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from treasury_kernel.db.base import Base

if TYPE_CHECKING:
    from treasury_kernel.domain.types import Treasury, TreasuryAccount


class TreasuryModel(Base):
    """Configuration root of one treasury."""

    __tablename__ = "treasury"

    __table_args__ = (
        Index("ix_treasury_sync_provider", "sync_provider"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    business_id: Mapped[int | None] = mapped_column(nullable=True)
    token: Mapped[str] = mapped_column(String(100), nullable=False)
    sync_provider: Mapped[str] = mapped_column(String(20), nullable=False)
    sync_provider_credentials: Mapped[dict | None] = mapped_column(
        JSON, nullable=True,
    )
    sync_strategy: Mapped[str] = mapped_column(String(20), nullable=False)
    sync_strategy_config: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    sync_currency_symbol: Mapped[str | None] = mapped_column(
        String(10), nullable=True,
    )
    created_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def to_dto(self) -> Treasury:
        from treasury_kernel.domain.types import SyncProvider, Treasury

        return Treasury(
            id=self.id,
            token=self.token,
            sync_provider=SyncProvider(self.sync_provider),
            sync_strategy=self.sync_strategy,
            sync_provider_credentials=dict(self.sync_provider_credentials or {}),
            sync_strategy_config=self.sync_strategy_config,
            business_id=self.business_id,
            sync_currency_symbol=self.sync_currency_symbol,
        )

    @classmethod
    def from_dto(cls, dto: Treasury) -> TreasuryModel:
        return cls(
            id=dto.id,
            business_id=dto.business_id,
            token=dto.token,
            sync_provider=dto.sync_provider.value,
            sync_provider_credentials=dto.sync_provider_credentials or None,
            sync_strategy=dto.sync_strategy,
            sync_strategy_config=dto.sync_strategy_config,
            sync_currency_symbol=dto.sync_currency_symbol,
        )


class TreasuryAccountModel(Base):
    """Beneficiary keyed by its 12-digit structured id within a treasury."""

    __tablename__ = "treasury_account"

    __table_args__ = (
        Index("ix_treasury_account_account", "treasury_id", "account"),
    )

    id: Mapped[str] = mapped_column(String(12), primary_key=True)
    treasury_id: Mapped[int] = mapped_column(
        ForeignKey("treasury.id"), primary_key=True,
    )
    account: Mapped[str] = mapped_column(String(100), nullable=False)
    target: Mapped[int | None] = mapped_column(nullable=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(nullable=False)

    def to_dto(self) -> TreasuryAccount:
        from treasury_kernel.domain.types import TreasuryAccount

        return TreasuryAccount(
            id=self.id,
            treasury_id=self.treasury_id,
            account=self.account,
            target=self.target,
            name=self.name,
            email=self.email,
            created_at=self.created_at,
        )

    @classmethod
    def from_dto(cls, dto: TreasuryAccount, created_at: datetime) -> TreasuryAccountModel:
        return cls(
            id=dto.id,
            treasury_id=dto.treasury_id,
            account=dto.account,
            target=dto.target,
            name=dto.name,
            email=dto.email,
            created_at=dto.created_at or created_at,
        )


class TreasuryAccountMessageModel(Base):
    """Exact free-text reference mapped to an account (unstructured mode)."""

    __tablename__ = "treasury_account_message"

    message: Mapped[str] = mapped_column(String(255), primary_key=True)
    treasury_id: Mapped[int] = mapped_column(
        ForeignKey("treasury.id"), primary_key=True,
    )
    account: Mapped[str] = mapped_column(String(100), nullable=False)
    created_at: Mapped[datetime] = mapped_column(nullable=False)
