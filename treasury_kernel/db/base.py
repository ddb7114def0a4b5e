"""
Module: treasury_kernel.db.base
Responsibility: Declarative base for all SQLAlchemy ORM models and the
    timezone-normalizing timestamp column type.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/, selectors/ or domain/.

Invariants enforced:
    - Timestamps are timezone-aware UTC in Python on both read and write,
      regardless of backend.  SQLite stores them as naive UTC; PostgreSQL as
      TIMESTAMPTZ.
    - int maps to BigInteger except where a model declares otherwise
      (autoincrement keys use Integer so SQLite assigns rowids).
"""

from datetime import datetime, timezone
from typing import ClassVar

from sqlalchemy import BigInteger, DateTime
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.types import TypeDecorator


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware datetime stored as UTC.

    Guarantees:
        - process_bind_param: aware datetime -> UTC (naive UTC on SQLite).
          Naive input is assumed to already be UTC.
        - process_result_value: always returns an aware UTC datetime.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    """
    Declarative base for all treasury models.

    Models declare their own primary keys: operations and accounts are keyed
    by provider/structured ids scoped to a treasury, not by surrogate ids.
    """

    type_annotation_map: ClassVar[dict] = {
        datetime: UTCDateTime(),
        int: BigInteger,
    }
