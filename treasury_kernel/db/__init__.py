"""Database layer - engine, declarative base, column types, guards."""

from treasury_kernel.db.base import Base, UTCDateTime
from treasury_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
    init_engine_from_url,
    session_scope,
)
from treasury_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)

__all__ = [
    "Base",
    "UTCDateTime",
    "create_tables",
    "get_engine",
    "get_session_factory",
    "init_engine_from_url",
    "register_immutability_listeners",
    "session_scope",
    "unregister_immutability_listeners",
]
