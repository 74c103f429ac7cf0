"""Database layer - engine, base classes, column types, and immutability."""

from grants_kernel.db.base import UUID, Base, TrackedBase, UTCDateTime, UUIDString
from grants_kernel.db.engine import (
    create_tables,
    get_engine,
    get_session_factory,
    session_scope,
)
from grants_kernel.db.types import TokenAmount

__all__ = [
    "get_engine",
    "get_session_factory",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UTCDateTime",
    "UUIDString",
    "UUID",
    "TokenAmount",
]
