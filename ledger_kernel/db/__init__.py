"""Database layer - engine, base classes and immutability listeners."""

from ledger_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from ledger_kernel.db.engine import (
    build_engine,
    create_tables,
    get_engine,
    get_session,
    session_scope,
)

__all__ = [
    "build_engine",
    "get_engine",
    "get_session",
    "session_scope",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
