"""Database layer - engine, base classes, immutability listeners."""

from jobwork_kernel.db.base import UUID, Base, TrackedBase, UUIDString
from jobwork_kernel.db.engine import create_tables, get_engine, get_session_factory

__all__ = [
    "get_engine",
    "get_session_factory",
    "create_tables",
    "Base",
    "TrackedBase",
    "UUIDString",
    "UUID",
]
