"""
Database module for crudcore.

Provides the RecordStore abstraction the CRUD service runs on, a SQLAlchemy
implementation with its declarative base and engine helpers, and an
in-memory implementation.
"""

from crudcore.db.base import Base, SoftDeleteMixin, TimestampMixin, metadata
from crudcore.db.engine import get_db, init_db, shutdown_db
from crudcore.db.memory import InMemoryStore, MemoryRecord
from crudcore.db.sqlalchemy_store import SQLAlchemyStore
from crudcore.db.store import RecordStore

__all__ = [
    "Base",
    "metadata",
    "TimestampMixin",
    "SoftDeleteMixin",
    "init_db",
    "get_db",
    "shutdown_db",
    "RecordStore",
    "SQLAlchemyStore",
    "InMemoryStore",
    "MemoryRecord",
]
