"""
Base SQLAlchemy configuration.

Defines the declarative base and the mixins that SQLAlchemyStore
understands: timestamps and a ``deleted_at`` soft-delete column.
"""

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, MetaData
from sqlalchemy.orm import declarative_base

# Define a consistent naming convention for constraints
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=convention)

Base = declarative_base(metadata=metadata)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimestampMixin:
    """
    Adds ``created_at`` and ``updated_at``.

    Defaults are computed in Python so the values are present on the
    instance right after a flush, without a refresh round trip.
    """

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class SoftDeleteMixin:
    """Adds the ``deleted_at`` column used for soft deletion."""

    deleted_at = Column(DateTime(timezone=True), nullable=True, default=None)


__all__ = ["Base", "metadata", "TimestampMixin", "SoftDeleteMixin", "utcnow"]
