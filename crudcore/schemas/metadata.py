"""
Metadata schemas for crudcore responses.

Provides the timestamp/version metadata shared by every envelope, the
pagination state emitted by list operations and the per-operation CRUD
metadata.

Limitations:
- Field names are serialized in camelCase (``affectedCount``, ``nextCursor``)
  through aliases; use ``model_dump(by_alias=True)`` or ``to_dict()``.
"""

from datetime import datetime, timezone
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BaseMetadata(BaseModel):
    """
    Base metadata model defining common fields.

    The timestamp is taken when the metadata object is built, which is the
    moment the response is produced.
    """

    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="Timestamp of when the response was created",
    )


class ResponseMetadata(BaseMetadata):
    """Metadata attached to error envelopes."""

    version: str = Field(default="1.0", description="API version")


class PaginationState(BaseModel):
    """
    Pagination block of a list response.

    Offset pagination fills ``page``, ``pages`` and ``offset``; cursor
    pagination fills ``limit`` and ``totalPages``. Both carry ``total`` and,
    when there is a last row, ``nextCursor``.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    type: str = Field(..., description="Pagination family: offset or cursor")
    total: int = Field(..., ge=0, description="Number of matching records")
    page: Optional[int] = Field(default=None, description="Current page (offset)")
    pages: Optional[int] = Field(default=None, description="Page count (offset)")
    offset: Optional[int] = Field(
        default=None, description="Offset of the next page (offset)"
    )
    limit: Optional[int] = Field(default=None, description="Page size (cursor)")
    total_pages: Optional[int] = Field(
        default=None, alias="totalPages", description="Page count (cursor)"
    )
    next_cursor: Optional[str] = Field(
        default=None, alias="nextCursor", description="Opaque continuation token"
    )


class CrudMetadata(BaseMetadata):
    """
    Metadata of a CRUD response.

    Attributes:
        operation: Name of the operation that produced the response
        affected_count: Number of records returned or written
        is_new: Upsert only; a single flag or one flag per item
        was_soft_deleted: Destroy/recover only; one flag per item for bulk recover
        included_relations: Dotted relation paths that were loaded
        excluded_fields: Fields removed from the payload
        pagination: List operations only
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    operation: str = Field(..., description="Operation that produced the response")
    affected_count: int = Field(default=0, alias="affectedCount", ge=0)
    is_new: Optional[Union[bool, List[bool]]] = Field(default=None, alias="isNew")
    was_soft_deleted: Optional[Union[bool, List[bool]]] = Field(
        default=None, alias="wasSoftDeleted"
    )
    included_relations: Optional[List[str]] = Field(
        default=None, alias="includedRelations"
    )
    excluded_fields: Optional[List[str]] = Field(default=None, alias="excludedFields")
    pagination: Optional[PaginationState] = None
