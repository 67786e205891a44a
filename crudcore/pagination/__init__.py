"""
Pagination module for crudcore.

Offset and cursor pagination for list operations, and the opaque cursor
token codec.
"""

from crudcore.pagination.cursor import Cursor, decode_cursor, encode_cursor
from crudcore.pagination.engine import (
    DEFAULT_TAKE,
    PaginationEngine,
    PaginationRequest,
    PaginationType,
    continuation_where,
    order_keys,
    resolve_take,
)

__all__ = [
    "Cursor",
    "decode_cursor",
    "encode_cursor",
    "DEFAULT_TAKE",
    "PaginationEngine",
    "PaginationRequest",
    "PaginationType",
    "continuation_where",
    "order_keys",
    "resolve_take",
]
