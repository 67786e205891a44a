"""
Pagination engine.

Two families are supported:

- offset: ``skip``/``take`` windows, metadata carries page, pages and the
  offset of the next page
- cursor: keyset continuation; the next page is selected with a
  ``> last`` / ``< last`` predicate on every sort key, metadata carries
  limit and totalPages

Both families emit ``nextCursor`` built from the sort keys of the last row.

Limitations:
- Cursor pages are computed from the rows visible at request time. Rows
  written between two page requests can shift later pages.
- Keyset continuation compares each sort key independently; the sort keys
  should form a unique tuple (the primary key is used by default).
- A relation sort key continues through a relation filter, so rows without
  the related record end the cursor sequence.
"""

import math
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from crudcore.logging import Logger, ensure_logger
from crudcore.pagination.cursor import Cursor, decode_cursor, encode_cursor
from crudcore.query import predicates as p
from crudcore.query.operations import PageOperation, PageType, SortDirection
from crudcore.schemas import PaginationState

DEFAULT_TAKE = 100


class PaginationType(str, Enum):
    """Pagination families a list route can be configured with."""

    OFFSET = "offset"
    CURSOR = "cursor"


class PaginationRequest:
    """
    Resolved pagination of one list request.

    Attributes:
        type: Pagination family
        take: Rows per page
        offset: Rows skipped (offset family)
        cursor: Decoded continuation cursor (cursor family), if any
    """

    def __init__(
        self,
        type: PaginationType,
        take: int,
        offset: int = 0,
        cursor: Optional[Cursor] = None,
    ):
        self.type = type
        self.take = take
        self.offset = offset
        self.cursor = cursor

    @property
    def is_next(self) -> bool:
        """True for a cursor page that continues an earlier one."""
        return self.type == PaginationType.CURSOR and self.cursor is not None

    def __repr__(self) -> str:
        return (
            f"PaginationRequest({self.type.value}, take={self.take}, "
            f"offset={self.offset}, cursor={self.cursor!r})"
        )


def resolve_take(
    explicit_take: Optional[int] = None,
    page_limit: Optional[int] = None,
    route_default: Optional[int] = None,
    global_default: int = DEFAULT_TAKE,
) -> int:
    """
    Pick the row limit of a list request.

    Precedence: an explicit take already set on the FindSpec, then the
    page-derived limit, then the route's configured default, then the
    global default.
    """
    for candidate in (explicit_take, page_limit, route_default):
        if candidate is not None and candidate > 0:
            return candidate
    return global_default


def continuation_where(
    cursor: Cursor,
    order: Dict[str, Any],
    default_direction: SortDirection = SortDirection.DESC,
) -> Dict[str, p.Predicate]:
    """
    Build the predicates that select the rows after ``cursor``.

    Each decoded field gets ``> value`` when its active direction is
    ascending and ``< value`` when descending. Fields missing from ``order``
    use ``default_direction``. Relation sort fields keep their dotted path,
    so the result is meant for ``merge_where``.
    """
    where = {}
    for field, value in cursor.values:
        direction = _direction_at(order, field, default_direction)
        if not isinstance(direction, SortDirection):
            direction = SortDirection.parse(direction, default_direction)
        where[field] = (
            p.less_than(value) if direction == SortDirection.DESC else p.more_than(value)
        )
    return where


def order_keys(order: Dict[str, Any], prefix: str = "") -> List[str]:
    """Sort fields of an order map as dotted paths, in sort order."""
    keys = []
    for field, direction in order.items():
        if isinstance(direction, dict):
            keys.extend(order_keys(direction, f"{prefix}{field}."))
        else:
            keys.append(f"{prefix}{field}")
    return keys


def _direction_at(order: Dict[str, Any], path: str, default: Any) -> Any:
    node: Any = order
    for segment in path.split("."):
        if not isinstance(node, dict) or segment not in node:
            return default
        node = node[segment]
    return default if isinstance(node, dict) else node


def _value_at(record: Any, path: str) -> Any:
    """Value at the dotted ``path`` of a record; None when a step is missing."""
    value = record
    for segment in path.split("."):
        if value is None:
            return None
        value = getattr(value, segment, None)
    return value


class PaginationEngine:
    """
    Resolve pagination requests and build pagination metadata.

    Args:
        logger: Optional logger; malformed cursors are reported at warning level
    """

    def __init__(self, logger: Optional[Logger] = None):
        self.logger = ensure_logger(logger, __name__)

    def resolve(
        self,
        page: Optional[PageOperation],
        default_type: PaginationType,
        take: int,
    ) -> PaginationRequest:
        """
        Turn a parsed page operation into a PaginationRequest.

        A page operation decides the family itself (number/offset pages are
        offset pagination, cursor pages are cursor pagination); without one
        the route's ``default_type`` applies. A cursor token that cannot be
        decoded is treated as a first page.
        """
        if page is None:
            return PaginationRequest(default_type, take)

        if page.type == PageType.CURSOR:
            return PaginationRequest(PaginationType.CURSOR, take, cursor=self.decode(page.cursor))

        if page.type == PageType.OFFSET:
            return PaginationRequest(PaginationType.OFFSET, take, offset=page.offset or 0)

        offset = (max(1, page.number or 1) - 1) * take
        return PaginationRequest(PaginationType.OFFSET, take, offset=offset)

    def decode(self, token: Optional[str]) -> Optional[Cursor]:
        if not token:
            return None
        try:
            return decode_cursor(token)
        except ValueError as e:
            self.logger.warning(f"Ignoring malformed pagination cursor: {e}")
            return None

    def build_state(
        self,
        request: PaginationRequest,
        records: Sequence[Any],
        total: int,
        keys: Sequence[str],
    ) -> PaginationState:
        """
        Build the pagination block of a list response.

        Args:
            request: The resolved pagination request
            records: Rows of the current page
            total: Number of rows matching the query
            keys: Sort fields whose values form the next cursor

        Returns:
            Offset or cursor pagination metadata
        """
        next_cursor = self.next_cursor(records, total, keys)

        if request.type == PaginationType.OFFSET:
            return PaginationState(
                type=PaginationType.OFFSET.value,
                total=total,
                page=request.offset // request.take + 1,
                pages=math.ceil(total / request.take),
                offset=request.offset + len(records),
                next_cursor=next_cursor,
            )

        return PaginationState(
            type=PaginationType.CURSOR.value,
            total=total,
            limit=request.take,
            total_pages=math.ceil(total / request.take) if total else 1,
            next_cursor=next_cursor,
        )

    @staticmethod
    def next_cursor(records: Sequence[Any], total: int, keys: Sequence[str]) -> Optional[str]:
        if not records or not keys:
            return None
        last = records[-1]
        return encode_cursor([(key, _value_at(last, key)) for key in keys], total)
