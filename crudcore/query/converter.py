"""
ParsedQuery to FindSpec conversion.

The converter maps every filter operator onto store predicates, folds sorts
into an order map and includes into a relation tree, and turns the page
operation into skip/take.

Limitations:
- ``between`` needs exactly two values and ``in``/``not_in`` need a list;
  filters that do not fit are skipped rather than rejected.
- The null family (``null``, ``not_null``, ``present``, ``blank``) only
  produces a predicate when its flag is true.
"""

from typing import Any, Dict, List, Optional

from crudcore.errors.exceptions import UnsupportedOperationError
from crudcore.logging import Logger, ensure_logger
from crudcore.query import predicates as p
from crudcore.query.find_spec import FindSpec, set_path
from crudcore.query.operations import (
    FilterOperation,
    FilterOperator,
    IncludeOperation,
    PageOperation,
    PageType,
    ParsedQuery,
    SortOperation,
)


class QueryConverter:
    """
    Convert a ParsedQuery into a FindSpec.

    Args:
        supports_full_text: Whether the target store can evaluate
            full-text predicates; ``fts`` filters fail otherwise
        logger: Optional logger
    """

    def __init__(self, supports_full_text: bool = False, logger: Optional[Logger] = None):
        self.supports_full_text = supports_full_text
        self.logger = ensure_logger(logger, __name__)

    def convert(self, parsed: ParsedQuery) -> FindSpec:
        """
        Build the FindSpec for a parsed query.

        Raises:
            UnsupportedOperationError: For an ``fts`` filter the store cannot
                run, or one with an empty search term
        """
        spec = FindSpec(
            where=self.build_where(parsed.filters),
            order=self.build_order(parsed.sorts),
            relations=self.build_relations(parsed.includes),
        )
        if parsed.page is not None:
            spec.skip, spec.take = self.build_paging(parsed.page)
        return spec

    def build_where(self, filters: List[FilterOperation]) -> Dict[str, Any]:
        where: Dict[str, Any] = {}
        for operation in filters:
            predicate = self.to_predicate(operation)
            if predicate is None:
                self.logger.debug(f"Skipping filter without a usable value: {operation!r}")
                continue
            set_path(where, operation.path, predicate)
        return where

    def to_predicate(self, operation: FilterOperation) -> Optional[p.Predicate]:
        """Map one filter operation onto a predicate, or None to skip it."""
        operator = operation.operator
        value = operation.value

        if operator == FilterOperator.FTS:
            return self._full_text(operation)

        if operator == FilterOperator.NULL:
            return p.is_null() if value is True else None
        if operator == FilterOperator.NOT_NULL:
            return p.not_(p.is_null()) if value is True else None
        if operator == FilterOperator.PRESENT:
            return p.all_of(p.not_(p.is_null()), p.not_(p.equal(""))) if value is True else None
        if operator == FilterOperator.BLANK:
            return p.any_of(p.is_null(), p.equal("")) if value is True else None

        if operator == FilterOperator.BETWEEN:
            if isinstance(value, list) and len(value) == 2:
                return p.between(value[0], value[1])
            return None
        if operator == FilterOperator.IN:
            return p.in_(value) if isinstance(value, list) else None
        if operator == FilterOperator.NOT_IN:
            return p.not_(p.in_(value)) if isinstance(value, list) else None

        if operator == FilterOperator.EQ:
            return p.equal(value)
        if operator == FilterOperator.NE:
            return p.not_(p.equal(value))
        if operator == FilterOperator.GT:
            return p.more_than(value)
        if operator == FilterOperator.GTE:
            return p.more_than_or_equal(value)
        if operator == FilterOperator.LT:
            return p.less_than(value)
        if operator == FilterOperator.LTE:
            return p.less_than_or_equal(value)
        if operator in (
            FilterOperator.LIKE,
            FilterOperator.START,
            FilterOperator.END,
            FilterOperator.CONTAINS,
        ):
            return p.like(value) if value is not None else None
        if operator == FilterOperator.ILIKE:
            return p.ilike(value) if value is not None else None

        return None

    def _full_text(self, operation: FilterOperation) -> p.Predicate:
        if not self.supports_full_text:
            raise UnsupportedOperationError(
                message="Full-text search is not supported by this store",
                operator=FilterOperator.FTS.value,
                field=operation.path,
            )
        term = str(operation.value or "").strip()
        if not term:
            raise UnsupportedOperationError(
                message="Full-text search requires a non-empty search term",
                operator=FilterOperator.FTS.value,
                field=operation.path,
            )
        return p.full_text(term)

    def build_order(self, sorts: List[SortOperation]) -> Dict[str, Any]:
        order: Dict[str, Any] = {}
        for sort in sorts:
            segments = sort.path.split(".")
            node = order
            for segment in segments[:-1]:
                child = node.get(segment)
                if not isinstance(child, dict):
                    child = {}
                    node[segment] = child
                node = child
            node.setdefault(segments[-1], sort.direction)
        return order

    def build_relations(self, includes: List[IncludeOperation]) -> Dict[str, Any]:
        relations: Dict[str, Any] = {}
        for include in includes:
            relations[include.relation] = (
                self.build_relations(include.nested) if include.nested else True
            )
        return relations

    @staticmethod
    def build_paging(page: PageOperation) -> "tuple[Optional[int], Optional[int]]":
        """Return ``(skip, take)`` for a page operation."""
        if page.type == PageType.NUMBER:
            size = page.size or 0
            return (max(1, page.number or 1) - 1) * size, size
        if page.type == PageType.OFFSET:
            return page.offset or 0, page.limit
        # Cursor pages continue through a where predicate, never through skip
        return None, page.size
