"""
Typed query operations.

The parser turns raw query-string parameters into these plain objects; the
converter turns them into a FindSpec. Nothing here talks to a store.
"""

from enum import Enum
from typing import Any, Dict, List, Optional


class FilterOperator(str, Enum):
    """Operators accepted in ``filter[<field>_<operator>]`` keys."""

    EQ = "eq"
    NE = "ne"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    BETWEEN = "between"
    LIKE = "like"
    ILIKE = "ilike"
    START = "start"
    END = "end"
    CONTAINS = "contains"
    IN = "in"
    NOT_IN = "not_in"
    NULL = "null"
    NOT_NULL = "not_null"
    PRESENT = "present"
    BLANK = "blank"
    FTS = "fts"

    @classmethod
    def split_key(cls, key: str) -> "tuple[str, FilterOperator]":
        """
        Split ``<field>_<operator>`` into its field and operator.

        The longest operator suffix wins, so ``status_not_in`` yields
        ``("status", NOT_IN)`` rather than ``("status_not", IN)``. A key with
        no known suffix is a field compared with ``eq``.
        """
        for operator in _BY_SUFFIX_LENGTH:
            suffix = "_" + operator.value
            if key.endswith(suffix) and len(key) > len(suffix):
                return key[: -len(suffix)], operator
        return key, cls.EQ


_BY_SUFFIX_LENGTH = sorted(FilterOperator, key=lambda op: len(op.value), reverse=True)

# Operators whose value is a comma separated list
LIST_OPERATORS = frozenset(
    {FilterOperator.IN, FilterOperator.NOT_IN, FilterOperator.BETWEEN}
)

# Operators whose value is a boolean flag
FLAG_OPERATORS = frozenset(
    {
        FilterOperator.NULL,
        FilterOperator.NOT_NULL,
        FilterOperator.PRESENT,
        FilterOperator.BLANK,
    }
)


class SortDirection(str, Enum):
    """Sort direction options."""

    ASC = "asc"
    DESC = "desc"

    @classmethod
    def parse(cls, value: Any, default: "SortDirection" = None) -> "SortDirection":
        """Parse ``asc``/``desc`` in any case, falling back to ``default`` or ASC."""
        if isinstance(value, SortDirection):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            return default or cls.ASC


class PageType(str, Enum):
    """Pagination parameter families a request can use."""

    NUMBER = "number"
    OFFSET = "offset"
    CURSOR = "cursor"


class FilterOperation:
    """
    A single filter condition.

    Attributes:
        field: Base field name (first path segment)
        operator: Filter operator
        value: Shaped value (string, list of strings, bool or None)
        relation: Remaining dotted path below ``field`` when filtering on a relation
    """

    def __init__(
        self,
        field: str,
        operator: FilterOperator,
        value: Any,
        relation: Optional[str] = None,
    ):
        self.field = field
        self.operator = operator
        self.value = value
        self.relation = relation

    @property
    def path(self) -> str:
        """Full dotted path of the filtered field."""
        return f"{self.field}.{self.relation}" if self.relation else self.field

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "operator": self.operator.value,
            "value": self.value,
            "relation": self.relation,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FilterOperation):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"FilterOperation({self.path!r}, {self.operator.value}, {self.value!r})"


class SortOperation:
    """
    A sort instruction.

    Attributes:
        field: Base field name
        direction: Sort direction
        relation: Remaining dotted path when sorting on a relation field
    """

    def __init__(
        self,
        field: str,
        direction: SortDirection = SortDirection.ASC,
        relation: Optional[str] = None,
    ):
        self.field = field
        self.direction = direction
        self.relation = relation

    @property
    def path(self) -> str:
        return f"{self.field}.{self.relation}" if self.relation else self.field

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "direction": self.direction.value,
            "relation": self.relation,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, SortOperation):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"SortOperation({self.path!r}, {self.direction.value})"


class IncludeOperation:
    """A relation to load, with its own nested includes."""

    def __init__(self, relation: str, nested: Optional[List["IncludeOperation"]] = None):
        self.relation = relation
        self.nested = nested or []

    def child(self, relation: str) -> "IncludeOperation":
        """Return the nested include for ``relation``, creating it if needed."""
        for include in self.nested:
            if include.relation == relation:
                return include
        include = IncludeOperation(relation)
        self.nested.append(include)
        return include

    def to_dict(self) -> Dict[str, Any]:
        return {
            "relation": self.relation,
            "nested": [include.to_dict() for include in self.nested],
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IncludeOperation):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"IncludeOperation({self.relation!r}, nested={self.nested!r})"


class PageOperation:
    """
    Pagination parameters of a request.

    Only the attributes of the chosen ``type`` are set: ``number``/``size``,
    ``offset``/``limit``, or ``cursor``/``size``.
    """

    def __init__(
        self,
        type: PageType,
        number: Optional[int] = None,
        size: Optional[int] = None,
        offset: Optional[int] = None,
        limit: Optional[int] = None,
        cursor: Optional[str] = None,
    ):
        self.type = type
        self.number = number
        self.size = size
        self.offset = offset
        self.limit = limit
        self.cursor = cursor

    @property
    def page_limit(self) -> Optional[int]:
        """Rows per page, whichever family carried it."""
        return self.limit if self.type == PageType.OFFSET else self.size

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "type": self.type.value,
            "number": self.number,
            "size": self.size,
            "offset": self.offset,
            "limit": self.limit,
            "cursor": self.cursor,
        }
        return {key: value for key, value in data.items() if value is not None}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PageOperation):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"PageOperation({self.to_dict()!r})"


class ParsedQuery:
    """Structured form of a list request's query string."""

    def __init__(
        self,
        filters: Optional[List[FilterOperation]] = None,
        sorts: Optional[List[SortOperation]] = None,
        includes: Optional[List[IncludeOperation]] = None,
        page: Optional[PageOperation] = None,
    ):
        self.filters = filters or []
        self.sorts = sorts or []
        self.includes = includes or []
        self.page = page

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filters": [f.to_dict() for f in self.filters],
            "sorts": [s.to_dict() for s in self.sorts],
            "includes": [i.to_dict() for i in self.includes],
            "page": self.page.to_dict() if self.page else None,
        }

    def __repr__(self) -> str:
        return (
            f"ParsedQuery(filters={self.filters!r}, sorts={self.sorts!r}, "
            f"includes={self.includes!r}, page={self.page!r})"
        )
