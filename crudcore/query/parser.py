"""
Query string parsing.

Turns the raw parameters of a list request into a ParsedQuery:

- ``filter[<field>_<operator>]=<value>``: filters, dotted fields filter on relations
- ``sort=name,-createdAt``: sorts, ``-`` prefix (or ``:desc`` suffix) for descending
- ``include=author,comments.user``: relations to load, dotted paths nest
- ``page[number]/page[size]``, ``page[offset]/page[limit]``, ``page[cursor]``

Parameters can arrive flat (``{"filter[name_eq]": "x"}``) or already nested
by the framework (``{"filter": {"name_eq": "x"}}``). Multi-valued parameters
are lists.

Limitations:
- Parsing never fails on malformed input unless ``reject_disallowed`` is set:
  unknown fields are dropped and unparsable numbers become 0.
"""

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from crudcore.errors.exceptions import ValidationError
from crudcore.logging import Logger, ensure_logger
from crudcore.query.operations import (
    FLAG_OPERATORS,
    LIST_OPERATORS,
    FilterOperation,
    FilterOperator,
    IncludeOperation,
    PageOperation,
    PageType,
    ParsedQuery,
    SortDirection,
    SortOperation,
)

_BRACKET_KEY = re.compile(r"^(filter|page)\[([^\]]+)\]$")

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class QueryParserOptions:
    """
    Allow-lists and page-size bounds for a QueryParser.

    An allow-list left as ``None`` accepts every field. Allow-list entries
    are full dotted paths: ``author.name`` must be listed for
    ``filter[author.name_eq]`` to pass.
    """

    def __init__(
        self,
        allowed_filters: Optional[Iterable[str]] = None,
        allowed_sorts: Optional[Iterable[str]] = None,
        allowed_includes: Optional[Iterable[str]] = None,
        default_page_size: int = DEFAULT_PAGE_SIZE,
        max_page_size: int = MAX_PAGE_SIZE,
        reject_disallowed: bool = False,
    ):
        self.allowed_filters = _as_set(allowed_filters)
        self.allowed_sorts = _as_set(allowed_sorts)
        self.allowed_includes = _as_set(allowed_includes)
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self.reject_disallowed = reject_disallowed

    def __repr__(self) -> str:
        return (
            f"QueryParserOptions(filters={self.allowed_filters}, "
            f"sorts={self.allowed_sorts}, includes={self.allowed_includes}, "
            f"default_page_size={self.default_page_size}, "
            f"max_page_size={self.max_page_size})"
        )


class QueryParser:
    """
    Parse raw query parameters into a ParsedQuery.

    Example:
        ```python
        parser = QueryParser(QueryParserOptions(allowed_filters=["name", "age"]))
        parsed = parser.parse({"filter[age_gte]": "18", "sort": "-age"})
        ```
    """

    def __init__(
        self,
        options: Optional[QueryParserOptions] = None,
        logger: Optional[Logger] = None,
    ):
        self.options = options or QueryParserOptions()
        self.logger = ensure_logger(logger, __name__)

    def parse(self, query: Optional[Mapping[str, Any]]) -> ParsedQuery:
        """
        Parse the parameters of one request.

        Args:
            query: Raw query parameters

        Returns:
            The structured query

        Raises:
            ValidationError: Only when ``reject_disallowed`` is enabled and a
                filter, sort or include names a field outside its allow-list
        """
        filter_params, page_params, sort_value, include_value = self._split(query or {})
        rejected: List[Dict[str, Any]] = []

        parsed = ParsedQuery(
            filters=self._parse_filters(filter_params, rejected),
            sorts=self._parse_sorts(sort_value, rejected),
            includes=self._parse_includes(include_value, rejected),
            page=self._parse_page(page_params),
        )

        if rejected:
            if self.options.reject_disallowed:
                raise ValidationError(message="Query references disallowed fields", fields=rejected)
            self.logger.debug(
                f"Dropped disallowed query fields: {[r['field'] for r in rejected]}"
            )

        return parsed

    def _split(
        self, query: Mapping[str, Any]
    ) -> Tuple[Dict[str, Any], Dict[str, Any], Any, Any]:
        filters: Dict[str, Any] = {}
        page: Dict[str, Any] = {}
        sort_value = None
        include_value = None

        for key, value in query.items():
            match = _BRACKET_KEY.match(key)
            if match:
                target = filters if match.group(1) == "filter" else page
                target[match.group(2)] = value
            elif key == "filter" and isinstance(value, Mapping):
                filters.update(value)
            elif key == "page" and isinstance(value, Mapping):
                page.update(value)
            elif key == "sort":
                sort_value = value
            elif key == "include":
                include_value = value

        return filters, page, sort_value, include_value

    def _parse_filters(
        self, params: Mapping[str, Any], rejected: List[Dict[str, Any]]
    ) -> List[FilterOperation]:
        filters = []
        for key, raw in params.items():
            field, operator = FilterOperator.split_key(key)
            if not self._allowed(self.options.allowed_filters, field):
                rejected.append(_rejection(field, "filter"))
                continue

            base, _, relation = field.partition(".")
            filters.append(
                FilterOperation(
                    field=base,
                    operator=operator,
                    value=shape_filter_value(operator, raw),
                    relation=relation or None,
                )
            )
        return filters

    def _parse_sorts(
        self, value: Any, rejected: List[Dict[str, Any]]
    ) -> List[SortOperation]:
        sorts = []
        for item in _split_csv(value):
            direction = SortDirection.ASC
            if item.startswith("-"):
                direction, item = SortDirection.DESC, item[1:]
            elif ":" in item:
                item, _, raw_direction = item.partition(":")
                direction = SortDirection.parse(raw_direction)
            if not item:
                continue
            if not self._allowed(self.options.allowed_sorts, item):
                rejected.append(_rejection(item, "sort"))
                continue

            base, _, relation = item.partition(".")
            sorts.append(SortOperation(base, direction, relation or None))
        return sorts

    def _parse_includes(
        self, value: Any, rejected: List[Dict[str, Any]]
    ) -> List[IncludeOperation]:
        roots: List[IncludeOperation] = []
        for path in _split_csv(value):
            if not self._allowed(self.options.allowed_includes, path):
                rejected.append(_rejection(path, "include"))
                continue

            head, *rest = path.split(".")
            include = next((i for i in roots if i.relation == head), None)
            if include is None:
                include = IncludeOperation(head)
                roots.append(include)
            for segment in rest:
                include = include.child(segment)
        return roots

    def _parse_page(self, params: Mapping[str, Any]) -> Optional[PageOperation]:
        if not params:
            return None

        values = {key: _last(value) for key, value in params.items()}

        if values.get("cursor") not in (None, ""):
            size = values.get("size", values.get("limit"))
            return PageOperation(
                PageType.CURSOR,
                cursor=str(values["cursor"]),
                size=self._page_size(size),
            )

        if "offset" in values or "limit" in values:
            return PageOperation(
                PageType.OFFSET,
                offset=max(0, _parse_int(values.get("offset", 0))),
                limit=self._page_size(values.get("limit")),
            )

        if "number" in values or "size" in values:
            return PageOperation(
                PageType.NUMBER,
                number=max(1, _parse_int(values.get("number", 1))),
                size=self._page_size(values.get("size")),
            )

        return None

    def _page_size(self, value: Any) -> int:
        size = _parse_int(value) if value is not None else 0
        if size <= 0:
            return self.options.default_page_size
        return min(size, self.options.max_page_size)

    @staticmethod
    def _allowed(allow_list: Optional[frozenset], field: str) -> bool:
        return allow_list is None or field in allow_list


def shape_filter_value(operator: FilterOperator, raw: Any) -> Any:
    """
    Shape a raw filter value for its operator.

    List operators split on commas and trim, flag operators become booleans,
    ``start``/``end``/``contains`` become LIKE patterns. ``None`` passes
    through unchanged.
    """
    if raw is None:
        return None

    if operator in LIST_OPERATORS:
        if isinstance(raw, (list, tuple)):
            raw = ",".join(str(item) for item in raw)
        return [item.strip() for item in str(raw).split(",")]

    value = _last(raw)
    if value is None:
        return None
    value = str(value)

    if operator in FLAG_OPERATORS:
        return value.lower() == "true"
    if operator == FilterOperator.START:
        return f"{value}%"
    if operator == FilterOperator.END:
        return f"%{value}"
    if operator == FilterOperator.CONTAINS:
        return f"%{value}%"
    return value


def _split_csv(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        value = ",".join(str(item) for item in value)
    return [item.strip() for item in str(value).split(",") if item.strip()]


def _last(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return value[-1] if value else None
    return value


def _parse_int(value: Any) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return 0


def _as_set(values: Optional[Iterable[str]]) -> Optional[frozenset]:
    return None if values is None else frozenset(values)


def _rejection(field: str, kind: str) -> Dict[str, Any]:
    return {
        "field": field,
        "code": "FIELD_NOT_ALLOWED",
        "message": f"'{field}' is not an allowed {kind} field",
    }
