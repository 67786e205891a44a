"""
Query module for crudcore.

Parses list-request query strings into typed operations and converts them
into store-agnostic find specifications.
"""

from crudcore.query.converter import QueryConverter
from crudcore.query.find_spec import FindSpec, merge_where, relation_paths, set_path
from crudcore.query.operations import (
    FilterOperation,
    FilterOperator,
    IncludeOperation,
    PageOperation,
    PageType,
    ParsedQuery,
    SortDirection,
    SortOperation,
)
from crudcore.query.parser import QueryParser, QueryParserOptions
from crudcore.query.predicates import Predicate, PredicateType

__all__ = [
    "QueryParser",
    "QueryParserOptions",
    "QueryConverter",
    "FindSpec",
    "merge_where",
    "relation_paths",
    "set_path",
    "FilterOperation",
    "FilterOperator",
    "IncludeOperation",
    "PageOperation",
    "PageType",
    "ParsedQuery",
    "SortDirection",
    "SortOperation",
    "Predicate",
    "PredicateType",
]
