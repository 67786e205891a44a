"""
Backend-agnostic find specification.

A FindSpec is what the converter produces and what record stores consume:

- ``where``: a mapping of field name to Predicate (or raw value, meaning
  equality) or, for relations, to a nested mapping. A list of mappings is
  an OR of its members.
- ``order``: an ordered mapping of field name to SortDirection, nested
  for relation fields. The first key is the primary sort.
- ``relations``: a nested mapping of relation name to ``True`` (leaf) or
  to a further mapping.
"""

import copy
from typing import Any, Dict, List, Optional, Union

from crudcore.query.predicates import combine

Where = Union[Dict[str, Any], List[Dict[str, Any]]]


class FindSpec:
    """
    Everything a store needs to run a find.

    Attributes:
        where: Where-tree, see module docstring
        order: Order map
        relations: Relation tree to load
        skip: Rows to skip
        take: Maximum rows to return
        with_deleted: Include soft-deleted rows
        select: Column names to load; ``None`` loads every column
    """

    def __init__(
        self,
        where: Optional[Where] = None,
        order: Optional[Dict[str, Any]] = None,
        relations: Optional[Dict[str, Any]] = None,
        skip: Optional[int] = None,
        take: Optional[int] = None,
        with_deleted: bool = False,
        select: Optional[List[str]] = None,
    ):
        self.where = where if where is not None else {}
        self.order = order or {}
        self.relations = relations or {}
        self.skip = skip
        self.take = take
        self.with_deleted = with_deleted
        self.select = select

    def copy(self, **changes: Any) -> "FindSpec":
        """Return a deep copy with ``changes`` applied."""
        data = copy.deepcopy(self.to_dict())
        data.update(changes)
        return FindSpec(**data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "where": self.where,
            "order": self.order,
            "relations": self.relations,
            "skip": self.skip,
            "take": self.take,
            "with_deleted": self.with_deleted,
            "select": self.select,
        }

    def __repr__(self) -> str:
        return f"FindSpec({self.to_dict()!r})"


def set_path(where: Dict[str, Any], path: str, predicate: Any) -> None:
    """
    Place ``predicate`` at the dotted ``path`` of a where-tree.

    Intermediate mappings are created as needed. A leaf that already holds a
    predicate is combined with the new one under AND.
    """
    segments = path.split(".")
    node = where
    for segment in segments[:-1]:
        child = node.get(segment)
        if not isinstance(child, dict):
            child = {}
            node[segment] = child
        node = child
    leaf = segments[-1]
    if leaf in node and not isinstance(node[leaf], dict):
        node[leaf] = combine(node[leaf], predicate)
    else:
        node[leaf] = predicate


def merge_where(base: Optional[Where], extra: Dict[str, Any]) -> Where:
    """
    AND a flat mapping of predicates into a where-tree.

    For an OR list every member receives the extra predicates. ``base`` is
    not modified.
    """
    if isinstance(base, list):
        if not base:
            return merge_where({}, extra)
        return [merge_where(member, extra) for member in base]

    merged = copy.deepcopy(base) if base else {}
    for path, predicate in extra.items():
        set_path(merged, path, predicate)
    return merged


def relation_paths(relations: Dict[str, Any], prefix: str = "") -> List[str]:
    """Flatten a relation tree into dotted paths, parents before children."""
    paths = []
    for name, nested in relations.items():
        path = f"{prefix}{name}"
        paths.append(path)
        if isinstance(nested, dict) and nested:
            paths.extend(relation_paths(nested, f"{path}."))
    return paths
