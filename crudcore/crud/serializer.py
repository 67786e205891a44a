"""
Response serialization.

ResponseFactory turns store records into plain dicts and wraps them in the
CrudResponse envelope. A factory lives for one request: transformed records
are cached by (record type, primary key, exclude mask, loaded shape), so a
record that appears several times in one response is only serialized once.
The shape names the relations and columns a read loaded; the same record
read with other includes is serialized again.

Field removal happens in two steps, in this order:

1. the explicit exclude mask of the operation (dotted paths reach into
   included relations)
2. the store's schema-level hidden fields

The source record is never modified.
"""

from typing import Any, Dict, Hashable, Iterable, List, Optional, Sequence, Union

from crudcore.db.store import RecordStore
from crudcore.schemas import CrudMetadata, CrudResponse, PaginationState


class FieldMask:
    """
    Set of field paths to remove from serialized records.

    ``"password"`` removes a top-level field, ``"author.email"`` removes
    ``email`` from the ``author`` relation (or from every item when the
    relation is a list).
    """

    def __init__(self, fields: Optional[Iterable[str]] = None):
        self.fields = tuple(dict.fromkeys(fields or ()))
        self._tree: Dict[str, Any] = {}
        for path in self.fields:
            node = self._tree
            segments = path.split(".")
            for segment in segments[:-1]:
                child = node.setdefault(segment, {})
                if child is True:
                    break
                node = child
            else:
                node[segments[-1]] = True

    @property
    def key(self) -> frozenset:
        return frozenset(self.fields)

    def apply(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``data`` without the masked paths."""
        return _prune(data, self._tree) if self._tree else dict(data)

    def __bool__(self) -> bool:
        return bool(self.fields)

    def __repr__(self) -> str:
        return f"FieldMask({list(self.fields)!r})"


def _prune(data: Dict[str, Any], tree: Dict[str, Any]) -> Dict[str, Any]:
    result = {}
    for key, value in data.items():
        rule = tree.get(key)
        if rule is True:
            continue
        if isinstance(rule, dict):
            if isinstance(value, dict):
                value = _prune(value, rule)
            elif isinstance(value, list):
                value = [_prune(item, rule) if isinstance(item, dict) else item for item in value]
        result[key] = value
    return result


class ResponseFactory:
    """
    Request-scoped record serializer and envelope builder.

    Args:
        store: Store that knows how to dump and identify its records
    """

    def __init__(self, store: RecordStore):
        self.store = store
        self._cache: Dict[Hashable, Dict[str, Any]] = {}

    def transform(
        self,
        data: Any,
        exclude: Optional[Iterable[str]] = None,
        shape: Hashable = None,
    ) -> Union[Dict[str, Any], List[Dict[str, Any]], None]:
        """
        Serialize one record or a list of records.

        Args:
            data: Record or list of records
            exclude: Field paths to remove
            shape: What the read loaded for these records; part of the cache key

        Returns:
            Plain dict, list of plain dicts, or None for None
        """
        mask = FieldMask(exclude)
        memo: Dict[int, Dict[str, Any]] = {}
        if isinstance(data, (list, tuple)):
            return [self._transform_one(record, mask, memo, shape) for record in data]
        if data is None:
            return None
        return self._transform_one(data, mask, memo, shape)

    def _transform_one(
        self, record: Any, mask: FieldMask, memo: Dict[int, Dict[str, Any]], shape: Hashable
    ) -> Dict[str, Any]:
        identity = self.store.identity(record)
        cache_key = None
        if identity and None not in identity:
            cache_key = (type(record).__name__, identity, mask.key, shape)
            if cache_key in self._cache:
                return self._cache[cache_key]
        elif id(record) in memo:
            return memo[id(record)]

        plain = mask.apply(self.store.dump(record))
        if self.store.hidden_fields:
            plain = {k: v for k, v in plain.items() if k not in self.store.hidden_fields}

        if cache_key is not None:
            self._cache[cache_key] = plain
        else:
            memo[id(record)] = plain
        return plain

    def create_response(
        self,
        data: Any,
        operation: str,
        exclude: Optional[Sequence[str]] = None,
        affected_count: Optional[int] = None,
        pagination: Optional[PaginationState] = None,
        is_new: Optional[Union[bool, List[bool]]] = None,
        was_soft_deleted: Optional[Union[bool, List[bool]]] = None,
        included_relations: Optional[List[str]] = None,
        hidden: Optional[Sequence[str]] = None,
        shape: Hashable = None,
    ) -> CrudResponse:
        """
        Serialize ``data`` and wrap it with operation metadata.

        ``affected_count`` defaults to the number of records in ``data``.
        ``hidden`` paths are removed like ``exclude`` but are not reported
        in ``excludedFields``.
        """
        payload = self.transform(data, [*(exclude or []), *(hidden or [])], shape)
        if affected_count is None:
            if isinstance(payload, list):
                affected_count = len(payload)
            else:
                affected_count = 0 if payload is None else 1

        metadata = CrudMetadata(
            operation=operation,
            affected_count=affected_count,
            is_new=is_new,
            was_soft_deleted=was_soft_deleted,
            included_relations=included_relations or None,
            excluded_fields=list(exclude) if exclude else None,
            pagination=pagination,
        )
        return CrudResponse(data=payload, metadata=metadata)

    def clear(self) -> None:
        self._cache.clear()
