"""
In-memory RecordStore.

Keeps rows as plain dicts keyed by primary key and evaluates predicates in
Python. Useful for tests, prototypes and services whose data fits in memory.

Records handed out by ``find`` are fresh ``MemoryRecord`` objects; changes
only reach the store through ``save``/``remove``/``soft_remove``/``recover``,
the same way a database-backed store behaves.

Limitations:
- Relations are stored inline on the row (a dict, or a list of dicts) and
  are only attached to records when included.
- Full-text search is a case-insensitive all-terms match, enabled with
  ``supports_full_text=True``.
- No transactions: a failing ``save`` leaves earlier records of the same
  call untouched and stops at the first conflicting one.
"""

import copy
import itertools
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from types import SimpleNamespace
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from crudcore.db.base import utcnow
from crudcore.db.store import RecordStore
from crudcore.errors.exceptions import ConflictError
from crudcore.logging import Logger, ensure_logger
from crudcore.query.find_spec import FindSpec, Where
from crudcore.query.operations import SortDirection
from crudcore.query.predicates import Predicate, PredicateType, as_predicate


class MemoryRecord(SimpleNamespace):
    """Attribute bag handed out by InMemoryStore."""


class InMemoryStore(RecordStore):
    """
    RecordStore backed by a dict.

    Args:
        name: Resource name used in error messages
        columns: Scalar field names
        primary_keys: Primary key field names (default ``["id"]``)
        relations: Relation names
        hidden_fields: Fields never exposed in responses
        soft_delete_column: Deletion timestamp column, or None to disable
            soft deletion
        supports_full_text: Enable FULL_TEXT predicates
        rows: Initial rows
        logger: Optional logger

    Integer primary keys that are missing on insert are assigned from an
    incrementing sequence.
    """

    def __init__(
        self,
        name: str,
        columns: Iterable[str],
        primary_keys: Optional[Iterable[str]] = None,
        relations: Optional[Iterable[str]] = None,
        hidden_fields: Optional[Iterable[str]] = None,
        soft_delete_column: Optional[str] = "deleted_at",
        supports_full_text: bool = False,
        rows: Optional[Iterable[Dict[str, Any]]] = None,
        logger: Optional[Logger] = None,
    ):
        self.name = name
        self.primary_keys = list(primary_keys or ["id"])
        self.columns = list(dict.fromkeys(list(self.primary_keys) + list(columns)))
        if soft_delete_column and soft_delete_column not in self.columns:
            self.columns.append(soft_delete_column)
        self.relations = list(relations or [])
        self.hidden_fields = frozenset(hidden_fields or ())
        self.soft_delete_column = soft_delete_column
        self.supports_full_text = supports_full_text
        self.logger = ensure_logger(logger, __name__)

        self._rows: Dict[Tuple[Any, ...], Dict[str, Any]] = {}
        self._sequence = itertools.count(1)
        self.calls: List[str] = []
        for row in rows or []:
            self._insert(dict(row))

    # Reads

    async def find(self, spec: FindSpec, consistent: bool = False) -> List[Any]:
        self.calls.append("find")
        rows = [row for row in self._rows.values() if self._visible(row, spec.where, spec.with_deleted)]
        rows = self._sort(rows, spec.order)
        if spec.skip:
            rows = rows[spec.skip :]
        if spec.take:
            rows = rows[: spec.take]
        return [self._to_record(row, spec.relations, spec.select) for row in rows]

    async def count(self, where: Where, with_deleted: bool = False) -> int:
        self.calls.append("count")
        return sum(1 for row in self._rows.values() if self._visible(row, where, with_deleted))

    def _visible(self, row: Dict[str, Any], where: Where, with_deleted: bool) -> bool:
        if not with_deleted and self.soft_delete_column and row.get(self.soft_delete_column) is not None:
            return False
        return self.matches(row, where)

    def matches(self, row: Any, where: Where) -> bool:
        """Evaluate a where-tree against a row (dict) or nested relation value."""
        if isinstance(where, list):
            return not where or any(self.matches(row, member) for member in where)

        for key, condition in (where or {}).items():
            value = row.get(key) if isinstance(row, dict) else getattr(row, key, None)
            if isinstance(condition, dict):
                if isinstance(value, list):
                    if not any(self.matches(item, condition) for item in value):
                        return False
                elif value is None or not self.matches(value, condition):
                    return False
            elif not self.evaluate(as_predicate(condition), value):
                return False
        return True

    def evaluate(self, predicate: Predicate, value: Any) -> bool:
        """Evaluate one predicate against a field value."""
        kind = predicate.type
        operand = predicate.value

        if kind == PredicateType.ANY:
            result = any(self.evaluate(as_predicate(p), value) for p in operand)
        elif kind == PredicateType.ALL:
            result = all(self.evaluate(as_predicate(p), value) for p in operand)
        elif kind == PredicateType.IS_NULL:
            result = value is None
        elif kind == PredicateType.EQUAL:
            result = value == _coerce(operand, value)
        elif kind == PredicateType.IN:
            result = value in [_coerce(item, value) for item in operand]
        elif value is None:
            # NULL fails every ordering and pattern comparison, negated or not
            return False
        elif kind == PredicateType.MORE_THAN:
            result = value > _coerce(operand, value)
        elif kind == PredicateType.MORE_THAN_OR_EQUAL:
            result = value >= _coerce(operand, value)
        elif kind == PredicateType.LESS_THAN:
            result = value < _coerce(operand, value)
        elif kind == PredicateType.LESS_THAN_OR_EQUAL:
            result = value <= _coerce(operand, value)
        elif kind == PredicateType.BETWEEN:
            low, high = operand
            result = _coerce(low, value) <= value <= _coerce(high, value)
        elif kind == PredicateType.LIKE:
            result = _like(operand, str(value), ignore_case=False)
        elif kind == PredicateType.ILIKE:
            result = _like(operand, str(value), ignore_case=True)
        elif kind == PredicateType.FULL_TEXT:
            words = str(value).lower().split()
            result = all(term in words for term in str(operand).lower().split())
        else:
            return False

        return not result if predicate.negated else result

    def _sort(self, rows: List[Dict[str, Any]], order: Dict[str, Any]) -> List[Dict[str, Any]]:
        keys = [(path, direction) for path, direction in _flatten_order(order)]
        # Stable sorts applied from the least significant key upwards
        for path, direction in reversed(keys):
            descending = SortDirection.parse(direction) == SortDirection.DESC
            present = [row for row in rows if _get_path(row, path) is not None]
            missing = [row for row in rows if _get_path(row, path) is None]
            present.sort(key=lambda row: _get_path(row, path), reverse=descending)
            rows = present + missing
        return rows

    # Writes

    def build(self, data: Dict[str, Any]) -> MemoryRecord:
        known = set(self.columns) | set(self.relations)
        return MemoryRecord(**{k: copy.deepcopy(v) for k, v in data.items() if k in known})

    def assign(self, record: Any, data: Dict[str, Any]) -> Any:
        known = set(self.columns) | set(self.relations)
        for key, value in data.items():
            if key in known:
                setattr(record, key, value)
        return record

    async def save(self, records: Sequence[Any]) -> List[Any]:
        self.calls.append("save")
        for record in records:
            row = {}
            for key, value in vars(record).items():
                if key in self.columns:
                    row[key] = copy.deepcopy(value)
                elif key in self.relations:
                    row[key] = self._plain(value)

            key = self._key(row)
            if None in key:
                self._assign_key(row)
                for pk in self.primary_keys:
                    setattr(record, pk, row[pk])
                key = self._key(row)
            elif key in self._rows and getattr(record, "_persisted_key", None) != key:
                raise ConflictError(
                    message=f"{self.name} with key {key!r} already exists",
                    details={"key": list(key)},
                )

            if key not in self._rows:
                for column in self.columns:
                    if column not in row:
                        row[column] = None
                        setattr(record, column, None)
                self._rows[key] = row
                self._bump_sequence(row)
            else:
                self._rows[key].update(row)
            record._persisted_key = key
        return list(records)

    async def remove(self, records: Sequence[Any]) -> List[Any]:
        self.calls.append("remove")
        for record in records:
            self._rows.pop(self.identity(record), None)
        return list(records)

    async def soft_remove(self, records: Sequence[Any]) -> List[Any]:
        if not self.soft_delete_column:
            raise ConflictError(message=f"{self.name} does not support soft deletion")
        now = utcnow()
        for record in records:
            setattr(record, self.soft_delete_column, now)
        return await self.save(records)

    async def recover(self, records: Sequence[Any]) -> List[Any]:
        if not self.soft_delete_column:
            raise ConflictError(message=f"{self.name} does not support soft deletion")
        for record in records:
            setattr(record, self.soft_delete_column, None)
        return await self.save(records)

    # Serialization

    def dump(self, record: Any) -> Dict[str, Any]:
        data = {}
        for key, value in vars(record).items():
            if key.startswith("_"):
                continue
            if isinstance(value, MemoryRecord):
                value = self.dump(value)
            elif isinstance(value, list):
                value = [self.dump(v) if isinstance(v, MemoryRecord) else v for v in value]
            data[key] = value
        return data

    # Helpers

    def _plain(self, value: Any) -> Any:
        if isinstance(value, MemoryRecord):
            return self.dump(value)
        if isinstance(value, list):
            return [self._plain(item) for item in value]
        return copy.deepcopy(value)

    def _insert(self, row: Dict[str, Any]) -> None:
        if None in self._key(row):
            self._assign_key(row)
        for column in self.columns:
            row.setdefault(column, None)
        self._rows[self._key(row)] = row
        self._bump_sequence(row)

    def _assign_key(self, row: Dict[str, Any]) -> None:
        for pk in self.primary_keys:
            if row.get(pk) is None:
                row[pk] = next(self._sequence)

    def _bump_sequence(self, row: Dict[str, Any]) -> None:
        highest = max((v for v in (row.get(pk) for pk in self.primary_keys) if isinstance(v, int)), default=0)
        current = next(self._sequence)
        self._sequence = itertools.count(max(current, highest + 1))

    def _key(self, row: Dict[str, Any]) -> Tuple[Any, ...]:
        return tuple(row.get(pk) for pk in self.primary_keys)

    def _to_record(
        self,
        row: Dict[str, Any],
        relations: Dict[str, Any],
        select: Optional[List[str]],
    ) -> MemoryRecord:
        columns = self.columns
        if select:
            columns = [c for c in self.columns if c in select or c in self.primary_keys]
        data = {column: copy.deepcopy(row.get(column)) for column in columns}
        for name, nested in (relations or {}).items():
            if name in self.relations:
                data[name] = _attach(row.get(name), nested)
        record = MemoryRecord(**data)
        record._persisted_key = self._key(row)
        return record


def _attach(value: Any, nested: Any) -> Any:
    """Turn inline relation data into records, keeping only included sub-relations."""
    if value is None:
        return None
    if isinstance(value, list):
        return [_attach(item, nested) for item in value]
    if not isinstance(value, dict):
        return copy.deepcopy(value)
    children = nested if isinstance(nested, dict) else {}
    data = {}
    for key, item in value.items():
        if isinstance(item, (dict, list)) and _is_relation_value(item):
            if key in children:
                data[key] = _attach(item, children[key])
        else:
            data[key] = copy.deepcopy(item)
    return MemoryRecord(**data)


def _is_relation_value(value: Any) -> bool:
    if isinstance(value, dict):
        return True
    return bool(value) and all(isinstance(item, dict) for item in value)


def _flatten_order(order: Dict[str, Any], prefix: str = "") -> List[Tuple[str, Any]]:
    keys = []
    for key, direction in order.items():
        if isinstance(direction, dict):
            keys.extend(_flatten_order(direction, f"{prefix}{key}."))
        else:
            keys.append((f"{prefix}{key}", direction))
    return keys


def _get_path(row: Dict[str, Any], path: str) -> Any:
    value: Any = row
    for segment in path.split("."):
        if not isinstance(value, dict):
            return None
        value = value.get(segment)
    return value


def _coerce(operand: Any, sample: Any) -> Any:
    """Convert a query-string operand to the type of the stored value."""
    if not isinstance(operand, str) or sample is None or isinstance(sample, str):
        return operand
    try:
        if isinstance(sample, bool):
            return operand.strip().lower() in ("true", "1", "yes")
        if isinstance(sample, int):
            return int(operand)
        if isinstance(sample, float):
            return float(operand)
        if isinstance(sample, Decimal):
            return Decimal(operand)
        if isinstance(sample, datetime):
            return datetime.fromisoformat(operand)
        if isinstance(sample, date):
            return date.fromisoformat(operand)
    except (ValueError, InvalidOperation):
        return operand
    return operand


def _like(pattern: str, value: str, ignore_case: bool) -> bool:
    regex = "".join(
        ".*" if char == "%" else "." if char == "_" else re.escape(char) for char in pattern
    )
    flags = re.IGNORECASE | re.DOTALL if ignore_case else re.DOTALL
    return re.fullmatch(regex, value, flags) is not None
