"""
Store-level predicate primitives.

A FindSpec's where-tree maps field names to Predicate objects (or, for
relations, to nested where-trees). Predicates are plain data: each record
store compiles them into its own query language.

Example:
    ```python
    where = {
        "age": all_of(more_than_or_equal("18"), less_than("65")),
        "status": not_(in_(["banned", "deleted"])),
        "author": {"name": ilike("%smith%")},
    }
    ```
"""

from enum import Enum
from typing import Any, Iterable


class PredicateType(str, Enum):
    """Kinds of comparison a store has to support."""

    EQUAL = "equal"
    MORE_THAN = "more_than"
    MORE_THAN_OR_EQUAL = "more_than_or_equal"
    LESS_THAN = "less_than"
    LESS_THAN_OR_EQUAL = "less_than_or_equal"
    BETWEEN = "between"
    LIKE = "like"
    ILIKE = "ilike"
    IN = "in"
    IS_NULL = "is_null"
    FULL_TEXT = "full_text"
    ANY = "any"
    ALL = "all"


class Predicate:
    """
    A comparison applied to one field.

    Attributes:
        type: Comparison kind
        value: Operand; a pair for BETWEEN, a list for IN, a list of
            predicates for ANY/ALL, unused for IS_NULL
        negated: Whether the comparison is inverted
    """

    def __init__(self, type: PredicateType, value: Any = None, negated: bool = False):
        self.type = type
        self.value = value
        self.negated = negated

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Predicate):
            return NotImplemented
        return (self.type, self.value, self.negated) == (
            other.type,
            other.value,
            other.negated,
        )

    def __hash__(self) -> int:
        return hash((self.type, self.negated, repr(self.value)))

    def __repr__(self) -> str:
        inner = f"{self.type.value}({self.value!r})"
        return f"not_({inner})" if self.negated else inner


def equal(value: Any) -> Predicate:
    return Predicate(PredicateType.EQUAL, value)


def more_than(value: Any) -> Predicate:
    return Predicate(PredicateType.MORE_THAN, value)


def more_than_or_equal(value: Any) -> Predicate:
    return Predicate(PredicateType.MORE_THAN_OR_EQUAL, value)


def less_than(value: Any) -> Predicate:
    return Predicate(PredicateType.LESS_THAN, value)


def less_than_or_equal(value: Any) -> Predicate:
    return Predicate(PredicateType.LESS_THAN_OR_EQUAL, value)


def between(low: Any, high: Any) -> Predicate:
    return Predicate(PredicateType.BETWEEN, (low, high))


def like(pattern: str) -> Predicate:
    return Predicate(PredicateType.LIKE, pattern)


def ilike(pattern: str) -> Predicate:
    return Predicate(PredicateType.ILIKE, pattern)


def in_(values: Iterable[Any]) -> Predicate:
    return Predicate(PredicateType.IN, list(values))


def is_null() -> Predicate:
    return Predicate(PredicateType.IS_NULL)


def full_text(term: str) -> Predicate:
    return Predicate(PredicateType.FULL_TEXT, term)


def any_of(*predicates: Predicate) -> Predicate:
    """Match when at least one of ``predicates`` matches."""
    return Predicate(PredicateType.ANY, list(predicates))


def all_of(*predicates: Predicate) -> Predicate:
    """Match when every one of ``predicates`` matches."""
    return Predicate(PredicateType.ALL, list(predicates))


def not_(predicate: Predicate) -> Predicate:
    """Invert a predicate."""
    return Predicate(predicate.type, predicate.value, not predicate.negated)


def as_predicate(value: Any) -> Predicate:
    """Wrap a raw value in an equality predicate; predicates pass through."""
    return value if isinstance(value, Predicate) else equal(value)


def combine(existing: Any, new: Predicate) -> Predicate:
    """AND ``new`` onto whatever already sits at a where-tree leaf."""
    existing = as_predicate(existing)
    if existing.type == PredicateType.ALL and not existing.negated:
        return all_of(*existing.value, new)
    return all_of(existing, new)

