"""
Record store abstraction.

The CRUD service never talks to a database directly. It needs a store that
can find, count, build, save, remove and restore records, and that describes
its schema (primary keys, columns, relations) and capabilities (soft delete,
full-text search, read replicas).

Every method that touches storage is a coroutine. Stores translate
constraint violations into ConflictError and other storage failures into
DBError.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Sequence, Tuple

from crudcore.query.find_spec import FindSpec, Where


class RecordStore(ABC):
    """
    Abstract base class for record stores.

    Attributes:
        name: Resource name used in error messages
        primary_keys: Primary key field names, in key order
        columns: Scalar field names
        relations: Relation names
        hidden_fields: Fields the schema never exposes in responses
        soft_delete_column: Column holding the deletion timestamp, or None
            when the store cannot soft-delete
        supports_full_text: Whether FULL_TEXT predicates can be evaluated
        replicated: Whether reads may hit a replica; consistent reads are
            then routed to the primary
    """

    name: str = "Record"
    primary_keys: List[str] = []
    columns: List[str] = []
    relations: List[str] = []
    hidden_fields: frozenset = frozenset()
    soft_delete_column: Optional[str] = None
    supports_full_text: bool = False
    replicated: bool = False

    @property
    def supports_soft_delete(self) -> bool:
        return self.soft_delete_column is not None

    @abstractmethod
    async def find(self, spec: FindSpec, consistent: bool = False) -> List[Any]:
        """
        Return the records matching ``spec``.

        ``consistent`` marks read-after-write sensitive lookups; replicated
        stores serve them from the primary.
        """

    @abstractmethod
    async def count(self, where: Where, with_deleted: bool = False) -> int:
        """Count the records matching ``where``."""

    async def find_one(
        self,
        where: Where,
        with_deleted: bool = False,
        relations: Optional[Dict[str, Any]] = None,
        select: Optional[List[str]] = None,
        consistent: bool = False,
    ) -> Optional[Any]:
        """Return the first record matching ``where``, or None."""
        records = await self.find(
            FindSpec(
                where=where,
                relations=relations,
                take=1,
                with_deleted=with_deleted,
                select=select,
            ),
            consistent=consistent,
        )
        return records[0] if records else None

    @abstractmethod
    def build(self, data: Dict[str, Any]) -> Any:
        """Instantiate an unsaved record from ``data``."""

    @abstractmethod
    def assign(self, record: Any, data: Dict[str, Any]) -> Any:
        """Copy known fields of ``data`` onto ``record`` and return it."""

    @abstractmethod
    async def save(self, records: Sequence[Any]) -> List[Any]:
        """Insert or update ``records`` in one round trip."""

    @abstractmethod
    async def remove(self, records: Sequence[Any]) -> List[Any]:
        """Hard-delete ``records``."""

    @abstractmethod
    async def soft_remove(self, records: Sequence[Any]) -> List[Any]:
        """Mark ``records`` as deleted."""

    @abstractmethod
    async def recover(self, records: Sequence[Any]) -> List[Any]:
        """Clear the deletion mark of ``records``."""

    @abstractmethod
    def dump(self, record: Any) -> Dict[str, Any]:
        """Plain snapshot of the loaded fields and relations of ``record``."""

    def is_deleted(self, record: Any) -> bool:
        if self.soft_delete_column is None:
            return False
        return getattr(record, self.soft_delete_column, None) is not None

    def identity(self, record: Any) -> Tuple[Any, ...]:
        """Primary key values of ``record``, in key order."""
        return tuple(getattr(record, key, None) for key in self.primary_keys)
