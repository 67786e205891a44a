"""
SQLAlchemy implementation of RecordStore.

Compiles FindSpec where-trees, order maps and relation trees into SQLAlchemy
``select`` statements and runs them on an AsyncSession.

- Relation filters become ``has()`` (many-to-one) or ``any()`` (collections)
- Negated equality and negated membership keep NULL rows, the same way an
  ``ne`` filter does in plain SQL reasoning: ``col != v OR col IS NULL``
- Query-string values are coerced to the column's Python type
- Relation sorts join an alias of the related table (many-to-one only)
- Included relations load with ``selectinload``
- Full-text predicates compile to ``to_tsvector(...) @@ plainto_tsquery(...)``
  and are only available on PostgreSQL

Writes go to the writer session when one is configured and only flush it;
committing is left to the caller (see ``crudcore.db.engine.get_db``) unless
the store was created with ``autocommit=True``.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Set

from sqlalchemy import and_, func, not_, or_, select, true
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased, load_only, selectinload
from sqlalchemy.orm.relationships import RelationshipProperty

from crudcore.config.base import BaseAppSettings
from crudcore.config.settings import merge_defaults
from crudcore.db.base import utcnow
from crudcore.db.store import RecordStore
from crudcore.errors.exceptions import ConflictError, DBError
from crudcore.logging import Logger, ensure_logger
from crudcore.query.find_spec import FindSpec, Where
from crudcore.query.operations import SortDirection
from crudcore.query.predicates import Predicate, PredicateType, as_predicate


class SQLAlchemyStore(RecordStore):
    """
    Record store backed by a SQLAlchemy declarative model.

    Args:
        model: Mapped model class
        session: Session used for reads and writes
        writer_session: Session bound to the primary when ``session`` reads
            from a replica; enables consistent-read routing
        soft_delete_column: Name of the deletion timestamp column; ignored
            when the model has no such column
        text_search_config: PostgreSQL text search configuration; defaults to
            ``settings.CRUD_FTS_CONFIG``, then ``"simple"``
        supports_full_text: Override full-text detection (defaults to True
            on PostgreSQL)
        autocommit: Commit after every write instead of only flushing
        settings: Optional application settings
        logger: Optional logger

    Example:
        ```python
        async with SessionLocal() as session:
            store = SQLAlchemyStore(User, session)
            users = await store.find(FindSpec(where={"name": ilike("a%")}, take=10))
        ```
    """

    def __init__(
        self,
        model: Any,
        session: AsyncSession,
        writer_session: Optional[AsyncSession] = None,
        soft_delete_column: str = "deleted_at",
        text_search_config: Optional[str] = None,
        supports_full_text: Optional[bool] = None,
        autocommit: bool = False,
        settings: Optional[BaseAppSettings] = None,
        logger: Optional[Logger] = None,
    ):
        self.model = model
        self.session = session
        self.writer_session = writer_session
        self.autocommit = autocommit
        self.logger = ensure_logger(logger, __name__, settings)
        self.text_search_config = merge_defaults(
            text_search_config, settings.CRUD_FTS_CONFIG if settings else None, "simple"
        )

        mapper = sa_inspect(model)
        self.name = model.__name__
        self.primary_keys = [mapper.get_property_by_column(c).key for c in mapper.primary_key]
        self.columns = [attr.key for attr in mapper.column_attrs]
        self.relations = [rel.key for rel in mapper.relationships]
        self.hidden_fields = frozenset(getattr(model, "__hidden_fields__", ()))
        self.soft_delete_column = (
            soft_delete_column if soft_delete_column in self.columns else None
        )
        self.replicated = writer_session is not None
        if supports_full_text is None:
            supports_full_text = self._dialect_name() == "postgresql"
        self.supports_full_text = supports_full_text

    def _dialect_name(self) -> str:
        bind = self.session.bind
        return bind.dialect.name if bind is not None else ""

    # Reads

    async def find(self, spec: FindSpec, consistent: bool = False) -> List[Any]:
        return await self._find(spec, self._session_for(consistent))

    def _session_for(self, consistent: bool) -> AsyncSession:
        return self.writer_session if consistent and self.replicated else self.session

    async def find_one(
        self,
        where: Where,
        with_deleted: bool = False,
        relations: Optional[Dict[str, Any]] = None,
        select: Optional[List[str]] = None,
        consistent: bool = False,
    ) -> Optional[Any]:
        records = await self._find(
            FindSpec(
                where=where,
                relations=relations,
                take=1,
                with_deleted=with_deleted,
                select=select,
            ),
            self._session_for(consistent),
        )
        return records[0] if records else None

    async def _find(self, spec: FindSpec, session: AsyncSession) -> List[Any]:
        stmt = select(self.model).where(self.where_clause(spec.where, spec.with_deleted))
        stmt = self._apply_order(stmt, spec.order)

        if spec.relations:
            stmt = stmt.options(*self._load_options(self.model, spec.relations))
        if spec.select:
            columns = [getattr(self.model, c) for c in spec.select if c in self.columns]
            if columns:
                stmt = stmt.options(load_only(*columns))
        if spec.skip:
            stmt = stmt.offset(spec.skip)
        if spec.take:
            stmt = stmt.limit(spec.take)

        try:
            result = await session.execute(stmt)
            return list(result.scalars().unique().all())
        except SQLAlchemyError as e:
            self.logger.error(f"Error running find on {self.name}: {str(e)}")
            raise DBError(message=str(e), details={"error": str(e)})

    async def count(self, where: Where, with_deleted: bool = False) -> int:
        stmt = (
            select(func.count())
            .select_from(self.model)
            .where(self.where_clause(where, with_deleted))
        )
        try:
            result = await self.session.execute(stmt)
            return int(result.scalar_one())
        except SQLAlchemyError as e:
            self.logger.error(f"Error counting {self.name}: {str(e)}")
            raise DBError(message=str(e), details={"error": str(e)})

    # Where compilation

    def where_clause(self, where: Where, with_deleted: bool = False):
        """Compile a where-tree, adding the soft-delete filter if needed."""
        clause = self._compile_where(self.model, where)
        if self.soft_delete_column and not with_deleted:
            clause = and_(clause, getattr(self.model, self.soft_delete_column).is_(None))
        return clause

    def _compile_where(self, model: Any, where: Where):
        if isinstance(where, list):
            if not where:
                return true()
            return or_(*[self._compile_where(model, member) for member in where])

        clauses = []
        for key, value in (where or {}).items():
            attr = getattr(model, key, None)
            if attr is None or not hasattr(attr, "property"):
                self.logger.debug(f"Ignoring unknown field in where: {model.__name__}.{key}")
                continue

            prop = attr.property
            if isinstance(prop, RelationshipProperty):
                target = prop.mapper.class_
                inner = self._compile_where(target, value) if isinstance(value, (dict, list)) else true()
                clauses.append(attr.any(inner) if prop.uselist else attr.has(inner))
            else:
                clauses.append(self._compile_predicate(attr, as_predicate(value)))

        return and_(*clauses) if clauses else true()

    def _compile_predicate(self, column: Any, predicate: Predicate):
        kind = predicate.type
        value = predicate.value

        if kind == PredicateType.ANY:
            expr = or_(*[self._compile_predicate(column, as_predicate(v)) for v in value])
        elif kind == PredicateType.ALL:
            expr = and_(*[self._compile_predicate(column, as_predicate(v)) for v in value])
        elif kind == PredicateType.IS_NULL:
            return column.isnot(None) if predicate.negated else column.is_(None)
        elif kind == PredicateType.EQUAL:
            if value is None:
                return column.isnot(None) if predicate.negated else column.is_(None)
            expr = column == self._coerce(column, value)
        elif kind == PredicateType.MORE_THAN:
            expr = column > self._coerce(column, value)
        elif kind == PredicateType.MORE_THAN_OR_EQUAL:
            expr = column >= self._coerce(column, value)
        elif kind == PredicateType.LESS_THAN:
            expr = column < self._coerce(column, value)
        elif kind == PredicateType.LESS_THAN_OR_EQUAL:
            expr = column <= self._coerce(column, value)
        elif kind == PredicateType.BETWEEN:
            low, high = value
            expr = column.between(self._coerce(column, low), self._coerce(column, high))
        elif kind == PredicateType.LIKE:
            expr = column.like(value)
        elif kind == PredicateType.ILIKE:
            expr = column.ilike(value)
        elif kind == PredicateType.IN:
            expr = column.in_([self._coerce(column, v) for v in value])
        elif kind == PredicateType.FULL_TEXT:
            expr = func.to_tsvector(self.text_search_config, column).op("@@")(
                func.plainto_tsquery(self.text_search_config, value)
            )
        else:
            raise DBError(message=f"Unsupported predicate: {kind}")

        if not predicate.negated:
            return expr
        # NULL never compares equal to anything, so a negated comparison keeps NULL rows
        if kind in (PredicateType.EQUAL, PredicateType.IN):
            return or_(not_(expr), column.is_(None))
        return not_(expr)

    @staticmethod
    def _coerce(column: Any, value: Any) -> Any:
        """Convert a query-string value to the column's Python type."""
        if not isinstance(value, str):
            return value
        try:
            python_type = column.type.python_type
        except (AttributeError, NotImplementedError):
            return value

        try:
            if python_type is bool:
                return value.strip().lower() in ("true", "1", "yes")
            if python_type in (int, float, Decimal):
                return python_type(value)
            if python_type is datetime:
                return datetime.fromisoformat(value)
            if python_type is date:
                return date.fromisoformat(value)
            if python_type is uuid.UUID:
                return uuid.UUID(value)
        except (ValueError, InvalidOperation):
            return value
        return value

    # Ordering and loading

    def _apply_order(self, stmt: Any, order: Dict[str, Any], model: Any = None):
        model = model if model is not None else self.model
        for key, direction in order.items():
            attr = getattr(model, key, None)
            if attr is None or not hasattr(attr, "property"):
                continue

            if isinstance(direction, dict):
                prop = attr.property
                if not isinstance(prop, RelationshipProperty) or prop.uselist:
                    continue
                target = aliased(prop.mapper.class_)
                stmt = stmt.outerjoin(attr.of_type(target))
                stmt = self._apply_order(stmt, direction, target)
                continue

            direction = SortDirection.parse(direction)
            stmt = stmt.order_by(attr.desc() if direction == SortDirection.DESC else attr.asc())
        return stmt

    def _load_options(self, model: Any, relations: Dict[str, Any], parent: Any = None) -> List[Any]:
        options = []
        for name, nested in relations.items():
            attr = getattr(model, name, None)
            if attr is None or not isinstance(getattr(attr, "property", None), RelationshipProperty):
                self.logger.debug(f"Ignoring unknown relation: {model.__name__}.{name}")
                continue

            loader = selectinload(attr) if parent is None else parent.selectinload(attr)
            if isinstance(nested, dict) and nested:
                options.extend(self._load_options(attr.property.mapper.class_, nested, loader))
            else:
                options.append(loader)
        return options

    # Writes

    def build(self, data: Dict[str, Any]) -> Any:
        known = set(self.columns) | set(self.relations)
        return self.model(**{k: v for k, v in data.items() if k in known})

    def assign(self, record: Any, data: Dict[str, Any]) -> Any:
        known = set(self.columns) | set(self.relations)
        for key, value in data.items():
            if key in known:
                setattr(record, key, value)
        return record

    def _writer(self) -> AsyncSession:
        return self.writer_session if self.replicated else self.session

    async def save(self, records: Sequence[Any]) -> List[Any]:
        records = list(records)
        async with self._writing("save") as session:
            session.add_all(records)
        return records

    async def remove(self, records: Sequence[Any]) -> List[Any]:
        records = list(records)
        async with self._writing("remove") as session:
            for record in records:
                await session.delete(record)
        return records

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

    @asynccontextmanager
    async def _writing(self, action: str) -> AsyncIterator[AsyncSession]:
        """Yield the write session, then flush; database errors become AppErrors."""
        session = self._writer()
        try:
            yield session
            await session.flush()
            if self.autocommit:
                await session.commit()
        except IntegrityError as e:
            await session.rollback()
            self.logger.error(f"Constraint violation during {action} on {self.name}: {str(e.orig)}")
            raise ConflictError(
                message=f"Could not {action} {self.name}: constraint violation",
                details={"error": str(e.orig)},
            )
        except SQLAlchemyError as e:
            await session.rollback()
            self.logger.error(f"Error during {action} on {self.name}: {str(e)}")
            raise DBError(message=str(e), details={"error": str(e)})

    # Serialization

    def dump(self, record: Any) -> Dict[str, Any]:
        return _dump_mapped(record, set())


def _dump_mapped(record: Any, seen: Set[int]) -> Dict[str, Any]:
    """Plain dict of the loaded columns and relations, without triggering lazy loads."""
    seen = seen | {id(record)}
    state = sa_inspect(record)
    mapper = state.mapper
    unloaded = state.unloaded
    data: Dict[str, Any] = {}

    for attr in mapper.column_attrs:
        if attr.key not in unloaded:
            data[attr.key] = getattr(record, attr.key)

    for rel in mapper.relationships:
        if rel.key in unloaded:
            continue
        value = getattr(record, rel.key)
        if value is None:
            data[rel.key] = None
        elif rel.uselist:
            data[rel.key] = [_dump_mapped(item, seen) for item in value if id(item) not in seen]
        elif id(value) not in seen:
            data[rel.key] = _dump_mapped(value, seen)
    return data
