"""
CRUD orchestration.

CrudService runs the CRUD operations of one resource on top of a
RecordStore:

- ``index``: filtered, sorted, paginated listing from raw query parameters
- ``show``: a single record by key
- ``create``: one record or a list of records
- ``update`` / ``upsert`` / ``destroy`` / ``recover``: a single record by key
- ``update_many`` / ``upsert_many`` / ``destroy_many`` / ``recover_many``:
  many records by key, fetched with one query and written with one batched
  store call

Every write passes each record through the lifecycle hook pipeline
(``assign_before -> build/merge -> assign_after -> save_before -> persist ->
save_after``) and every operation returns a CrudResponse envelope.
Records looked up for a write are read consistently, so a replicated store
serves them from the primary.
Given a cache backend, show and index responses are cached and every write
clears the resource's entries (see ``crudcore.crud.caching``).

Limitations:
- Request bodies and route parameters are expected to be validated and
  typed by the caller; the service only filters body keys by allow-list.
- The row query and the count query of ``index`` run one after the other,
  since an AsyncSession cannot serve concurrent statements.
"""

from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from crudcore.cache.base import BaseCache
from crudcore.config.base import BaseAppSettings
from crudcore.config.settings import get_settings
from crudcore.crud.batch import BatchProcessor
from crudcore.crud.caching import ResponseCache
from crudcore.crud.hooks import Author, HookContext, LifecycleHooks, Method
from crudcore.crud.options import CacheOptions, CrudOptions, RouteOptions
from crudcore.crud.policy import merge_defaults, policy_default
from crudcore.crud.serializer import ResponseFactory
from crudcore.db.store import RecordStore
from crudcore.errors.exceptions import (
    BadRequestError,
    ConfigurationError,
    ConflictError,
    NotFoundError,
    UnsupportedOperationError,
)
from crudcore.logging import Logger, ensure_logger, log_operation
from crudcore.pagination.engine import (
    PaginationEngine,
    PaginationType,
    continuation_where,
    order_keys,
    resolve_take,
)
from crudcore.query import predicates as p
from crudcore.query.converter import QueryConverter
from crudcore.query.find_spec import FindSpec, merge_where, relation_paths
from crudcore.query.parser import QueryParser, QueryParserOptions
from crudcore.schemas import CrudResponse

Body = Dict[str, Any]
KeyParams = Union[Mapping[str, Any], Any]


class CrudService:
    """
    CRUD operations for one resource.

    Args:
        store: Record store of the resource
        options: Service and route configuration
        settings: Application settings; loaded with ``get_settings`` when omitted
        logger: Optional logger
        batch_processor: Processor used for writes above the batch threshold
        pagination_engine: Engine used by ``index``
        cache: Backend for caching show and index responses; writes clear
            the resource's entries

    Raises:
        ConfigurationError: If destroy is enabled but no primary key is known

    Example:
        ```python
        service = CrudService(SQLAlchemyStore(User, session), CrudOptions(exclude=["password"]))
        page = await service.index({"filter[age_gte]": "18", "sort": "-created_at"})
        user = await service.update({"id": 1}, {"name": "Ada"})
        ```
    """

    def __init__(
        self,
        store: RecordStore,
        options: Optional[CrudOptions] = None,
        settings: Optional[BaseAppSettings] = None,
        logger: Optional[Logger] = None,
        batch_processor: Optional[BatchProcessor] = None,
        pagination_engine: Optional[PaginationEngine] = None,
        cache: Optional[BaseCache] = None,
    ):
        self.store = store
        self.options = options or CrudOptions()
        self.settings = settings or get_settings()
        self.logger = ensure_logger(logger, __name__, self.settings)
        self.primary_keys = list(self.options.primary_keys or store.primary_keys)
        self.batch_processor = batch_processor or BatchProcessor(
            self.settings.CRUD_MAX_BATCH_SIZE, self.logger
        )
        self.pagination = pagination_engine or PaginationEngine(self.logger)

        cache_options = self.options.cache or CacheOptions()
        self.cache: Optional[ResponseCache] = None
        if cache is not None and cache_options.enabled:
            self.cache = ResponseCache(
                cache,
                cache_options.key_prefix or f"crud:{store.name}",
                merge_defaults(cache_options.ttl, self.settings.CACHE_DEFAULT_TTL, 300),
                self.logger,
            )

        if self.options.route(Method.DESTROY).enabled and not self.primary_keys:
            raise ConfigurationError(
                message=f"{store.name}: destroy is enabled but no primary key is configured",
                details={"resource": store.name},
            )

    # Reads

    async def index(
        self,
        query: Optional[Mapping[str, Any]] = None,
        params: Optional[Mapping[str, Any]] = None,
        with_deleted: Optional[bool] = None,
        factory: Optional[ResponseFactory] = None,
    ) -> CrudResponse:
        """
        List records.

        Args:
            query: Raw query parameters (filter, sort, include, page)
            params: Route parameters, ANDed into the filter as equalities
            with_deleted: Include soft-deleted records; overrides the route option
            factory: Request-scoped response factory to reuse

        Returns:
            List envelope with pagination metadata

        Raises:
            UnsupportedOperationError: For full-text filters the store cannot run
            ValidationError: For disallowed fields when CRUD_REJECT_DISALLOWED is set
        """
        method = Method.INDEX
        route = self._route(method)
        exclude = self.options.exclude_for(method)

        cache_key = None
        if self.cache is not None:
            cache_key = self.cache.key(
                method.value, query=query, params=params, with_deleted=with_deleted
            )
            cached = await self.cache.get(cache_key)
            if cached is not None:
                return cached

        parsed = self._parser(route, exclude).parse(query)
        spec = QueryConverter(self.store.supports_full_text, self.logger).convert(parsed)

        if params:
            spec.where = merge_where(spec.where, {k: p.equal(v) for k, v in params.items()})
        base_where = spec.where
        spec.with_deleted = merge_defaults(
            with_deleted, route.with_deleted, policy_default(method, "with_deleted", False)
        )

        direction = merge_defaults(route.sort, None, policy_default(method, "sort"))
        if not spec.order:
            keys = route.pagination_keys or self.primary_keys
            spec.order = {key: direction for key in keys}

        take = resolve_take(
            spec.take,
            parsed.page.page_limit if parsed.page else None,
            route.number_of_take,
            self.settings.CRUD_DEFAULT_TAKE,
        )
        request = self.pagination.resolve(
            parsed.page,
            merge_defaults(route.pagination_type, None, policy_default(method, "pagination_type")),
            take,
        )
        spec.take = request.take
        spec.skip = request.offset if request.type == PaginationType.OFFSET else None
        if request.cursor is not None:
            spec.where = merge_where(
                spec.where, continuation_where(request.cursor, spec.order, direction)
            )

        cursor_keys = order_keys(spec.order)
        included = relation_paths(spec.relations)
        # Relation sort values are read from the rows, so their relations are loaded
        sort_relations = [key.rsplit(".", 1)[0] for key in cursor_keys if "." in key]
        if sort_relations:
            spec.relations = _relation_tree(included + sort_relations)
        spec.select = self._select(exclude, cursor_keys, spec.relations)

        records = await self.store.find(spec)
        if request.is_next and request.cursor.total is not None:
            total = request.cursor.total
        else:
            total = await self.store.count(base_where, spec.with_deleted)

        self.logger.debug(
            f"index {self.store.name}: {len(records)} of {total} records ({request!r})"
        )
        response = (factory or ResponseFactory(self.store)).create_response(
            records,
            method.value,
            exclude=exclude,
            pagination=self.pagination.build_state(request, records, total, cursor_keys),
            included_relations=included,
            hidden=_outside(sort_relations, included),
            shape=_shape(spec.relations, spec.select),
        )
        if cache_key is not None:
            return await self.cache.set(cache_key, response)
        return response

    async def show(
        self,
        params: KeyParams,
        relations: Optional[Sequence[str]] = None,
        with_deleted: Optional[bool] = None,
        factory: Optional[ResponseFactory] = None,
    ) -> CrudResponse:
        """
        Fetch one record by key.

        Args:
            params: Key values (a mapping, or a scalar for single-key resources)
            relations: Dotted relation paths to load; defaults to the route option
            with_deleted: Include a soft-deleted record; overrides the route option
            factory: Request-scoped response factory to reuse

        Raises:
            NotFoundError: If no record matches
        """
        method = Method.SHOW
        route = self._route(method)
        hooks = self.options.hooks_for(method)
        exclude = self.options.exclude_for(method)

        key = self._key_params(params)
        cache_key = None
        if self.cache is not None:
            cache_key = self.cache.key(
                method.value, key=key, relations=relations, with_deleted=with_deleted
            )
            cached = await self.cache.get(cache_key)
            if cached is not None:
                return cached

        ctx = HookContext(method, key)
        key = await hooks.run_assign_before(dict(key), ctx)
        where = self._where(key)

        tree = _relation_tree(relations if relations is not None else route.relations or [])
        select = self._select(exclude, [], tree)
        entity = await self.store.find_one(
            where,
            with_deleted=merge_defaults(
                with_deleted, route.with_deleted, policy_default(method, "with_deleted", False)
            ),
            relations=tree,
            select=select,
        )
        if entity is None:
            raise self._not_found(where)

        ctx.current_entity = entity
        entity = await hooks.run_assign_after(entity, key, ctx)
        response = (factory or ResponseFactory(self.store)).create_response(
            entity,
            method.value,
            exclude=exclude,
            included_relations=relation_paths(tree),
            shape=_shape(tree, select),
        )
        if cache_key is not None:
            return await self.cache.set(cache_key, response)
        return response

    # Single-record writes

    async def create(
        self,
        body: Union[Body, Sequence[Body]],
        author: Optional[Author] = None,
        factory: Optional[ResponseFactory] = None,
    ) -> CrudResponse:
        """
        Create one record, or every record of a list.

        Args:
            body: Field values, or a list of them
            author: Author stamped onto the new records
            factory: Request-scoped response factory to reuse

        Returns:
            The created record, or the list of created records

        Raises:
            ConflictError: On a constraint violation
            PartialBatchError: When a chunk of a large list fails after
                earlier chunks were persisted
        """
        method = Method.CREATE
        self._route(method)
        hooks = self.options.hooks_for(method)
        many = isinstance(body, (list, tuple))
        items = list(body) if many else [body]

        prepared = []
        for item in items:
            ctx = HookContext(method, author=author)
            entity = await self._prepare(hooks, self._filter_body(method, item), None, ctx)
            prepared.append((entity, ctx))

        saved = await self._persist(method, [entity for entity, _ in prepared], self.store.save)
        results = [
            await hooks.run_save_after(entity, ctx) for entity, (_, ctx) in zip(saved, prepared)
        ]

        return self._respond(method, results if many else results[0], factory)

    async def update(
        self,
        params: KeyParams,
        body: Body,
        author: Optional[Author] = None,
        factory: Optional[ResponseFactory] = None,
    ) -> CrudResponse:
        """
        Apply a partial update to one record.

        The body is merged onto the stored record before the hooks run, so
        hooks see the merged state.

        Raises:
            NotFoundError: If no live record matches
            ConflictError: On a constraint violation
        """
        method = Method.UPDATE
        self._route(method)
        hooks = self.options.hooks_for(method)

        key = self._key_params(params)
        where = self._where(key)
        entity = await self.store.find_one(where, with_deleted=False, consistent=True)
        if entity is None:
            raise self._not_found(where)

        ctx = HookContext(method, key, current_entity=entity, author=author)
        entity = await self._prepare(
            hooks, self._filter_body(method, body), entity, ctx, merge_first=True
        )
        saved = await self._persist(method, [entity], self.store.save)
        entity = await hooks.run_save_after(saved[0], ctx)

        return self._respond(method, entity, factory)

    async def upsert(
        self,
        params: KeyParams,
        body: Body,
        author: Optional[Author] = None,
        factory: Optional[ResponseFactory] = None,
    ) -> CrudResponse:
        """
        Update the record with the given key, or create it.

        The existence check is a consistent read (served by the primary on
        replicated stores). Metadata carries ``isNew``.

        Raises:
            ConflictError: If the record exists but is soft-deleted, or on a
                constraint violation
        """
        method = Method.UPSERT
        self._route(method)
        hooks = self.options.hooks_for(method)

        key = self._key_params(params)
        where = self._where(key)
        entity = await self.store.find_one(where, with_deleted=True, consistent=True)
        if entity is not None and self.store.is_deleted(entity):
            raise ConflictError(
                message=f"{self.store.name} {key} has been deleted",
                details={"key": key},
            )

        is_new = entity is None
        ctx = HookContext(method, key, current_entity=entity, author=author)
        entity = await self._prepare(
            hooks, self._filter_body(method, body), entity, ctx, defaults=key
        )
        saved = await self._persist(method, [entity], self.store.save)
        entity = await hooks.run_save_after(saved[0], ctx)

        return self._respond(method, entity, factory, is_new=is_new)

    async def destroy(
        self,
        params: KeyParams,
        author: Optional[Author] = None,
        factory: Optional[ResponseFactory] = None,
    ) -> CrudResponse:
        """
        Delete one record; soft deletion is used when configured and supported.

        Metadata carries ``wasSoftDeleted``.

        Raises:
            ConflictError: If no primary key is configured
            NotFoundError: If no live record matches
        """
        method = Method.DESTROY
        self._require_primary_keys(method)
        route = self._route(method)
        hooks = self.options.hooks_for(method)

        key = self._key_params(params)
        where = self._where(key)
        entity = await self.store.find_one(where, with_deleted=False, consistent=True)
        if entity is None:
            raise self._not_found(where)

        soft = self._soft_delete(route)
        ctx = HookContext(method, key, current_entity=entity, author=author)
        removed = await self._remove(method, hooks, [(entity, ctx)], soft, author)

        return self._respond(method, removed[0], factory, was_soft_deleted=soft)

    async def recover(
        self,
        params: KeyParams,
        factory: Optional[ResponseFactory] = None,
    ) -> CrudResponse:
        """
        Restore a soft-deleted record.

        Recovering a record that is not deleted is allowed; ``wasSoftDeleted``
        in the metadata tells the two cases apart.

        Raises:
            NotFoundError: If no record matches, deleted or not
        """
        method = Method.RECOVER
        self._route(method)
        hooks = self.options.hooks_for(method)

        key = self._key_params(params)
        where = self._where(key)
        entity = await self.store.find_one(where, with_deleted=True, consistent=True)
        if entity is None:
            raise self._not_found(where)

        was_deleted = self.store.is_deleted(entity)
        ctx = HookContext(method, key, current_entity=entity)
        restored = await self._restore(method, hooks, [(entity, ctx)])

        return self._respond(method, restored[0], factory, was_soft_deleted=was_deleted)

    # Bulk writes

    async def update_many(
        self,
        items: Sequence[Body],
        author: Optional[Author] = None,
        factory: Optional[ResponseFactory] = None,
    ) -> CrudResponse:
        """
        Update many records; every item carries its key fields and changes.

        Raises:
            NotFoundError: Naming every key without a live record; nothing is written
        """
        method = Method.UPDATE
        self._route(method)
        hooks = self.options.hooks_for(method)

        keys = [self._key_params(item) for item in items]
        found = await self._fetch_many(keys, with_deleted=False, consistent=True)
        self._raise_missing(keys, found)

        prepared = []
        for key, item in zip(keys, items):
            entity = found[_key_of(key, self.primary_keys)]
            ctx = HookContext(method, key, current_entity=entity, author=author)
            entity = await self._prepare(
                hooks, self._filter_body(method, self._strip_keys(item)), entity, ctx, merge_first=True
            )
            prepared.append((entity, ctx))

        saved = await self._persist(method, [entity for entity, _ in prepared], self.store.save)
        results = [
            await hooks.run_save_after(entity, ctx) for entity, (_, ctx) in zip(saved, prepared)
        ]
        return self._respond(method, results, factory)

    async def upsert_many(
        self,
        items: Sequence[Body],
        author: Optional[Author] = None,
        factory: Optional[ResponseFactory] = None,
    ) -> CrudResponse:
        """
        Upsert many records; every item carries its key fields and values.

        Metadata carries ``isNew`` as one flag per item, in request order.

        Raises:
            ConflictError: Naming every key whose record is soft-deleted
        """
        method = Method.UPSERT
        self._route(method)
        hooks = self.options.hooks_for(method)

        keys = [self._key_params(item) for item in items]
        found = await self._fetch_many(keys, with_deleted=True, consistent=True)

        deleted = [key for key in keys if self.store.is_deleted(found.get(_key_of(key, self.primary_keys)))]
        if deleted:
            raise ConflictError(
                message=f"{self.store.name} records have been deleted: {deleted}",
                details={"keys": deleted},
            )

        prepared = []
        is_new = []
        created: Dict[Tuple[str, ...], Any] = {}
        for key, item in zip(keys, items):
            key_id = _key_of(key, self.primary_keys)
            entity = found.get(key_id) or created.get(key_id)
            is_new.append(key_id not in found)
            ctx = HookContext(method, key, current_entity=entity, author=author)
            entity = await self._prepare(
                hooks, self._filter_body(method, self._strip_keys(item)), entity, ctx, defaults=key
            )
            created.setdefault(key_id, entity)
            prepared.append((entity, ctx))

        saved = await self._persist(
            method, _unique([entity for entity, _ in prepared]), self.store.save
        )
        by_id = {id(entity): entity for entity in saved}
        results = [
            await hooks.run_save_after(by_id.get(id(entity), entity), ctx)
            for entity, ctx in prepared
        ]
        return self._respond(method, results, factory, is_new=is_new)

    async def destroy_many(
        self,
        keys: Sequence[KeyParams],
        author: Optional[Author] = None,
        factory: Optional[ResponseFactory] = None,
    ) -> CrudResponse:
        """
        Delete many records by key.

        Raises:
            ConflictError: If no primary key is configured
            NotFoundError: Naming every key without a live record; nothing is deleted
        """
        method = Method.DESTROY
        self._require_primary_keys(method)
        route = self._route(method)
        hooks = self.options.hooks_for(method)

        key_params = [self._key_params(key) for key in keys]
        found = await self._fetch_many(key_params, with_deleted=False, consistent=True)
        self._raise_missing(key_params, found)

        soft = self._soft_delete(route)
        pairs = [
            (entity, HookContext(method, key, current_entity=entity, author=author))
            for key, entity in _unique_pairs(key_params, found, self.primary_keys)
        ]
        removed = await self._remove(method, hooks, pairs, soft, author)
        return self._respond(method, removed, factory, was_soft_deleted=soft)

    async def recover_many(
        self,
        keys: Sequence[KeyParams],
        factory: Optional[ResponseFactory] = None,
    ) -> CrudResponse:
        """
        Restore many records by key.

        Metadata carries ``wasSoftDeleted`` as one flag per restored record.

        Raises:
            NotFoundError: Naming every key without a record
        """
        method = Method.RECOVER
        self._route(method)
        hooks = self.options.hooks_for(method)

        key_params = [self._key_params(key) for key in keys]
        found = await self._fetch_many(key_params, with_deleted=True, consistent=True)
        self._raise_missing(key_params, found)

        pairs = [
            (entity, HookContext(method, key, current_entity=entity))
            for key, entity in _unique_pairs(key_params, found, self.primary_keys)
        ]
        was_deleted = [self.store.is_deleted(entity) for entity, _ in pairs]
        restored = await self._restore(method, hooks, pairs)
        return self._respond(method, restored, factory, was_soft_deleted=was_deleted)

    # Pipeline

    async def _prepare(
        self,
        hooks: LifecycleHooks,
        body: Body,
        entity: Any,
        ctx: HookContext,
        merge_first: bool = False,
        defaults: Optional[Body] = None,
    ) -> Any:
        """Run one record through assign_before, build/merge, assign_after and save_before."""
        if merge_first and entity is not None:
            self.store.assign(entity, body)

        body = await hooks.run_assign_before(body, ctx)
        if entity is None:
            entity = self.store.build({**(defaults or {}), **body})
        else:
            self.store.assign(entity, body)

        entity = await hooks.run_assign_after(entity, body, ctx)
        if ctx.author is not None:
            self.store.assign(entity, {ctx.author.property: ctx.author.value})
        return await hooks.run_save_before(entity, ctx)

    async def _persist(
        self,
        method: Method,
        records: List[Any],
        action: Callable[[List[Any]], Awaitable[List[Any]]],
    ) -> List[Any]:
        """
        Hand ``records`` to the store in one call, or in chunks above the batch threshold.

        Cached responses of the resource are dropped afterwards, also when
        the write fails part way.
        """
        if not records:
            return []
        threshold = merge_defaults(
            self._route(method).batch_threshold, self.settings.CRUD_BATCH_THRESHOLD, 50
        )
        try:
            if len(records) > threshold:
                return await self.batch_processor.process_sequential(records, action)
            return list(await action(records))
        finally:
            if self.cache is not None:
                await self.cache.invalidate()

    async def _remove(
        self,
        method: Method,
        hooks: LifecycleHooks,
        pairs: List[Tuple[Any, HookContext]],
        soft: bool,
        author: Optional[Author],
    ) -> List[Any]:
        entities = []
        for entity, ctx in pairs:
            if author is not None:
                self.store.assign(entity, {author.property: author.value})
            entities.append(await hooks.run_save_before(entity, ctx))

        if author is not None and not soft:
            # Persist the author before the row goes away
            await self._persist(method, entities, self.store.save)
        action = self.store.soft_remove if soft else self.store.remove
        removed = await self._persist(method, entities, action)
        return [await hooks.run_save_after(entity, ctx) for entity, (_, ctx) in zip(removed, pairs)]

    async def _restore(
        self,
        method: Method,
        hooks: LifecycleHooks,
        pairs: List[Tuple[Any, HookContext]],
    ) -> List[Any]:
        if not self.store.supports_soft_delete:
            raise UnsupportedOperationError(
                message=f"{self.store.name} does not support soft deletion",
                operator=method.value,
            )
        entities = [await hooks.run_save_before(entity, ctx) for entity, ctx in pairs]
        restored = await self._persist(method, entities, self.store.recover)
        return [await hooks.run_save_after(entity, ctx) for entity, (_, ctx) in zip(restored, pairs)]

    # Helpers

    def _route(self, method: Method) -> RouteOptions:
        route = self.options.route(method)
        if not route.enabled:
            raise UnsupportedOperationError(
                message=f"{method.value} is not enabled for {self.store.name}",
                operator=method.value,
            )
        return route

    def _require_primary_keys(self, method: Method) -> None:
        if not self.primary_keys:
            self.logger.error(f"{method.value} {self.store.name}: no primary key configured")
            raise ConflictError(
                message=f"Cannot {method.value} {self.store.name}: no primary key configured",
                details={"resource": self.store.name},
            )

    def _parser(self, route: RouteOptions, exclude: List[str]) -> QueryParser:
        visible = [c for c in self.store.columns if c not in exclude]
        return QueryParser(
            QueryParserOptions(
                allowed_filters=route.allowed_filters if route.allowed_filters is not None else visible,
                allowed_sorts=route.allowed_sorts if route.allowed_sorts is not None else visible,
                allowed_includes=(
                    route.allowed_includes
                    if route.allowed_includes is not None
                    else self.store.relations
                ),
                default_page_size=merge_defaults(
                    route.number_of_take, self.settings.CRUD_DEFAULT_PAGE_SIZE, 20
                ),
                max_page_size=self.settings.CRUD_MAX_PAGE_SIZE,
                reject_disallowed=self.settings.CRUD_REJECT_DISALLOWED,
            ),
            self.logger,
        )

    def _select(
        self, exclude: List[str], keep: Sequence[str], relations: Dict[str, Any]
    ) -> Optional[List[str]]:
        """Columns to load: known columns minus top-level excludes, or None for all."""
        hidden = {field for field in exclude if "." not in field}
        if not hidden or relations:
            return None
        return [c for c in self.store.columns if c not in hidden or c in keep]

    def _key_params(self, params: KeyParams) -> Body:
        """Normalize key parameters to ``{primary_key: value}``."""
        if not isinstance(params, Mapping):
            if len(self.primary_keys) != 1:
                raise BadRequestError(
                    message=f"{self.store.name} has a composite key; pass a mapping of key fields"
                )
            return {self.primary_keys[0]: params}

        key = {k: params[k] for k in self.primary_keys if k in params}
        if self.primary_keys and len(key) != len(self.primary_keys):
            missing = [k for k in self.primary_keys if k not in key]
            raise BadRequestError(
                message=f"Missing key fields for {self.store.name}: {missing}",
                details={"missing": missing},
            )
        if not self.primary_keys:
            key = {k: v for k, v in params.items() if k in self.store.columns}
        if not key:
            raise BadRequestError(message=f"No key given for {self.store.name}")
        return key

    def _where(self, key: Body) -> Dict[str, Any]:
        return {field: p.equal(value) for field, value in key.items()}

    def _strip_keys(self, item: Body) -> Body:
        """Item values without its key fields; the key is applied separately."""
        return {k: v for k, v in item.items() if k not in self.primary_keys}

    def _filter_body(self, method: Method, body: Body) -> Body:
        allowed = self.options.allowed_params_for(method)
        if allowed is None:
            return dict(body)
        return {k: v for k, v in body.items() if k in allowed}

    def _soft_delete(self, route: RouteOptions) -> bool:
        soft = merge_defaults(
            route.soft_delete,
            self.settings.CRUD_SOFT_DELETE,
            policy_default(Method.DESTROY, "soft_delete", True),
        )
        return bool(soft) and self.store.supports_soft_delete

    async def _fetch_many(
        self, keys: List[Body], with_deleted: bool, consistent: bool = False
    ) -> Dict[Tuple[str, ...], Any]:
        """Fetch every keyed record with one query and map them by key."""
        if not keys:
            return {}
        if len(self.primary_keys) == 1:
            pk = self.primary_keys[0]
            values = list(dict.fromkeys(key[pk] for key in keys))
            where: Any = {pk: p.in_(values)}
        else:
            unique = {_key_of(key, self.primary_keys): key for key in keys}
            where = [self._where(key) for key in unique.values()]

        records = await self.store.find(
            FindSpec(where=where, with_deleted=with_deleted), consistent=consistent
        )
        return {
            _key_of(tuple(getattr(r, pk, None) for pk in self.primary_keys), self.primary_keys): r
            for r in records
        }

    def _raise_missing(self, keys: List[Body], found: Dict[Tuple[str, ...], Any]) -> None:
        missing = []
        for key in keys:
            if _key_of(key, self.primary_keys) not in found and key not in missing:
                missing.append(key)
        if missing:
            raise NotFoundError(resource_type=self.store.name, missing_keys=missing)

    def _not_found(self, where: Dict[str, Any]) -> NotFoundError:
        key = {field: predicate.value for field, predicate in where.items()}
        return NotFoundError(resource_type=self.store.name, resource_id=key)

    def _respond(
        self,
        method: Method,
        data: Any,
        factory: Optional[ResponseFactory],
        **metadata: Any,
    ) -> CrudResponse:
        factory = factory or ResponseFactory(self.store)
        # Records changed; earlier serializations in this request are stale
        factory.clear()
        response = factory.create_response(
            data, method.value, exclude=self.options.exclude_for(method), **metadata
        )
        log_operation(
            self.logger,
            method.value,
            self.store.name,
            response.metadata.affected_count,
            **{k: v for k, v in metadata.items() if v is not None},
        )
        return response


def _key_of(key: Union[Mapping[str, Any], Tuple[Any, ...]], primary_keys: List[str]) -> Tuple[str, ...]:
    """Comparable form of a key, insensitive to ``1`` vs ``"1"``."""
    if isinstance(key, Mapping):
        return tuple(str(key.get(pk)) for pk in primary_keys)
    return tuple(str(value) for value in key)


def _relation_tree(paths: Sequence[str]) -> Dict[str, Any]:
    tree: Dict[str, Any] = {}
    for path in paths:
        node = tree
        segments = path.split(".")
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = {}
                node[segment] = child
            node = child
        node.setdefault(segments[-1], True)
    return tree


def _outside(paths: Sequence[str], included: Sequence[str]) -> List[str]:
    """Shortest prefix of each relation path that was not requested."""
    hidden: List[str] = []
    for path in paths:
        segments = path.split(".")
        for end in range(1, len(segments) + 1):
            prefix = ".".join(segments[:end])
            if prefix not in included:
                if prefix not in hidden:
                    hidden.append(prefix)
                break
    return hidden


def _shape(relations: Dict[str, Any], select: Optional[List[str]]) -> Tuple[Any, ...]:
    """What a find loaded: relation paths and selected columns."""
    return (tuple(relation_paths(relations or {})), tuple(select) if select else None)


def _unique(entities: List[Any]) -> List[Any]:
    seen = set()
    result = []
    for entity in entities:
        if id(entity) not in seen:
            seen.add(id(entity))
            result.append(entity)
    return result


def _unique_pairs(
    keys: List[Body], found: Dict[Tuple[str, ...], Any], primary_keys: List[str]
) -> List[Tuple[Body, Any]]:
    pairs = []
    seen = set()
    for key in keys:
        key_id = _key_of(key, primary_keys)
        if key_id not in seen:
            seen.add(key_id)
            pairs.append((key, found[key_id]))
    return pairs
