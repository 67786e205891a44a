"""
CRUD service configuration.

A CrudService is configured once, at startup, with a CrudOptions object:
service-wide settings plus one RouteOptions per operation. Anything left as
``None`` falls back to the global settings and then to the built-in policy
(see ``crudcore.crud.policy``).

Example:
    ```python
    options = CrudOptions(
        exclude=["password"],
        routes={
            Method.INDEX: RouteOptions(pagination_type=PaginationType.OFFSET, number_of_take=50),
            Method.DESTROY: RouteOptions(soft_delete=False),
            Method.CREATE: RouteOptions(hooks=LifecycleHooks(save_before=hash_password)),
        },
    )
    ```
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from crudcore.crud.hooks import LifecycleHooks, Method
from crudcore.pagination.engine import PaginationType
from crudcore.query.operations import SortDirection


class RouteOptions(BaseModel):
    """
    Per-operation options.

    Attributes:
        enabled: Whether the operation is exposed
        hooks: Lifecycle hooks of the operation, run after the service-wide hooks
        exclude: Fields removed from this operation's responses
        allowed_params: Body keys accepted by writes; others are dropped
        with_deleted: Reads include soft-deleted records
        soft_delete: Destroy soft-deletes instead of removing
        relations: Relations loaded by show
        pagination_type: Index pagination family when the request sends none
        number_of_take: Index row limit when the request sends none
        sort: Default index sort direction
        pagination_keys: Fields of the default index order and of cursors
        allowed_filters: Filter allow-list (full dotted paths)
        allowed_sorts: Sort allow-list
        allowed_includes: Include allow-list
        batch_threshold: Item count above which writes are chunked
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    enabled: bool = True
    hooks: Optional[LifecycleHooks] = None
    exclude: List[str] = Field(default_factory=list)
    allowed_params: Optional[List[str]] = None
    with_deleted: Optional[bool] = None
    soft_delete: Optional[bool] = None
    relations: Optional[List[str]] = None
    pagination_type: Optional[PaginationType] = None
    number_of_take: Optional[int] = Field(default=None, gt=0)
    sort: Optional[SortDirection] = None
    pagination_keys: Optional[List[str]] = None
    allowed_filters: Optional[List[str]] = None
    allowed_sorts: Optional[List[str]] = None
    allowed_includes: Optional[List[str]] = None
    batch_threshold: Optional[int] = Field(default=None, gt=0)


class CacheOptions(BaseModel):
    """
    Read cache options of a service.

    Only used when the service is given a cache backend.

    Attributes:
        enabled: Cache show and index responses
        ttl: Lifetime of cached responses in seconds; defaults to CACHE_DEFAULT_TTL
        key_prefix: Namespace of the resource's keys; defaults to ``crud:<resource>``
    """

    enabled: bool = True
    ttl: Optional[int] = Field(default=None, gt=0)
    key_prefix: Optional[str] = None


class CrudOptions(BaseModel):
    """
    Service-wide options.

    Attributes:
        primary_keys: Key fields; defaults to the store's primary keys
        exclude: Fields removed from every response
        allowed_params: Body keys accepted by every write
        hooks: Hooks run for every operation, before the route's own hooks
        routes: Per-operation options
        cache: Read cache options
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    primary_keys: Optional[List[str]] = None
    exclude: List[str] = Field(default_factory=list)
    allowed_params: Optional[List[str]] = None
    hooks: Optional[LifecycleHooks] = None
    routes: Dict[Method, RouteOptions] = Field(default_factory=dict)
    cache: Optional[CacheOptions] = None

    def route(self, method: Method) -> RouteOptions:
        """Options of ``method``, or the defaults when none were given."""
        return self.routes.get(method) or RouteOptions()

    def hooks_for(self, method: Method) -> LifecycleHooks:
        """Service-wide hooks chained with the route's hooks."""
        hooks = self.hooks or LifecycleHooks()
        return hooks.chain(self.route(method).hooks)

    def exclude_for(self, method: Method) -> List[str]:
        """Service-wide and route excludes, without duplicates."""
        return list(dict.fromkeys(self.exclude + self.route(method).exclude))

    def allowed_params_for(self, method: Method) -> Optional[List[str]]:
        route_params = self.route(method).allowed_params
        return route_params if route_params is not None else self.allowed_params
