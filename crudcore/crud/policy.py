"""
Built-in defaults of the CRUD operations.

Options resolve in three layers: the route's own option, the global
setting, then the hard default below.
"""

from typing import Any, Dict

from crudcore.config.settings import merge_defaults
from crudcore.crud.hooks import Method
from crudcore.pagination.engine import PaginationType
from crudcore.query.operations import SortDirection

CRUD_POLICY: Dict[Method, Dict[str, Any]] = {
    Method.INDEX: {
        "with_deleted": False,
        "pagination_type": PaginationType.CURSOR,
        "sort": SortDirection.DESC,
    },
    Method.SHOW: {"with_deleted": False},
    Method.CREATE: {},
    Method.UPDATE: {},
    Method.UPSERT: {},
    Method.DESTROY: {"soft_delete": True},
    Method.RECOVER: {},
}


def policy_default(method: Method, name: str, fallback: Any = None) -> Any:
    return CRUD_POLICY.get(method, {}).get(name, fallback)
