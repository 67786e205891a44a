"""
CRUD orchestration module for crudcore.

This module provides the CrudService that runs the CRUD operations of a
resource, its configuration objects, the lifecycle hook pipeline, the
batch processor for large writes and the response factory.

Limitations:
- One service instance serves one resource; configure it once at startup.
- Hooks run sequentially per record; slow hooks slow down bulk writes.
"""

from crudcore.crud.batch import BatchProcessor, chunk, optimal_batch_size
from crudcore.crud.caching import ResponseCache
from crudcore.crud.hooks import Author, HookContext, LifecycleHooks, Method
from crudcore.crud.options import CacheOptions, CrudOptions, RouteOptions
from crudcore.crud.policy import CRUD_POLICY, merge_defaults
from crudcore.crud.serializer import FieldMask, ResponseFactory
from crudcore.crud.service import CrudService

__all__ = [
    "CrudService",
    "CrudOptions",
    "RouteOptions",
    "CacheOptions",
    "ResponseCache",
    "Method",
    "Author",
    "HookContext",
    "LifecycleHooks",
    "BatchProcessor",
    "chunk",
    "optimal_batch_size",
    "CRUD_POLICY",
    "merge_defaults",
    "FieldMask",
    "ResponseFactory",
]
